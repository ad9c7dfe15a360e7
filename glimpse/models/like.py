"""Like models for the Glimpse matching service."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from glimpse.models.user import UserSummary


class LikeResult(BaseModel):
    """Outcome of sending a like."""

    like_id: str
    is_match: bool
    match_id: Optional[str] = None


class LikeStats(BaseModel):
    """
    Like and match counters for one user.

    ``matches`` counts sent likes that are currently mutual. ``today_likes``
    counts likes sent since the start of the local day.
    """

    sent: int = 0
    received: int = 0
    matches: int = 0
    active_matches: int = 0
    today_likes: int = 0


class SentLike(BaseModel):
    """A pending like the user sent, with the target's card."""

    id: str
    user: UserSummary
    group_id: str
    group_name: Optional[str] = None
    created_at: datetime


class ReceivedLike(BaseModel):
    """An unanswered like received by a premium user."""

    id: str
    user: UserSummary
    group_id: str
    group_name: Optional[str] = None
    created_at: datetime
