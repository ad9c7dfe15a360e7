"""Match model for the Glimpse matching service."""

from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, model_validator

from glimpse.models.user import UserSummary


class MatchStatus(str, Enum):
    """
    Match status enumeration.

    Represents the current state of a match between two users.
    """

    ACTIVE = "active"  # Both users liked each other
    EXPIRED = "expired"  # No messages exchanged within the expiry window
    DELETED = "deleted"  # Un-matched or reported by a participant


def canonical_pair(user_a: str, user_b: str) -> Tuple[str, str]:
    """
    Order a user pair so the smaller id comes first.

    Args:
        user_a (str): One participant.
        user_b (str): The other participant.

    Returns:
        Tuple[str, str]: ``(user1_id, user2_id)`` with ``user1_id < user2_id``.
    """
    return (user_a, user_b) if user_a < user_b else (user_b, user_a)


class Match(BaseModel):
    """
    Match model.

    An undirected relationship between two users within a group.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    user1_id: str
    user2_id: str
    group_id: str
    status: MatchStatus = MatchStatus.ACTIVE
    created_at: datetime
    updated_at: Optional[datetime] = None
    expired_at: Optional[datetime] = None
    extended_until: Optional[datetime] = None

    @model_validator(mode="after")
    def check_canonical_order(self) -> "Match":
        """Reject pairs that are not stored in canonical order."""
        if not self.user1_id < self.user2_id:
            raise ValueError("user1_id must sort before user2_id")
        return self


class LastMessage(BaseModel):
    """Preview of the latest message of a match."""

    content: str
    is_from_me: bool
    created_at: datetime


class GroupSummary(BaseModel):
    """Group card shown alongside a match."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    type: Optional[str] = None


class UserMatch(BaseModel):
    """
    User match view model.

    A match as seen by one of its participants: the counterpart's card, the
    group, and the latest message.
    """

    id: str
    user: Optional[UserSummary] = None
    group: Optional[GroupSummary] = None
    status: MatchStatus
    last_message: Optional[LastMessage] = None
    created_at: datetime


class MutualConnections(BaseModel):
    """Groups and matched users two participants have in common."""

    mutual_groups: List[GroupSummary] = Field(default_factory=list)
    mutual_match_count: int = 0
