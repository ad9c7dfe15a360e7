"""Request and response bodies of the Glimpse HTTP API."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class SendLikeRequest(BaseModel):
    """Body of ``POST /groups/{group_id}/likes``."""

    to_user_id: str = Field(min_length=1)


class ReportMatchRequest(BaseModel):
    """Body of ``POST /matches/{match_id}/report``."""

    reason: str
    description: Optional[str] = Field(default=None, max_length=1000)


class DailyLikesRemaining(BaseModel):
    """Likes left today; ``remaining`` is null for premium users."""

    remaining: Optional[int] = None
    unlimited: bool = False


class DetailsAccess(BaseModel):
    """Whether the caller may open another user's full profile."""

    user_id: str
    can_view_details: bool


class ErrorBody(BaseModel):
    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Envelope every error is rendered in."""

    error: ErrorBody
