"""User model for the Glimpse matching service."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from glimpse.utils.database import utcnow


class User(BaseModel):
    """
    User model.

    The slice of a user profile the like/match core reads: credit balance,
    premium status, demographics used for scoring, and public profile fields.
    """

    model_config = ConfigDict(from_attributes=True)

    id: str
    nickname: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    credits: int = Field(default=0, ge=0)
    is_premium: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    last_active: datetime = Field(default_factory=utcnow)


class UserSummary(BaseModel):
    """Public card of another user shown in like and match lists."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    nickname: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    profile_image: Optional[str] = None
    last_active: Optional[datetime] = None
