"""Discovery models for the Glimpse matching service."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Candidate(BaseModel):
    """
    Candidate model.

    A group member eligible for discovery, as read from the store before
    scoring. Every field the scorer looks at is declared here.
    """

    model_config = ConfigDict(from_attributes=True, extra="forbid")

    id: str
    nickname: Optional[str] = None
    bio: Optional[str] = None
    profile_image: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    last_active: Optional[datetime] = None


class Recommendation(BaseModel):
    """
    Recommendation model.

    A scored candidate with identity redacted: the nickname is masked and the
    bio withheld until the two users match.
    """

    id: str
    nickname: str
    bio: None = None
    profile_image: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    last_active: Optional[datetime] = None
    compatibility_score: int = Field(ge=0, le=100)
