"""Notification intent models for the Glimpse matching service."""

from enum import Enum
from typing import Any, Dict

from pydantic import BaseModel, Field


class NotificationKind(str, Enum):
    """Kinds of notification the like/match core emits."""

    LIKE_RECEIVED = "LIKE_RECEIVED"
    MATCH_CREATED = "MATCH_CREATED"


class NotificationIntent(BaseModel):
    """A notification to deliver once the originating transaction has committed."""

    user_id: str
    kind: NotificationKind
    payload: Dict[str, Any] = Field(default_factory=dict)
