import uuid
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from glimpse.utils.database import utcnow

# Allowed report reasons, keep in sync with the mobile report sheet
ALLOWED_REPORT_REASONS = [
    "inappropriate_content",
    "harassment",
    "spam",
    "fake_profile",
    "underage",
    "mismatch",
    "other",
]


class MatchReport(BaseModel):
    """Represents a report filed by a participant against a match."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    match_id: str
    reporter_id: str
    reported_id: str
    group_id: str
    reason: str
    description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)

    @field_validator("reason")
    @classmethod
    def reason_must_be_allowed(cls, v: str) -> str:
        if v not in ALLOWED_REPORT_REASONS:
            raise ValueError(f"Invalid report reason. Must be one of: {ALLOWED_REPORT_REASONS}")
        return v

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "id": "f47ac10b-58cc-4372-a567-0e02b2c3d479",
                "match_id": "9b2f7a8e-1c3d-4e5f-8a9b-0c1d2e3f4a5b",
                "reporter_id": "user_abc_123",
                "reported_id": "user_def_456",
                "group_id": "group_001",
                "reason": "harassment",
                "created_at": "2024-10-27T10:00:00Z",
            }
        }
    )
