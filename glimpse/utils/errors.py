"""Custom exceptions for the Glimpse matching service."""

from typing import Any, Dict, Optional


class GlimpseError(Exception):
    """Base exception for all Glimpse errors."""

    code = "INTERNAL_ERROR"

    def __init__(self, message: str, status_code: int = 500, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the error with a message and optional details.

        Args:
            message (str): Error message describing what went wrong.
            status_code (int): HTTP status code associated with the error (default 500).
            details (Optional[Dict[str, Any]]): Additional context or debug information.
        """
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Render the error as the API error envelope body."""
        return {"code": self.code, "message": self.message, "details": self.details}


class ConfigurationError(GlimpseError):
    """Raised when there's an issue with the application configuration."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class DatabaseError(GlimpseError):
    """Raised when there's an issue with the database operations."""

    code = "DATABASE_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 500, details)


class ValidationError(GlimpseError):
    """Raised when data validation fails."""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 400, details)


class NotFoundError(GlimpseError):
    """Raised when a requested resource is not found."""

    code = "NOT_FOUND"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 404, details)


class UserNotFoundError(NotFoundError):
    """Raised when a user referenced by a request does not exist."""

    code = "USER_NOT_FOUND"


class LikeNotFoundError(NotFoundError):
    """Raised when un-liking a user that was never liked in the group."""

    code = "LIKE_NOT_FOUND"


class MatchNotFoundError(NotFoundError):
    """Raised when a match ID does not resolve to a match."""

    code = "MATCH_NOT_FOUND"


class ForbiddenError(GlimpseError):
    """Raised when the caller is not allowed to act on a resource."""

    code = "FORBIDDEN"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 403, details)


class NotInGroupError(GlimpseError):
    """Raised when a user is not an active member of the group."""

    code = "NOT_IN_GROUP"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 400, details)


class DuplicateLikeError(GlimpseError):
    """Raised when the sender already liked the receiver in the group."""

    code = "DUPLICATE_LIKE"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 409, details)


class InsufficientCreditsError(GlimpseError):
    """Raised when a non-premium sender has no like credits left."""

    code = "INSUFFICIENT_CREDITS"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 402, details)


class RateLimitError(GlimpseError):
    """Raised when rate limiting is triggered."""

    code = "RATE_LIMITED"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, 429, details)


class CooldownActiveError(RateLimitError):
    """Raised when the sender liked the same target within the cooldown window."""

    code = "COOLDOWN_ACTIVE"


class DailyLimitExceededError(RateLimitError):
    """Raised when a non-premium sender reached the daily like cap."""

    code = "DAILY_LIMIT_EXCEEDED"
