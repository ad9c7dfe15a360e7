"""Utility package for the Glimpse matching service."""

from glimpse.utils.database import Database, read_with_retry, transaction, utcnow
from glimpse.utils.errors import GlimpseError
from glimpse.utils.logging import configure_logging, get_logger, log_error

__all__ = [
    "Database",
    "GlimpseError",
    "configure_logging",
    "get_logger",
    "log_error",
    "read_with_retry",
    "transaction",
    "utcnow",
]
