"""Logging configuration for the Glimpse matching service."""

import logging
import sys
from typing import Any, Dict, List, Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from glimpse.config import settings
from glimpse.utils.errors import GlimpseError


def _add_app_name(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    event_dict.setdefault("app", settings.APP_NAME)
    return event_dict


def _renderer(environment: str) -> Processor:
    if environment.lower() == "development":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


def configure_logging() -> None:
    """
    Route stdlib logging through structlog.

    Log lines carry the bound request context, the app name, level, logger
    name and an ISO timestamp. Development renders them for the console;
    every other environment emits one JSON object per line.
    """
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logging.basicConfig(stream=sys.stdout, level=level, format="%(message)s")

    chain: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_app_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        _renderer(settings.ENVIRONMENT),
    ]
    structlog.configure(
        processors=chain,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    # SQL echo goes through the engine's own flag, keep the pool quiet otherwise
    if not settings.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def bind_request_context(**values: Any) -> None:
    """Bind request-scoped values (caller, route) to every log line of the current request."""
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**{k: v for k, v in values.items() if v is not None})


def clear_request_context() -> None:
    """Drop request-scoped logging context."""
    structlog.contextvars.clear_contextvars()


def get_logger(name: str, **initial_values: Any) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for a module, with ``initial_values`` already bound."""
    return structlog.get_logger(name).bind(**initial_values)  # type: ignore


def log_error(
    logger: structlog.stdlib.BoundLogger,
    error: Exception,
    message: Optional[str] = None,
    extra: Optional[Dict[str, Any]] = None,
) -> None:
    """
    Log an exception at error level with its type, message and traceback.

    Domain errors also contribute their stable ``code`` and their ``details``.

    Args:
        logger: Logger to write to.
        error: The exception.
        message: Event name, "An error occurred" when omitted.
        extra: Additional fields for the log line.
    """
    fields: Dict[str, Any] = {
        **(extra or {}),
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if isinstance(error, GlimpseError):
        fields["error_code"] = error.code
        fields["error_details"] = error.details

    logger.error(message or "An error occurred", exc_info=error, **fields)
