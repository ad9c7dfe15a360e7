from unittest.mock import MagicMock, patch

import structlog

from glimpse.utils.errors import NotInGroupError
from glimpse.utils.logging import (
    _add_app_name,
    bind_request_context,
    clear_request_context,
    configure_logging,
    get_logger,
    log_error,
)


@patch("glimpse.utils.logging.structlog")
@patch("glimpse.utils.logging.logging")
@patch("glimpse.utils.logging.settings")
def test_configure_logging_development(mock_settings, mock_logging, mock_structlog):
    mock_settings.LOG_LEVEL = "debug"
    mock_settings.ENVIRONMENT = "development"
    mock_settings.DEBUG = True
    mock_logging.getLevelName.return_value = 10

    configure_logging()

    mock_logging.getLevelName.assert_called_once_with("DEBUG")
    mock_logging.basicConfig.assert_called_once()
    _args, kwargs = mock_logging.basicConfig.call_args
    assert kwargs["level"] == 10

    mock_structlog.configure.assert_called_once()
    processors = mock_structlog.configure.call_args[1]["processors"]
    assert mock_structlog.dev.ConsoleRenderer.return_value in processors
    mock_logging.getLogger.assert_not_called()


@patch("glimpse.utils.logging.structlog")
@patch("glimpse.utils.logging.logging")
@patch("glimpse.utils.logging.settings")
def test_configure_logging_production(mock_settings, mock_logging, mock_structlog):
    mock_settings.LOG_LEVEL = "INFO"
    mock_settings.ENVIRONMENT = "production"
    mock_settings.DEBUG = False

    configure_logging()

    processors = mock_structlog.configure.call_args[1]["processors"]
    assert mock_structlog.processors.JSONRenderer.return_value in processors
    mock_logging.getLogger.assert_called_once_with("sqlalchemy.engine")


@patch("glimpse.utils.logging.structlog")
@patch("glimpse.utils.logging.logging")
@patch("glimpse.utils.logging.settings")
def test_configure_logging_unknown_level_falls_back_to_info(mock_settings, mock_logging, mock_structlog):
    mock_settings.LOG_LEVEL = "chatty"
    mock_settings.ENVIRONMENT = "production"
    mock_logging.getLevelName.return_value = "Level CHATTY"

    configure_logging()

    assert mock_logging.basicConfig.call_args[1]["level"] == mock_logging.INFO


@patch("glimpse.utils.logging.settings")
def test_app_name_is_added_to_every_event(mock_settings):
    mock_settings.APP_NAME = "Glimpse Match"

    assert _add_app_name(None, "info", {"event": "hi"}) == {"event": "hi", "app": "Glimpse Match"}
    assert _add_app_name(None, "info", {"event": "hi", "app": "worker"})["app"] == "worker"


@patch("glimpse.utils.logging.structlog")
def test_get_logger(mock_structlog):
    mock_logger = MagicMock()
    mock_structlog.get_logger.return_value = mock_logger

    logger = get_logger("test_logger", foo="bar")

    mock_structlog.get_logger.assert_called_with("test_logger")
    mock_logger.bind.assert_called_with(foo="bar")
    assert logger == mock_logger.bind.return_value


def test_log_error():
    mock_logger = MagicMock()
    error = ValueError("test error")

    log_error(mock_logger, error, "something went wrong", {"user_id": 1})

    mock_logger.error.assert_called_once()
    args, kwargs = mock_logger.error.call_args
    assert args[0] == "something went wrong"
    assert kwargs["user_id"] == 1
    assert kwargs["error_type"] == "ValueError"
    assert kwargs["error_message"] == "test error"
    assert kwargs["exc_info"] == error
    assert "error_code" not in kwargs


def test_log_error_with_details():
    mock_logger = MagicMock()
    error = NotInGroupError("not a member", details={"group_id": "g1"})

    log_error(mock_logger, error)

    args, kwargs = mock_logger.error.call_args
    assert args[0] == "An error occurred"
    assert kwargs["error_code"] == "NOT_IN_GROUP"
    assert kwargs["error_details"] == {"group_id": "g1"}


def test_request_context_binding():
    bind_request_context(user_id="alice", route=None)
    assert structlog.contextvars.get_contextvars() == {"user_id": "alice"}

    clear_request_context()
    assert structlog.contextvars.get_contextvars() == {}
