from __future__ import annotations

import logging
import sys
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from action_credentials import logging_utils
from action_credentials.logging_utils import RedactingFilter, RedactingFormatter, get_logger

ACCESS = "sk-ant-REDACTED"
REFRESH = "refresh_abcdefghijklmnopqrstuvwxyz"


def _settings(log_file: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        logging=SimpleNamespace(level="INFO", file=log_file),
    )


def _record(msg: str, *args: object, exc_info: object = None) -> logging.LogRecord:
    return logging.LogRecord("test", logging.INFO, __file__, 1, msg, args, exc_info)


@patch("action_credentials.logging_utils.load_settings")
@patch("action_credentials.logging_utils.logging.basicConfig")
def test_configure_logging_stream_only(
    mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    kwargs = mock_basic_config.call_args.kwargs
    assert kwargs["force"] is True
    assert kwargs["level"] == logging.INFO
    assert len(kwargs["handlers"]) == 1
    assert isinstance(kwargs["handlers"][0].formatter, RedactingFormatter)


@patch("action_credentials.logging_utils.load_settings")
@patch("action_credentials.logging_utils.logging.basicConfig")
@patch("action_credentials.logging_utils.logging.FileHandler", side_effect=OSError("denied"))
@patch("action_credentials.logging_utils._logger")
def test_configure_logging_file_handler_error(
    mock_logger: MagicMock,
    _mock_file_handler: MagicMock,
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings("./logs/app.log")

    logging_utils.configure_logging()

    mock_logger.warning.assert_called_once()


@patch("action_credentials.logging_utils.load_settings")
@patch("action_credentials.logging_utils.logging.basicConfig")
def test_configure_logging_routes_audit_to_stdout(
    _mock_basic_config: MagicMock,
    mock_load_settings: MagicMock,
) -> None:
    mock_load_settings.return_value = _settings(None)

    logging_utils.configure_logging()

    audit_logger = logging.getLogger(logging_utils.AUDIT_LOGGER_NAME)
    assert audit_logger.propagate is False
    assert len(audit_logger.handlers) == 1
    assert audit_logger.handlers[0].stream is sys.stdout


def test_filter_masks_message_and_args() -> None:
    record = _record("refresh with %s and %s", ACCESS, REFRESH)

    assert RedactingFilter().filter(record) is True

    message = record.getMessage()
    assert ACCESS not in message
    assert REFRESH not in message
    assert "[ACCESS_TOKEN_REDACTED]" in message
    assert "[REFRESH_TOKEN_REDACTED]" in message


def test_filter_masks_exception_text() -> None:
    try:
        raise ValueError(f"boom {ACCESS}")
    except ValueError:
        record = _record("failed", exc_info=sys.exc_info())

    RedactingFilter().filter(record)

    assert ACCESS not in record.exc_text
    assert "[ACCESS_TOKEN_REDACTED]" in record.exc_text
    formatted = logging.Formatter().format(record)
    assert ACCESS not in formatted


def test_formatter_masks_output() -> None:
    formatted = RedactingFormatter("%(message)s").format(_record("token %s", ACCESS))
    assert formatted == "token [ACCESS_TOKEN_REDACTED]"


def test_get_logger_attaches_filter_once() -> None:
    first = get_logger("action_credentials.tests.sample")
    second = get_logger("action_credentials.tests.sample")

    assert first is second
    assert sum(isinstance(f, RedactingFilter) for f in first.filters) == 1


def test_get_logger_records_are_masked(caplog: pytest.LogCaptureFixture) -> None:
    logger = get_logger("action_credentials.tests.masked")

    with caplog.at_level(logging.INFO, logger="action_credentials.tests.masked"):
        logger.info("payload %s", '{"access_token": "opaque"}')

    assert "opaque" not in caplog.text
    assert '"access_token": "[REDACTED]"' in caplog.text

