"""Logging helpers with mandatory secret redaction."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from action_credentials.config import load_settings
from action_credentials.security.redaction import mask_sensitive_text

AUDIT_LOGGER_NAME = "action_credentials.audit"

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

_logger = logging.getLogger(__name__)


class RedactingFilter(logging.Filter):
    """Collapse a record to its masked, fully rendered message.

    Runs before any handler so that neither the message, its arguments nor
    attached exception text can reach a sink unmasked.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.msg = mask_sensitive_text(record.getMessage())
        record.args = None
        if record.exc_info and not record.exc_text:
            record.exc_text = logging.Formatter().formatException(record.exc_info)
        if record.exc_text:
            record.exc_text = mask_sensitive_text(record.exc_text)
        if record.stack_info:
            record.stack_info = mask_sensitive_text(record.stack_info)
        return True


class RedactingFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        return mask_sensitive_text(super().format(record))


_redacting_filter = RedactingFilter()


def get_logger(name: str) -> logging.Logger:
    """Return ``logging.getLogger(name)`` with the redaction filter attached."""
    logger = logging.getLogger(name)
    if _redacting_filter not in logger.filters:
        logger.addFilter(_redacting_filter)
    return logger


def configure_logging() -> None:
    """Configure stderr/file logging and the stdout audit stream."""
    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(RedactingFormatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(RedactingFormatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    audit_logger = get_logger(AUDIT_LOGGER_NAME)
    audit_logger.handlers.clear()
    audit_handler = logging.StreamHandler(sys.stdout)
    audit_handler.setFormatter(RedactingFormatter("%(message)s"))
    audit_logger.addHandler(audit_handler)
    audit_logger.setLevel(logging.INFO)
    audit_logger.propagate = False

