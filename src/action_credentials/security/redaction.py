"""Secret masking for log output, error messages and summaries.

``mask_sensitive_text`` is applied to every record emitted through
``action_credentials.logging_utils.get_logger`` and to every exception
message built in this package.  It is idempotent: masking already-masked
text returns it unchanged.
"""

from __future__ import annotations

import os
import re
from typing import Literal

ACCESS_TOKEN_MARKER = "[ACCESS_TOKEN_REDACTED]"
REFRESH_TOKEN_MARKER = "[REFRESH_TOKEN_REDACTED]"
JSON_VALUE_MARKER = "[REDACTED]"

ACCESS_TOKEN_PREFIX = "sk-ant-"
REFRESH_TOKEN_PREFIXES = ("refresh_", "sk-ant-ort")

_MIN_TOKEN_LENGTH = 20

# JSON fields are handled before the prefix patterns so a value is always
# collapsed to the JSON marker regardless of its shape.
_JSON_FIELD_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = (
    (
        re.compile(r'"access_token"\s*:\s*"[^"]*"'),
        f'"access_token": "{JSON_VALUE_MARKER}"',
    ),
    (
        re.compile(r'"refresh_token"\s*:\s*"[^"]*"'),
        f'"refresh_token": "{JSON_VALUE_MARKER}"',
    ),
)


def _token_pattern(prefix: str, guard: str = "") -> re.Pattern[str]:
    # Matches only runs at least as long as a valid token; ``mask_token``
    # previews are shorter and pass through the log filter unchanged.
    tail = _MIN_TOKEN_LENGTH + 1 - len(prefix)
    return re.compile(rf"{re.escape(prefix)}{guard}[A-Za-z0-9_-]{{{tail},}}")


# Refresh shapes are tried first: ``sk-ant-ort`` also starts with the access prefix.
_REFRESH_TOKEN_RES = (
    _token_pattern("sk-ant-ort"),
    # The bare field name ``refresh_token`` is not a token.
    _token_pattern("refresh_", guard=r"(?!token\b)"),
)
_ACCESS_TOKEN_RE = _token_pattern(ACCESS_TOKEN_PREFIX)


def mask_sensitive_text(text: str) -> str:
    """Replace token-shaped substrings and JSON token fields with markers."""
    if not text:
        return text
    masked = text
    for pattern, replacement in _JSON_FIELD_PATTERNS:
        masked = pattern.sub(replacement, masked)
    for pattern in _REFRESH_TOKEN_RES:
        masked = pattern.sub(REFRESH_TOKEN_MARKER, masked)
    return _ACCESS_TOKEN_RE.sub(ACCESS_TOKEN_MARKER, masked)


def sanitize_error_message(error: object) -> str:
    """Render an exception (or any object) as masked text."""
    if error is None:
        return "Unknown error"
    message = str(error)
    if not message:
        message = type(error).__name__ if isinstance(error, BaseException) else ""
    if not message:
        return "Unknown error"
    return mask_sensitive_text(message)


def mask_token(token: str | None, visible_chars: int = 8) -> str:
    """Return a short preview of ``token`` safe for human-readable output."""
    if not token or len(token) <= visible_chars:
        return "[REDACTED]"
    return f"{token[:visible_chars]}...[MASKED]"


def validate_token_format(token: str | None, token_type: Literal["access", "refresh"]) -> bool:
    if not token or not isinstance(token, str):
        return False
    if len(token) <= _MIN_TOKEN_LENGTH:
        return False
    if token_type == "access":
        return token.startswith(ACCESS_TOKEN_PREFIX)
    if token_type == "refresh":
        return token.startswith(REFRESH_TOKEN_PREFIXES)
    return False


def is_secure_environment() -> bool:
    """True when running inside GitHub Actions with a workflow token available.

    The runner masks registered secrets in its own log stream; outside it
    nothing does.
    """
    if os.getenv("GITHUB_ACTIONS", "").strip().lower() != "true":
        return False
    return bool(os.getenv("GITHUB_TOKEN"))
