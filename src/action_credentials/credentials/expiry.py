"""Expiry evaluation for OAuth credentials."""

from __future__ import annotations

from action_credentials.utils.time import epoch_seconds

DEFAULT_BUFFER_MINUTES = 5


def is_expired(
    expires_at: int,
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES,
    *,
    now: int | None = None,
) -> bool:
    """Return True when ``expires_at`` falls inside the safety buffer.

    ``expires_at`` and ``now`` are epoch seconds.  A buffer longer than the
    token lifetime classifies the token as permanently expired.
    """
    current = epoch_seconds() if now is None else now
    return current + buffer_minutes * 60 >= expires_at
