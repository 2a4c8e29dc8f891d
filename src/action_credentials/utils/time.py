"""Time helpers.

All credential timestamps in this package are integer epoch seconds.
``normalize_epoch_seconds`` is the single place where a millisecond value
is converted.
"""

from __future__ import annotations

import time
from datetime import datetime, timezone

# Values at or above this are epoch milliseconds (year 33658 in seconds).
EPOCH_MS_THRESHOLD = 10**12


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def utc_now_iso() -> str:
    return utc_now().isoformat()


def epoch_seconds() -> int:
    return int(time.time())


def normalize_epoch_seconds(value: int | float) -> int:
    """Return ``value`` as whole epoch seconds, converting milliseconds."""
    if value >= EPOCH_MS_THRESHOLD:
        return int(value // 1000)
    return int(value)
