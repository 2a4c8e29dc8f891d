"""Minimum-interval gate for credential renewal."""

from __future__ import annotations

import time
from typing import Callable

DEFAULT_MIN_INTERVAL_SECONDS = 60.0


class RefreshRateLimiter:
    """Advisory backpressure against refresh storms.

    State is process-local and starts as "never refreshed".  One instance is
    expected per orchestration run; hosts that run several orchestrations
    concurrently in one process must serialize access themselves.
    """

    def __init__(
        self,
        min_interval_seconds: float = DEFAULT_MIN_INTERVAL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._last_refresh: float | None = None

    @property
    def last_refresh(self) -> float | None:
        return self._last_refresh

    def can_proceed(self) -> bool:
        """Check the gate without stamping it."""
        if self._last_refresh is None:
            return True
        return self._clock() - self._last_refresh >= self._min_interval

    def record_attempt(self) -> None:
        self._last_refresh = self._clock()

    def can_refresh(self) -> bool:
        """Check the gate and stamp it when open."""
        if not self.can_proceed():
            return False
        self.record_attempt()
        return True

    def remaining_cooldown(self) -> float:
        if self._last_refresh is None:
            return 0.0
        remaining = self._min_interval - (self._clock() - self._last_refresh)
        return max(0.0, remaining)
