"""Tests for the refresh minimum-interval gate."""

from __future__ import annotations

from action_credentials.security.rate_limit import RefreshRateLimiter


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRefreshRateLimiter:
    """Tests for RefreshRateLimiter."""

    def test_second_call_within_interval_is_refused(self) -> None:
        """A second renewal inside the interval should be refused."""
        clock = _Clock()
        limiter = RefreshRateLimiter(60, clock=clock)

        assert limiter.can_refresh() is True
        clock.now += 30
        assert limiter.can_refresh() is False

    def test_refused_call_does_not_restamp(self) -> None:
        """Refused calls leave the last stamp untouched."""
        clock = _Clock()
        limiter = RefreshRateLimiter(60, clock=clock)

        assert limiter.can_refresh() is True
        clock.now += 59
        assert limiter.can_refresh() is False
        assert limiter.last_refresh == 1000.0
        clock.now += 1
        assert limiter.can_refresh() is True
        assert limiter.last_refresh == 1060.0

    def test_fresh_instances_are_independent(self) -> None:
        clock = _Clock()
        first = RefreshRateLimiter(60, clock=clock)
        second = RefreshRateLimiter(60, clock=clock)

        assert first.can_refresh() is True
        assert second.can_refresh() is True


class TestSplitGate:
    """Tests for the can_proceed/record_attempt pair."""

    def test_can_proceed_does_not_stamp(self) -> None:
        clock = _Clock()
        limiter = RefreshRateLimiter(60, clock=clock)

        assert limiter.last_refresh is None
        assert limiter.can_proceed() is True
        assert limiter.can_proceed() is True
        limiter.record_attempt()
        assert limiter.can_proceed() is False

    def test_remaining_cooldown(self) -> None:
        """Cooldown counts down to zero and never goes negative."""
        clock = _Clock()
        limiter = RefreshRateLimiter(60, clock=clock)

        assert limiter.remaining_cooldown() == 0.0
        limiter.can_refresh()
        clock.now += 45
        assert limiter.remaining_cooldown() == 15.0
        clock.now += 100
        assert limiter.remaining_cooldown() == 0.0
