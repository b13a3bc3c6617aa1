"""Tests for clocks."""

from datetime import UTC, datetime, timedelta

from src.shared.clock import FrozenClock, SystemClock


class TestClocks:
    def test_system_clock_is_aware_utc(self):
        assert SystemClock().now().tzinfo is UTC

    def test_frozen_clock_only_moves_when_told(self):
        start = datetime(2026, 3, 2, 9, 30, tzinfo=UTC)
        clock = FrozenClock(start)
        assert clock.now() == start

        assert clock.advance(timedelta(minutes=5)) == start + timedelta(minutes=5)
        clock.set(start)
        assert clock.now() == start
