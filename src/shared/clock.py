"""Time source used by every time-window calculation."""

from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    """Provides the current time as an aware UTC datetime."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(UTC)


class FrozenClock:
    """Clock that only moves when told to. Used by tests."""

    def __init__(self, start: datetime | None = None):
        self._now = start or datetime.now(UTC)

    def now(self) -> datetime:
        return self._now

    def set(self, value: datetime) -> None:
        self._now = value

    def advance(self, delta: timedelta) -> datetime:
        self._now = self._now + delta
        return self._now


system_clock = SystemClock()


def get_clock() -> Clock:
    """FastAPI dependency returning the process clock."""
    return system_clock
