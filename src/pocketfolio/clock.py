"""Injectable time sources."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    """Source of the current device-local time."""

    def now(self) -> datetime:  # pragma: no cover - interface
        ...


class SystemClock:
    """Wall clock in device-local time (naive datetimes)."""

    def now(self) -> datetime:
        return datetime.now()


class FixedClock:
    """Manually advanced clock for tests and simulations."""

    def __init__(self, current: datetime) -> None:
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        self._current = current

    def advance(self, **delta: float) -> datetime:
        """Move forward by ``timedelta(**delta)`` and return the new time."""
        self._current = self._current + timedelta(**delta)
        return self._current


def epoch_millis(moment: datetime) -> int:
    """Milliseconds since the epoch; naive values are read as local time."""
    return int(moment.timestamp() * 1000)


def utc_now(clock: Clock) -> datetime:
    """Timezone-aware UTC stamp of ``clock.now()`` for audit columns."""
    return clock.now().astimezone(timezone.utc)


def local_day(clock: Clock) -> date:
    """Calendar date as a person at this device would read it."""
    return clock.now().date()
