"""
Injectable time source.

Routing, approval, notification and budget-monitoring code takes a Clock in
its constructor instead of calling ``datetime.now()``.  History rows,
notification timestamps and the rolling threshold-dedup window all read it.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """``now()`` always returns a timezone-aware UTC datetime."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock that only moves when told to.

    Guarantees:
        - ``now()`` is stable until ``advance()``, ``tick()`` or
          ``set_time()``.
        - ``tick()`` moves exactly one second, so objects created one tick
          apart have a strict creation order.
    """

    DEFAULT_START = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __init__(self, start: datetime | None = None):
        self._now = start or self.DEFAULT_START

    def now(self) -> datetime:
        return self._now

    def set_time(self, time: datetime) -> None:
        self._now = time

    def advance(self, seconds: int = 1) -> None:
        self._now += timedelta(seconds=seconds)

    def advance_hours(self, hours: int) -> None:
        self.advance(hours * 3600)

    def tick(self) -> datetime:
        self.advance(1)
        return self._now
