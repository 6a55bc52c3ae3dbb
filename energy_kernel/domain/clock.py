"""
Injectable time source.

Services stamp ``calculated_at`` through a Clock instead of reading the
system time, so a recalculation replayed with a fixed clock writes an
identical audit record.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware "now" values."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Guarantees:
        - Repeated ``now()`` calls return the same instant until ``advance``
          is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or EPOCH

    def now(self) -> datetime:
        return self._current

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)
