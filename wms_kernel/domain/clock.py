"""
Clock -- where amendment, void and audit timestamps come from.

Responsibility:
    Services take a Clock in their constructor and stamp every amendment,
    void and InventoryAdjustment with ``clock.now()``.  Nothing in the
    reconciliation path reads the system time on its own.

Architecture position:
    Kernel > Domain.  SystemClock is the only class here that touches the
    operating system.

Invariants enforced:
    - Every clock hands out timezone-aware UTC datetimes.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

# Start of DeterministicClock when no time is given
DEFAULT_TEST_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of the current time for one request."""

    @abstractmethod
    def now(self) -> datetime:
        ...


class SystemClock(Clock):

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that moves only when told to.

    Two stamps taken in the same request are identical unless the test
    advances the clock in between, which is how tests produce amendments
    that share a timestamp.

    Raises:
        ValueError: a naive datetime is given as the start or new time.
    """

    def __init__(self, start: datetime | None = None):
        self._current = _require_aware(start or DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move forward one second and return the new time."""
        self.advance(1)
        return self._current


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError(f"clock times must be timezone-aware (got {value.isoformat()})")
    return value.astimezone(timezone.utc)
