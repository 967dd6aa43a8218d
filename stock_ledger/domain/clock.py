"""
Injectable time source.

Every timestamp the ledger writes (movement ``occurred_at``, status
transition ``occurred_at``) and the calendar day inside reference numbers
comes from a Clock handed to the service.  SystemClock is the only place
that reads the wall clock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone

DEFAULT_TEST_TIME = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)


class Clock(ABC):
    """Source of timezone-aware datetimes."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def now_utc(self) -> datetime:
        return self.now().astimezone(timezone.utc)


class SystemClock(Clock):
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at ``fixed_time`` (default 2024-01-15 09:30 UTC).  Repeated
    ``now()`` calls return the same instant; ``advance``/``tick`` move it
    forward, ``set_time`` jumps anywhere.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._current = _require_aware(fixed_time or DEFAULT_TEST_TIME)

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = _require_aware(time)

    def advance(self, seconds: int = 1) -> None:
        self._current += timedelta(seconds=seconds)

    def tick(self) -> datetime:
        """Move forward one second and return the new time."""
        self.advance()
        return self._current


def _require_aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        raise ValueError(f"Clock times must be timezone-aware, got {value!r}")
    return value
