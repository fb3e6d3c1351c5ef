"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock so that engine and report code never call
    ``datetime.now()``, ``date.today()`` or ``time.monotonic()`` directly.
    Report timestamps (``generatedAt``) and cancellation deadlines both go
    through a Clock.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).
"""

import time
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``monotonic()`` never goes backwards.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds on a monotonic scale, for deadlines."""
        ...

    def today(self) -> date:
        """Current UTC calendar date."""
        return self.now().astimezone(timezone.utc).date()


class SystemClock(Clock):
    """Production clock that returns actual system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    ``now()`` and ``monotonic()`` return the same values on repeated calls
    until ``advance()`` or ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0.0
        self._elapsed = 0.0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def monotonic(self) -> float:
        return self._elapsed

    def set_time(self, value: datetime) -> None:
        self._fixed_time = value
        self._advance_seconds = 0.0

    def advance(self, seconds: float = 1) -> None:
        self._advance_seconds += seconds
        self._elapsed += seconds
