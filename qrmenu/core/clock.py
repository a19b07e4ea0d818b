"""
Time Sources

Every component that needs "now" (guest session expiry, countdowns,
order timestamps) receives a Clock instead of sampling the system time
directly, so expiry can be simulated in tests without waiting.
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Union


class Clock(ABC):
    """Source of the current time in epoch milliseconds."""

    @abstractmethod
    def now_ms(self) -> int:
        """Return the current time as epoch milliseconds."""
        pass

    def now(self) -> datetime:
        """Return the current time as an aware UTC datetime."""
        return datetime.fromtimestamp(self.now_ms() / 1000, tz=timezone.utc)


class SystemClock(Clock):
    """Wall clock."""

    def now_ms(self) -> int:
        return time.time_ns() // 1_000_000


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Example:
        >>> clock = ManualClock(start_ms=1_000)
        >>> clock.advance(timedelta(seconds=5))
        >>> clock.now_ms()
        6000
    """

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self._now_ms = start_ms

    def now_ms(self) -> int:
        return self._now_ms

    def advance(self, delta: Union[timedelta, int]) -> None:
        """Move forward by a timedelta or a number of milliseconds."""
        if isinstance(delta, timedelta):
            delta = int(delta.total_seconds() * 1000)
        if delta < 0:
            raise ValueError("ManualClock cannot move backwards")
        self._now_ms += delta

    def set(self, now_ms: int) -> None:
        self._now_ms = now_ms
