"""
Core Module - System Clock.

============================================================
RESPONSIBILITY
============================================================
Provides a testable clock abstraction for every TTL check and
for the funding extrapolation model's notion of "now".

- Caches compare against clock.timestamp()
- Tests advance a MockClock instead of sleeping

============================================================
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional
import threading
import time


class ClockProtocol(ABC):
    """Abstract interface for system clock."""

    @abstractmethod
    def timestamp(self) -> float:
        """Get current Unix timestamp in seconds."""
        pass

    def timestamp_ms(self) -> int:
        """Get current Unix timestamp in milliseconds."""
        return int(self.timestamp() * 1000)


class SystemClock(ClockProtocol):
    """Production clock using actual system time."""

    def timestamp(self) -> float:
        return time.time()


class MockClock(ClockProtocol):
    """
    Mock clock for testing.

    Allows time manipulation for deterministic tests.
    """

    def __init__(self, initial_time: Optional[datetime] = None):
        self._time = initial_time or datetime(2025, 1, 1, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def timestamp(self) -> float:
        with self._lock:
            return self._time.timestamp()

    def advance(self, seconds: float = 0, **kwargs) -> None:
        """
        Advance time by the specified amount.

        Args:
            seconds: Number of seconds to advance
            **kwargs: Passed to timedelta (hours, minutes, days, etc.)
        """
        with self._lock:
            self._time = self._time + timedelta(seconds=seconds, **kwargs)


_default_clock: ClockProtocol = SystemClock()


def get_clock() -> ClockProtocol:
    """Get the process-wide clock."""
    return _default_clock
