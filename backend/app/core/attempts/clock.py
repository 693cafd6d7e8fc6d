"""
Server clock abstraction.

All admit, deny and finalize decisions read time from a Clock, never from a
request. Production uses SystemClock; tests pin time with FixedClock.
"""
import threading
from typing import Protocol

from app.core.datetime_utils import epoch_now


class Clock(Protocol):
    def now(self) -> int:
        """Current server time in epoch seconds."""
        ...


class SystemClock:
    """Wall clock in UTC epoch seconds."""

    def now(self) -> int:
        return epoch_now()


class FixedClock:
    """Manually controlled clock for tests and sweeps over a fixed instant."""

    def __init__(self, start: int):
        self._now = int(start)
        self._lock = threading.Lock()

    def now(self) -> int:
        with self._lock:
            return self._now

    def set(self, value: int) -> None:
        with self._lock:
            self._now = int(value)

    def advance(self, seconds: int) -> int:
        """Move the clock forward and return the new time."""
        with self._lock:
            self._now += int(seconds)
            return self._now
