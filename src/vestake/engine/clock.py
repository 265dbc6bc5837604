"""Clock sources.

A clock is any zero-argument callable returning integer seconds. Ledgers
read it once per operation.
"""

import time
from typing import Callable

from .errors import ClockError

TimeProvider = Callable[[], int]


class SystemClock:
    """Wall-clock time in whole seconds."""

    def __call__(self) -> int:
        return int(time.time())


class ManualClock:
    """Settable clock for simulations and tests. Never moves backwards."""

    def __init__(self, start: int = 0):
        self._now = int(start)

    def __call__(self) -> int:
        return self._now

    @property
    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> int:
        """Move the clock to ``timestamp``."""
        if timestamp < self._now:
            raise ClockError(
                f"Clock cannot move backwards from {self._now} to {timestamp}",
                details={"current": self._now, "requested": timestamp},
            )
        self._now = int(timestamp)
        return self._now

    def advance(self, seconds: int) -> int:
        """Move the clock forward by ``seconds``."""
        return self.set(self._now + seconds)


class MonotonicReader:
    """Reads a time provider and rejects non-integer or decreasing values."""

    def __init__(self, time_provider: TimeProvider):
        self._time_provider = time_provider
        self._last_seen = None

    def read(self) -> int:
        timestamp = self._time_provider()
        if isinstance(timestamp, bool) or not isinstance(timestamp, int):
            try:
                timestamp = int(timestamp)
            except (TypeError, ValueError) as exc:
                raise ClockError("time_provider must return an integer timestamp") from exc
        if self._last_seen is not None and timestamp < self._last_seen:
            raise ClockError(
                f"Clock moved backwards from {self._last_seen} to {timestamp}",
                details={"last_seen": self._last_seen, "now": timestamp},
            )
        self._last_seen = timestamp
        return timestamp
