"""
crosslock/core/time.py

Clocks and journal timestamps.

Settlement reads time exactly once per transition, as an unsigned 32-bit
unix timestamp (fits until 2106). Journal entries carry a wire-format
timestamp: YYYY-MM-DDTHH:MM:SS.mmmZ (milliseconds, explicit Z).
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from crosslock.core.arith import check_width


class Clock(ABC):
    """Monotonic time source consumed by the settlement engine."""

    @abstractmethod
    def now(self) -> int:
        """Current unix timestamp, unsigned 32-bit."""


class SystemClock(Clock):
    def now(self) -> int:
        return check_width(int(time.time()), 32)


class FixedClock(Clock):
    """Manually driven clock for tests and simulations."""

    def __init__(self, start: int) -> None:
        self._now = check_width(start, 32)

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValueError(
                f"clock is monotonic: cannot move from {self._now} back to {timestamp}"
            )
        self._now = check_width(timestamp, 32)

    def advance(self, seconds: int) -> int:
        self.set(self._now + seconds)
        return self._now

    def __repr__(self) -> str:
        return f"FixedClock(now={self._now})"


def journal_timestamp() -> str:
    """
    Current UTC time in journal wire format.
    Format: YYYY-MM-DDTHH:MM:SS.mmmZ  (exactly 3 fractional digits, Z suffix)
    """
    now = datetime.now(timezone.utc)
    ms  = now.microsecond // 1000
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{ms:03d}Z"
