"""
Injectable clocks.

The engine reads time once per operation from the clock it was built with,
never from a global source, so tests can drive arbitrary timelines.
"""

import time
from typing import Protocol

from ..exceptions import ValidationError


class Clock(Protocol):
    """Returns the current unix timestamp in whole seconds."""

    def now(self) -> int: ...


class SystemClock:
    """Wall-clock time, truncated to whole seconds."""

    def now(self) -> int:
        return int(time.time())

    def __repr__(self) -> str:
        return "<SystemClock>"


class ManualClock:
    """A clock that only moves when told to."""

    def __init__(self, start: int = 0):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def set(self, timestamp: int) -> None:
        if timestamp < self._now:
            raise ValidationError(
                f"Clock is monotonic: cannot move from {self._now} back to {timestamp}"
            )
        self._now = int(timestamp)

    def advance(self, seconds: int) -> int:
        if seconds < 0:
            raise ValidationError("Cannot advance clock by a negative amount")
        self._now += int(seconds)
        return self._now

    def __repr__(self) -> str:
        return f"<ManualClock now={self._now}>"
