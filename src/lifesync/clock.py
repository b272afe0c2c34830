"""Time sources for the scheduler, in epoch milliseconds."""

import time
from typing import Protocol


class Clock(Protocol):
    def now(self) -> int:
        """Current time in epoch milliseconds."""
        ...


class SystemClock:
    """Wall-clock time."""

    def now(self) -> int:
        return time.time_ns() // 1_000_000


class ManualClock:
    """Clock that only moves when told to. Used for replays and tests."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def set(self, value: int) -> None:
        self._now = value

    def advance(self, milliseconds: int) -> int:
        self._now += milliseconds
        return self._now
