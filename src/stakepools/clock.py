"""
stakepools/clock.py

Time sources. All timestamps are integer Unix seconds.
"""

import time


class SystemClock:
    """Wall-clock time."""

    def now(self) -> int:
        return int(time.time())


class ManualClock:
    """
    Clock that only moves when told to.

    Usage:
        clock = ManualClock(1_700_000_000)
        engine = StakingEngine(owner="admin", clock=clock)
        clock.advance(10)
    """

    def __init__(self, start: int = 0):
        self._now = int(start)

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move forward by ``seconds``; returns the new time."""
        if seconds < 0:
            raise ValueError("Clock cannot move backward")
        self._now += int(seconds)
        return self._now

    def set(self, timestamp: int) -> None:
        """Jump to an absolute time that is not in the past."""
        if timestamp < self._now:
            raise ValueError("Clock cannot move backward")
        self._now = int(timestamp)
