"""
Clocks for event timestamps.

Stores stamp events through a clock so tests and demos can run on a
deterministic timeline.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp; naive values are taken as UTC."""
    ts = datetime.fromisoformat(value)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


class SystemClock:
    """Wall-clock time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock:
    """
    Deterministic time source.

    Each call to now() returns the current instant and then advances it by
    `step`, so consecutive events get distinct, increasing timestamps.
    """

    def __init__(self, start: Optional[datetime] = None, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start or datetime(2024, 1, 1, tzinfo=timezone.utc)
        self.step = step

    def now(self) -> datetime:
        ts = self.current
        self.current = self.current + self.step
        return ts

    def peek(self) -> datetime:
        """Get current instant without advancing."""
        return self.current

    def advance(self, delta: timedelta) -> None:
        self.current = self.current + delta
