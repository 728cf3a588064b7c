"""Organization calendar clock.

The engine never reads wall-clock time directly. "Today" is always asked of a
Clock so the fixed organizational timezone lives in one place and tests can pin
the date.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def today(self) -> date: ...

    def now(self) -> datetime: ...


class OrganizationClock:
    """System clock projected onto the organization's timezone."""

    def __init__(self, timezone_name: str):
        self.tz = ZoneInfo(timezone_name)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock:
    """Clock pinned to a single instant. Used by tests."""

    def __init__(self, instant: datetime):
        if instant.tzinfo is None:
            instant = instant.replace(tzinfo=timezone.utc)
        self._instant = instant

    @classmethod
    def on(cls, day: date, timezone_name: str = "UTC") -> FixedClock:
        return cls(datetime(day.year, day.month, day.day, 9, 0, tzinfo=ZoneInfo(timezone_name)))

    def now(self) -> datetime:
        return self._instant

    def today(self) -> date:
        return self._instant.date()
