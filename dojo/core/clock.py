"""Business-calendar clock. Services take it as a parameter so date logic never reads wall time directly."""

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo

from dojo.core.config import settings


class Clock:
    """Current date and time in the dojo's local business timezone."""

    def __init__(self, timezone_name: Optional[str] = None) -> None:
        self.tz = ZoneInfo(timezone_name or settings.business_timezone)

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def today(self) -> date:
        return self.now().date()


class FixedClock(Clock):
    """Clock pinned to a given day (and optionally a time of day)."""

    def __init__(self, today: date, now: Optional[datetime] = None, timezone_name: Optional[str] = None) -> None:
        super().__init__(timezone_name)
        self._today = today
        self._now = now or datetime(today.year, today.month, today.day, 12, 0, tzinfo=self.tz)

    def now(self) -> datetime:
        return self._now

    def today(self) -> date:
        return self._today


_system_clock = Clock()


def get_clock() -> Clock:
    """FastAPI dependency; tests override it with a FixedClock."""
    return _system_clock
