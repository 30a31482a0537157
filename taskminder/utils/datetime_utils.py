"""
Centralized datetime utilities.

All reminder and work item timestamps are timezone-aware UTC. Naive values
coming from callers or from the database are interpreted as UTC.
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
import pytz

from config import settings

# A clock is any zero-argument callable returning an aware UTC datetime.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(pytz.UTC)


def get_scheduler_tz() -> pytz.BaseTzInfo:
    """Get the timezone used by the scheduler host for cron jobs."""
    return pytz.timezone(settings.timezone)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime to aware UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Aware UTC datetime, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)

    return dt.astimezone(pytz.UTC)


def to_naive_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns.
    """
    if dt is None:
        return None
    return ensure_utc(dt).replace(tzinfo=None)


def minutes_ago(now: datetime, minutes: float) -> datetime:
    """Return the instant `minutes` before `now`."""
    return ensure_utc(now) - timedelta(minutes=minutes)


class FrozenClock:
    """
    Manually driven clock for tests and replays.

    Usage:
        clock = FrozenClock(datetime(2026, 1, 1, tzinfo=pytz.UTC))
        clock.advance(minutes=5)
    """

    def __init__(self, start: Optional[datetime] = None):
        self.current = ensure_utc(start) if start else utc_now()

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **delta) -> datetime:
        self.current = self.current + timedelta(**delta)
        return self.current

    def set(self, value: datetime) -> None:
        self.current = ensure_utc(value)
