"""Date helpers bound to the farm's local timezone."""
import calendar
import os
from datetime import date, datetime, timedelta, timezone
from typing import Iterator

import pytz

FARM_TIMEZONE = os.environ.get("FARM_TIMEZONE", "UTC")
GENERATION_WINDOW_DAYS = int(os.environ.get("GENERATION_WINDOW_DAYS", "31"))

WEEKDAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]


def farm_today() -> date:
    """Current calendar date in the farm's timezone."""
    return datetime.now(pytz.timezone(FARM_TIMEZONE)).date()


def weekday_name(day: date) -> str:
    return WEEKDAY_NAMES[day.weekday()]


def last_day_of_month(day: date) -> date:
    return day.replace(day=calendar.monthrange(day.year, day.month)[1])


def iter_days(start: date, end: date) -> Iterator[date]:
    """Yield every date from start to end, both inclusive."""
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def utcnow() -> datetime:
    """Timezone-aware current UTC time for audit timestamps."""
    return datetime.now(timezone.utc)
