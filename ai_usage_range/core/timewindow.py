"""
Calendar days and time windows in the reporting time zone.

All day boundaries are computed in a single fixed named zone, and every
window is half-open: ``[start, end)``.
"""

import re
from datetime import date, datetime, time, timedelta
from enum import Enum
from typing import List, Optional, Tuple
from zoneinfo import ZoneInfo


SUPPORTED_TIMEZONE = "Asia/Shanghai"
REPORTING_ZONE = ZoneInfo(SUPPORTED_TIMEZONE)

_DAY_KEY_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


class Period(Enum):
    """Named live-aggregation periods."""
    TODAY = "today"
    WEEK = "week"
    MONTH = "month"


# Number of whole days before today covered by each period
PERIOD_DAYS = {
    Period.WEEK: 7,
    Period.MONTH: 30,
}


def parse_day_key(value) -> Optional[date]:
    """Parse a strict ``YYYY-MM-DD`` calendar date, or return None."""
    if not isinstance(value, str) or not _DAY_KEY_PATTERN.match(value):
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        return None


def day_key_of(moment: datetime) -> str:
    """Calendar day (``YYYY-MM-DD``) of an aware datetime in the reporting zone."""
    return moment.astimezone(REPORTING_ZONE).date().isoformat()


def day_start(day: date) -> datetime:
    return datetime.combine(day, time.min, tzinfo=REPORTING_ZONE)


def day_window(day_key: str) -> Tuple[datetime, datetime]:
    """Return the half-open window ``[dayStart, dayStart + 1 day)`` of a day key.

    Raises:
        ValueError: If day_key is not a valid calendar date
    """
    day = parse_day_key(day_key)
    if day is None:
        raise ValueError(f"Invalid day key: {day_key!r}")
    return day_start(day), day_start(day + timedelta(days=1))


def build_date_range(start_key: str, end_key: str) -> List[str]:
    """List every day key from start_key to end_key inclusive."""
    start = parse_day_key(start_key)
    end = parse_day_key(end_key)
    if start is None or end is None:
        raise ValueError(f"Invalid date range: {start_key!r}..{end_key!r}")

    days = []
    cursor = start
    while cursor <= end:
        days.append(cursor.isoformat())
        cursor += timedelta(days=1)
    return days


def period_window(period: Period, now: datetime) -> Tuple[datetime, datetime]:
    """Return the window covered by a named period.

    ``today`` runs from midnight to now; ``week`` and ``month`` cover the
    whole days before today.
    """
    today_start = day_start(now.astimezone(REPORTING_ZONE).date())
    if period is Period.TODAY:
        return today_start, now
    return today_start - timedelta(days=PERIOD_DAYS[period]), today_start
