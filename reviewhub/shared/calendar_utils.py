"""
Calendar month arithmetic shared by date filters and trend windows
"""
import calendar
from datetime import datetime, timedelta, timezone
from typing import Tuple


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def shift_months(value: datetime, months: int) -> datetime:
    """Move by whole calendar months, clamping the day to the target month"""
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_bounds(value: datetime) -> Tuple[datetime, datetime]:
    """First and last instant of the calendar month containing ``value``"""
    start = value.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    end = shift_months(start, 1) - timedelta(milliseconds=1)
    return start, end


def month_key(value: datetime) -> str:
    """``YYYY-MM`` label, matching $dateToString's '%Y-%m'"""
    return f"{value.year:04d}-{value.month:02d}"
