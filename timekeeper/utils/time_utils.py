from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Tuple

import pytz
from pytz import UTC

from timekeeper.config import settings
from timekeeper.exceptions import InvalidTimeRange


def get_report_timezone(name: Optional[str] = None) -> tzinfo:
    return pytz.timezone(name or settings.REPORT_TIMEZONE)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Mongo hands back naive datetimes; they are always UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _local_midnight(day: date, tz: tzinfo) -> datetime:
    naive = datetime(day.year, day.month, day.day)
    if hasattr(tz, "localize"):
        local = tz.localize(naive)
    else:
        local = naive.replace(tzinfo=tz)
    return local.astimezone(UTC)


def local_date(value: datetime, tz: tzinfo) -> date:
    return ensure_utc(value).astimezone(tz).date()


def today_range(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    tz = tz or get_report_timezone()
    today = local_date(now or datetime.now(UTC), tz)
    return _local_midnight(today, tz), _local_midnight(today + timedelta(days=1), tz)


def week_range(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Monday 00:00 of the current week up to the following Monday."""
    tz = tz or get_report_timezone()
    today = local_date(now or datetime.now(UTC), tz)
    monday = today - timedelta(days=today.weekday())
    return _local_midnight(monday, tz), _local_midnight(monday + timedelta(days=7), tz)


def month_range(now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    tz = tz or get_report_timezone()
    today = local_date(now or datetime.now(UTC), tz)
    first = today.replace(day=1)
    if first.month == 12:
        next_first = first.replace(year=first.year + 1, month=1)
    else:
        next_first = first.replace(month=first.month + 1)
    return _local_midnight(first, tz), _local_midnight(next_first, tz)


def preset_range(days: int, now: Optional[datetime] = None, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """
    Report presets: 0 is today, 7 is the last seven days plus today, and so on.
    """
    if days < 0:
        raise InvalidTimeRange("Preset range cannot be negative")
    tz = tz or get_report_timezone()
    today = local_date(now or datetime.now(UTC), tz)
    return _local_midnight(today - timedelta(days=days), tz), _local_midnight(today + timedelta(days=1), tz)


def date_range(start_date: date, end_date: date, tz: Optional[tzinfo] = None) -> Tuple[datetime, datetime]:
    """Both calendar days are included."""
    if end_date < start_date:
        raise InvalidTimeRange("End date cannot be before start date")
    tz = tz or get_report_timezone()
    return _local_midnight(start_date, tz), _local_midnight(end_date + timedelta(days=1), tz)


def hours_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 3600


def minutes_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60


def format_elapsed(start: Optional[datetime], now: Optional[datetime] = None) -> str:
    if start is None:
        return "0m"
    minutes = int(minutes_between(start, now or datetime.now(UTC)))
    minutes = max(0, minutes)
    if minutes < 60:
        return f"{minutes}m"
    hours, minutes = divmod(minutes, 60)
    return f"{hours}h {minutes}m"


def format_hours(hours: Optional[float]) -> str:
    if hours is None:
        return ""
    return f"{hours:.2f} hrs"
