import calendar
from datetime import date, datetime, time, timedelta

import pytz

_MONTH_NAMES = [
    "", "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
]


def get_month_name(month: int) -> str:
    """Return abbreviated month name (1-indexed). E.g. 1 -> 'Jan'."""
    if 1 <= month <= 12:
        return _MONTH_NAMES[month]
    raise ValueError(f"Invalid month: {month}")


def get_timezone(name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(name)


def utcnow() -> datetime:
    return datetime.now(pytz.utc)


def to_utc(value: datetime, tz: pytz.BaseTzInfo) -> datetime:
    """Normalize a timestamp to aware UTC; naive values are local to ``tz``."""
    if value.tzinfo is None:
        value = tz.localize(value)
    return value.astimezone(pytz.utc)


def local_today(tz: pytz.BaseTzInfo, now: datetime | None = None) -> date:
    """The current business day in the reporting timezone."""
    current = now or utcnow()
    if current.tzinfo is None:
        current = pytz.utc.localize(current)
    return current.astimezone(tz).date()


def local_midnight_utc(day: date, tz: pytz.BaseTzInfo) -> datetime:
    """UTC instant at which ``day`` starts in the reporting timezone."""
    return tz.localize(datetime.combine(day, time.min)).astimezone(pytz.utc)


def to_local_date(value: datetime, tz: pytz.BaseTzInfo) -> date:
    """Local business day of a stored timestamp (naive values are UTC)."""
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(tz).date()


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    return date(year, month, 1), date(year, month, days_in_month(year, month))


def date_range(start: date, days: int) -> list[date]:
    return [start + timedelta(days=i) for i in range(days)]


def format_day_label(day: date) -> str:
    """Short chart label, e.g. '05 Jan'."""
    return f"{day.day:02d} {get_month_name(day.month)}"
