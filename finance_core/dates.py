"""
Calendar helpers shared by the installment and subscription schedules.
"""

from datetime import datetime, timezone, timedelta, date
from typing import Optional, Tuple
import calendar

from .errors import ValidationError


def add_months(start: datetime, months: int, anchor_day: Optional[int] = None) -> datetime:
    """
    Add calendar months, clamping to the last day of the target month.

    anchor_day keeps a schedule on its original day of month once the short
    months have passed (Jan 31 -> Feb 29 -> Mar 31).
    """
    month = start.month - 1 + months
    year = start.year + month // 12
    month = month % 12 + 1
    day = min(anchor_day or start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def add_years(start: datetime, years: int) -> datetime:
    """Add calendar years; Feb 29 falls back to Feb 28 in common years"""
    year = start.year + years
    day = min(start.day, calendar.monthrange(year, start.month)[1])
    return start.replace(year=year, day=day)


def ensure_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime(value, field_name: str = "date") -> datetime:
    """
    Parse an ISO-8601 date or datetime into an aware UTC datetime.

    Date-only strings resolve to midnight UTC; naive values are taken as UTC.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field_name}: {value!r}")

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value!r}")
    return ensure_utc(parsed)


def parse_optional_datetime(value, field_name: str = "date") -> Optional[datetime]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return parse_datetime(value, field_name)


def month_range(year: int, month: int) -> Tuple[datetime, datetime]:
    """First and last instant of a calendar month, in UTC"""
    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {month}")
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    last_day = calendar.monthrange(year, month)[1]
    end = datetime(year, month, last_day, tzinfo=timezone.utc) + timedelta(days=1) - timedelta(microseconds=1)
    return start, end
