"""Date manipulation utilities"""

import calendar
from datetime import date, datetime, timezone
from typing import Any, Tuple


def days_in_month(year: int, month: int) -> int:
    """Number of days in the given calendar month"""
    return calendar.monthrange(year, month)[1]


def previous_month(year: int, month: int) -> Tuple[int, int]:
    """(year, month) of the month before the given one"""
    if month == 1:
        return year - 1, 12
    return year, month - 1


def parse_record_datetime(value: Any) -> datetime | None:
    """
    Parse a record date or ISO timestamp into an aware UTC datetime.

    Date-only and naive values are read as UTC. Returns None for anything
    that is not a parseable string.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith("Z") or text.endswith("z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def as_utc_datetime(value: date | datetime | None) -> datetime:
    """Normalize a reference date (default: now) to an aware UTC datetime"""
    if value is None:
        return datetime.now(timezone.utc)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
