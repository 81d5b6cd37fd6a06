"""
Date and time helpers for the calendar engine.

All instants handled by the engine are timezone-aware UTC. Naive values
(SQLite returns them) are taken to already be UTC.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

from dateutil.parser import isoparse

from src.exceptions import ValidationError


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def optional_utc(dt: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(dt) if dt is not None else None


def start_of_day(dt: datetime) -> datetime:
    """Midnight UTC on dt's calendar date."""
    return datetime.combine(ensure_utc(dt).date(), time.min, tzinfo=timezone.utc)


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant (UTC) on dt's calendar date."""
    return datetime.combine(ensure_utc(dt).date(), time.max, tzinfo=timezone.utc)


def parse_instant(value: Union[str, datetime, date], field: str = "date") -> datetime:
    """
    Parse an ISO-8601 date or date-time into an aware UTC datetime.

    Args:
        value: ISO-8601 string, datetime, or date (midnight UTC)
        field: Field name used in the error message

    Raises:
        ValidationError: If the value cannot be parsed
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Invalid {field}: expected an ISO-8601 date")
    try:
        return ensure_utc(isoparse(value.strip()))
    except (ValueError, OverflowError) as e:
        raise ValidationError(f"Invalid {field} '{value}': {e}") from e


def format_recurrence_id(dt: datetime) -> str:
    """
    Format an instance start as a recurrence ID (YYYYMMDDTHHMMSS, UTC).

    Args:
        dt: Datetime to format

    Returns:
        String in YYYYMMDDTHHMMSS format
    """
    return ensure_utc(dt).strftime("%Y%m%dT%H%M%S")
