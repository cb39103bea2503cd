"""
Common date/time utility functions for consistent date/time handling across the application

Storage: All timestamps are stored in UTC
Display: Dates can be converted to local timezone for display if needed

- Clients send UTC ISO strings (or naive values, treated as UTC)
- Backend stores and compares tz-aware UTC datetimes
- Calendar-day filters (nurse records, vitals, case sheets) use UTC day bounds
"""

from datetime import date, datetime, time, timedelta, timezone


def as_utc(dt: datetime) -> datetime:
    """
    Convert dt to tz-aware UTC.
    If dt is naive, we treat it as UTC. SQLite hands back naive values
    for DateTime(timezone=True) columns, so every comparison goes through here.

    Args:
        dt: datetime object (naive or timezone-aware)

    Returns:
        datetime object in UTC timezone
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_now() -> datetime:
    """
    Get current UTC datetime.
    """
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def parse_iso_string(iso_string: str) -> datetime:
    """
    Parse an ISO 8601 string to UTC datetime.
    Handles both with and without 'Z' suffix.

    Args:
        iso_string: ISO 8601 string (e.g., "2024-12-28T10:30:00.000Z" or "2024-12-28T10:30:00+00:00")

    Returns:
        datetime object in UTC timezone
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"

    dt = datetime.fromisoformat(iso_string)
    return as_utc(dt)


def day_bounds(day: date) -> tuple[datetime, datetime]:
    """
    Return [start, end) of a calendar day in UTC.
    """
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def date_key(dt: datetime | date) -> str:
    """YYYY-MM-DD key used to group timeline events."""
    if isinstance(dt, datetime):
        return as_utc(dt).date().isoformat()
    return dt.isoformat()
