"""UTC-everywhere time handling. Every stored timestamp is timezone-aware UTC."""

from datetime import datetime, timedelta, timezone


def now_utc() -> datetime:
    """
    Current time in UTC.

    Use this instead of datetime.now() everywhere.
    """
    return datetime.now(timezone.utc)


def to_utc(dt: datetime) -> datetime:
    """
    Convert a datetime to UTC.

    Raises ValueError if datetime is naive (no timezone).
    """
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot convert naive datetime to UTC. Datetime must be timezone-aware."
        )
    return dt.astimezone(timezone.utc)


def parse_iso(iso_string: str) -> datetime:
    """
    Parse ISO 8601 datetime string to UTC datetime.

    Accepts a trailing 'Z' as UTC. Raises ValueError if the string has no
    timezone info.
    """
    if iso_string.endswith("Z"):
        iso_string = iso_string[:-1] + "+00:00"
    dt = datetime.fromisoformat(iso_string)
    if dt.tzinfo is None:
        raise ValueError(
            "Cannot parse naive datetime string. "
            "Include timezone offset (e.g., 'Z' or '+00:00')."
        )
    return to_utc(dt)


def days_from(dt: datetime, days: int) -> datetime:
    """Shift an aware datetime by a whole number of days."""
    return to_utc(dt) + timedelta(days=days)


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days elapsed from earlier to later (negative if later is before)."""
    return (to_utc(later) - to_utc(earlier)).days
