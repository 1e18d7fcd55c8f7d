"""Shared utilities for the portfolio monitor."""

from datetime import datetime, timezone

# Sort key for timestamps that cannot be parsed: older than anything real
_EPOCH_FLOOR = datetime.min.replace(tzinfo=timezone.utc)


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(dt: datetime) -> datetime:
    """Aware UTC datetime. Naive values (e.g. read back from SQLite) are taken as UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_timestamp(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp ('Z' or offset suffix) into aware UTC.

    Values that do not parse map to the earliest representable time.
    """
    if not value:
        return _EPOCH_FLOOR
    try:
        return as_utc(datetime.fromisoformat(value))
    except (ValueError, OverflowError):
        return _EPOCH_FLOOR


def isoformat_z(dt: datetime) -> str:
    """Format a UTC datetime as ISO-8601 with milliseconds and a 'Z' suffix."""
    return as_utc(dt).replace(tzinfo=None).isoformat(timespec="milliseconds") + "Z"
