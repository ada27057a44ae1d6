"""Timezone-aware UTC timestamps.

Every datetime written to the database carries ``timezone.utc``.
"""

from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time in UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat an offset-less datetime as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
