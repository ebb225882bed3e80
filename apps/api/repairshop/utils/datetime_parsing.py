"""Datetime helpers for timezone-safe comparisons and pagination cursors."""

from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

DEFAULT_TIMEZONE = "America/Mexico_City"


def as_utc(value: datetime) -> datetime:
    """Return an aware UTC datetime; naive values are assumed to be UTC.

    Some backends (SQLite) hand back naive datetimes even for
    ``DateTime(timezone=True)`` columns.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def resolve_timezone(name: str | None) -> ZoneInfo:
    """Resolve a timezone name, falling back to the shop default."""
    try:
        return ZoneInfo(name or DEFAULT_TIMEZONE)
    except ZoneInfoNotFoundError:
        return ZoneInfo(DEFAULT_TIMEZONE)


def format_cursor(value: datetime) -> str:
    return as_utc(value).isoformat()


def parse_cursor(raw_value: str) -> datetime:
    """Parse an ISO 8601 cursor (``Z`` suffix accepted) into aware UTC.

    Raises:
        ValueError: the cursor is not a valid ISO timestamp
    """
    value = raw_value.strip()
    if not value:
        raise ValueError("Empty cursor")
    return as_utc(datetime.fromisoformat(value.replace("Z", "+00:00")))
