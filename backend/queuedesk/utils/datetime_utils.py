"""Datetime utility functions."""

from datetime import UTC, datetime
from zoneinfo import ZoneInfo

from queuedesk.config import settings

# Operating timezone (from config); queue days and API timestamps use it
API_TIMEZONE = ZoneInfo(settings.timezone)


def utc_now() -> datetime:
    """Return current UTC datetime (timezone-aware)."""
    return datetime.now(UTC)


def to_api_timezone(dt: datetime | None) -> datetime | None:
    """Convert a datetime to API timezone (from config).

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Datetime in API timezone, or None if input was None
    """
    if dt is None:
        return None
    # Ensure datetime is timezone-aware (assume UTC if naive)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(API_TIMEZONE)


def date_key_for(dt: datetime) -> str:
    """ISO date of `dt` in the operating timezone, e.g. "2026-10-19"."""
    localized = to_api_timezone(dt)
    assert localized is not None
    return localized.date().isoformat()


def today_key() -> str:
    """Date key of the current queue day."""
    return date_key_for(utc_now())
