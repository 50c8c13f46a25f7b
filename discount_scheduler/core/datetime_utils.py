"""Centralized datetime utilities for consistent timezone handling.

All functions return naive datetimes for database compatibility (the
SQLAlchemy models store naive UTC). Discount windows arrive from the
storefront as ISO8601 strings with an offset and are normalized with
``to_naive_utc`` before they reach the database.

Usage:
    from discount_scheduler.core.datetime_utils import utc_now, to_naive_utc

    now = utc_now()
    start = to_naive_utc(body.start_at)
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get current UTC time as naive datetime.

    Returns naive datetime for database compatibility.
    Replaces deprecated datetime.utcnow().
    """
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    # Convert to UTC and strip timezone
    return dt.astimezone(UTC).replace(tzinfo=None)


def parse_iso_datetime(value: str) -> datetime:
    """Parse an ISO8601 string (``Z`` suffix allowed) into naive UTC.

    Raises:
        ValueError: If the string is not a valid ISO8601 timestamp
    """
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return to_naive_utc(datetime.fromisoformat(text))
