"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime
from decimal import Decimal


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime.

    Some backends (SQLite) return naive values for
    DateTime(timezone=True) columns; they are stored as UTC.

    Args:
        value: Datetime, naive or aware

    Returns:
        Timezone-aware datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def hours_since(moment: datetime, now: datetime | None = None) -> Decimal:
    """
    Hours elapsed since a moment, as Decimal.

    Args:
        moment: Start of the interval
        now: End of the interval (defaults to current UTC time)

    Returns:
        Elapsed hours, fractional
    """
    now = now or utc_now()
    seconds = (ensure_utc(now) - ensure_utc(moment)).total_seconds()
    return Decimal(str(seconds)) / Decimal("3600")


def days_since(moment: datetime, now: datetime | None = None) -> int:
    """Whole days elapsed since a moment."""
    now = now or utc_now()
    return (ensure_utc(now) - ensure_utc(moment)).days
