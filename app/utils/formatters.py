"""
Formatters utility.

Utility functions for formatting queue data for display.
"""

from datetime import datetime

from app.utils.datetime_utils import ensure_utc, utc_now


def format_display_name(name: str | None) -> str:
    """
    Format a user name as first name plus last initial.

    Args:
        name: Full name or None

    Returns:
        Formatted string like "Maria S." or "User"
    """
    if not name or not name.strip():
        return "User"

    parts = name.split()
    if len(parts) == 1:
        return parts[0]
    return f"{parts[0]} {parts[-1][0]}."


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count != 1 else ''}"


def format_time_in_queue(entered_at: datetime, now: datetime | None = None) -> str:
    """
    Format time spent in queue as the largest whole unit.

    Args:
        entered_at: Queue entry time
        now: Reference time (defaults to current UTC time)

    Returns:
        String like "3 days", "5 hours" or "12 min"
    """
    now = now or utc_now()
    minutes = int((ensure_utc(now) - ensure_utc(entered_at)).total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return _plural(days, "day")
    if hours > 0:
        return _plural(hours, "hour")
    return f"{max(minutes, 0)} min"


def format_wait_estimate(days_needed: float | None) -> str:
    """
    Format an estimated wait in days.

    Args:
        days_needed: Estimated days, None when unknown

    Returns:
        String like "< 1 hour", "~4 hours", "~2 days" or "~3 weeks"
    """
    if days_needed is None:
        return "Calculating..."
    if days_needed < 0.04:
        return "< 1 hour"
    if days_needed < 1:
        return f"~{_plural(round(days_needed * 24), 'hour')}"
    if days_needed < 7:
        return f"~{_plural(round(days_needed), 'day')}"
    return f"~{_plural(round(days_needed / 7), 'week')}"
