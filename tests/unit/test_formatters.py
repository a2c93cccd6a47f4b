"""Unit tests for display formatting and time helpers."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest

from app.services.queue_stats_service import QueueStatsService, estimate_wait_time
from app.utils.datetime_utils import days_since, ensure_utc, hours_since
from app.utils.formatters import (
    format_display_name,
    format_time_in_queue,
    format_wait_estimate,
)


NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


class TestDisplayName:
    """Tests for user name formatting."""

    @pytest.mark.parametrize(
        "name,expected",
        [
            (None, "User"),
            ("", "User"),
            ("   ", "User"),
            ("Cher", "Cher"),
            ("Maria Sanchez", "Maria S."),
            ("Ana Maria Lopez", "Ana L."),
        ],
    )
    def test_format_display_name(self, name, expected):
        """First name plus last initial."""
        assert format_display_name(name) == expected


class TestTimeInQueue:
    """Tests for time-in-queue formatting."""

    def test_days(self):
        assert format_time_in_queue(NOW - timedelta(days=3, hours=4), NOW) == "3 days"

    def test_single_hour(self):
        assert format_time_in_queue(NOW - timedelta(minutes=61), NOW) == "1 hour"

    def test_minutes(self):
        assert format_time_in_queue(NOW - timedelta(minutes=5), NOW) == "5 min"

    def test_naive_entry_time_is_utc(self):
        """SQLite hands back naive datetimes."""
        naive = (NOW - timedelta(days=1)).replace(tzinfo=None)
        assert format_time_in_queue(naive, NOW) == "1 day"


class TestWaitEstimate:
    """Tests for wait estimates."""

    @pytest.mark.parametrize(
        "days,expected",
        [
            (None, "Calculating..."),
            (0.01, "< 1 hour"),
            (0.5, "~12 hours"),
            (1, "~1 day"),
            (2.4, "~2 days"),
            (14, "~2 weeks"),
        ],
    )
    def test_format_wait_estimate(self, days, expected):
        assert format_wait_estimate(days) == expected

    def test_no_cycle_history(self):
        """Levels that never cycled cannot be estimated."""
        assert estimate_wait_time(3, 0) == "Calculating..."

    def test_one_matrix_per_day(self):
        """Seven positions clear per cycle."""
        assert estimate_wait_time(7, 1.0) == "~1 day"
        assert estimate_wait_time(8, 1.0) == "~2 days"

    def test_slow_level_in_weeks(self):
        assert estimate_wait_time(70, 0.5) == "~3 weeks"

    def test_fast_level_in_hours(self):
        assert estimate_wait_time(3, 24.0) == "~1 hour"

    def test_service_alias(self):
        """The service exposes the same estimator."""
        assert QueueStatsService.estimate_wait_time(8, 1.0) == "~2 days"


class TestDatetimeUtils:
    """Tests for timezone helpers."""

    def test_ensure_utc_attaches_tz(self):
        assert ensure_utc(datetime(2026, 1, 1)).tzinfo is UTC

    def test_ensure_utc_keeps_aware(self):
        assert ensure_utc(NOW) is NOW

    def test_hours_since_is_decimal(self):
        assert hours_since(NOW - timedelta(minutes=90), NOW) == Decimal("1.5")

    def test_days_since_whole_days(self):
        assert days_since(NOW - timedelta(days=3, hours=5), NOW) == 3
