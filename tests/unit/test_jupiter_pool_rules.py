"""Unit tests for Jupiter Pool health rules."""

from decimal import Decimal

import pytest

from app.models.enums import LevelHealthStatus
from app.services.jupiter_pool_service import (
    calculate_health_score,
    classify_staleness,
    estimate_intervention,
)


class TestHealthScore:
    """Tests for pool health score."""

    def test_no_deposits_is_healthy(self):
        assert calculate_health_score(Decimal("0"), Decimal("0")) == 100

    def test_ratio_of_deposits(self):
        assert calculate_health_score(Decimal("25"), Decimal("100")) == 25

    def test_rounds_half_up(self):
        assert calculate_health_score(Decimal("1"), Decimal("8")) == 13

    def test_capped_at_hundred(self):
        assert calculate_health_score(Decimal("150"), Decimal("100")) == 100


class TestStaleness:
    """Tests for level staleness classification (defaults 3 / 5 days)."""

    @pytest.mark.parametrize(
        "days,expected",
        [
            (0, LevelHealthStatus.HEALTHY),
            (2, LevelHealthStatus.HEALTHY),
            (3, LevelHealthStatus.WARNING),
            (4, LevelHealthStatus.WARNING),
            (5, LevelHealthStatus.CRITICAL),
            (30, LevelHealthStatus.CRITICAL),
        ],
    )
    def test_thresholds(self, days, expected):
        assert classify_staleness(days) == expected


class TestInterventionEstimate:
    """Tests for intervention estimates."""

    def test_critical_needs_full_matrix(self):
        estimate = estimate_intervention(LevelHealthStatus.CRITICAL, Decimal("10"), 7)
        assert estimate == Decimal("70")

    def test_warning_needs_half_matrix(self):
        estimate = estimate_intervention(LevelHealthStatus.WARNING, Decimal("10"), 9)
        assert estimate == Decimal("35")

    def test_warning_rounded(self):
        """3.5 x 5 = 17.5 rounds to 18."""
        estimate = estimate_intervention(LevelHealthStatus.WARNING, Decimal("5"), 7)
        assert estimate == Decimal("18")

    def test_short_queue_needs_nothing(self):
        estimate = estimate_intervention(LevelHealthStatus.CRITICAL, Decimal("10"), 6)
        assert estimate == Decimal("0")

    def test_healthy_needs_nothing(self):
        estimate = estimate_intervention(LevelHealthStatus.HEALTHY, Decimal("10"), 20)
        assert estimate == Decimal("0")
