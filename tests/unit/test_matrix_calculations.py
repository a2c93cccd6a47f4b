"""
Unit tests for matrix calculations.

Tests cover:
- Level entry, reward and bonus values
- Progressive referral points and their cap
- Queue score formula
- Referral bonus tiers
"""

from decimal import Decimal

import pytest

from app.services.matrix.calculations import (
    calculate_bonus,
    calculate_level_value,
    calculate_referral_points,
    calculate_reward,
    calculate_score,
    calculate_variable_bonus,
    get_bonus_tier_info,
)


class TestLevelValues:
    """Test level economics."""

    @pytest.mark.parametrize(
        "level_number,expected",
        [
            (1, Decimal("10")),
            (2, Decimal("20")),
            (5, Decimal("160")),
            (10, Decimal("5120")),
        ],
    )
    def test_entry_value_doubles_per_level(self, level_number, expected):
        """Entry value is 10 x 2^(level - 1)."""
        assert calculate_level_value(level_number) == expected

    def test_level_zero_is_fractional(self):
        """Level 0 is not rejected and halves the base value."""
        assert calculate_level_value(0) == Decimal("5")

    def test_reward_is_twice_entry(self):
        """Receiver reward is twice the entry value."""
        assert calculate_reward(1) == Decimal("20")
        assert calculate_reward(10) == Decimal("10240")

    def test_bonus_is_forty_percent_of_entry(self):
        """Bonus slice is 40% of the entry value."""
        assert calculate_bonus(1) == Decimal("4")
        assert calculate_bonus(3) == Decimal("16")

    def test_values_are_decimal(self):
        """Money values never come back as float."""
        assert isinstance(calculate_level_value(3), Decimal)
        assert isinstance(calculate_reward(3), Decimal)
        assert isinstance(calculate_bonus(3), Decimal)


class TestReferralPoints:
    """Test progressive referral points."""

    @pytest.mark.parametrize(
        "referrals,expected",
        [
            (0, 0),
            (1, 10),
            (10, 100),
            (11, 105),
            (30, 200),
            (31, 202),
            (50, 240),
            (51, 241),
            (100, 290),
        ],
    )
    def test_band_boundaries(self, referrals, expected):
        """Each band scores its own points per referral."""
        assert calculate_referral_points(referrals) == expected

    def test_capped_above_hundred(self):
        """Points stop growing at 290."""
        assert calculate_referral_points(150) == 290
        assert calculate_referral_points(10_000) == 290

    def test_monotonic(self):
        """More referrals never score fewer points."""
        points = [calculate_referral_points(n) for n in range(0, 160)]
        assert points == sorted(points)

    def test_negative_count_flows_through(self):
        """Negative counts are not clamped."""
        assert calculate_referral_points(-3) == -30


class TestScore:
    """Test queue score."""

    def test_documented_example(self):
        """24h waiting, 2 reentries, 5 referrals -> 101."""
        assert calculate_score(24, 2, 5) == Decimal("101")

    def test_capped_referrals_example(self):
        """24h waiting, no reentries, 100 referrals -> 48 + 290 = 338."""
        assert calculate_score(24, 0, 100) == Decimal("338")

    def test_fresh_entry_scores_referral_points_only(self):
        """A new quota starts with its owner's referral points."""
        assert calculate_score(0, 0, 10) == Decimal("100")

    def test_fractional_hours(self):
        """Wait time is weighted per fractional hour."""
        assert calculate_score(Decimal("1.5"), 0, 0) == Decimal("3")

    def test_reentry_weight(self):
        """Each reentry adds 1.5."""
        assert calculate_score(0, 3, 0) == Decimal("4.5")

    def test_float_hours_accepted(self):
        """Float input is converted through str, not binary."""
        assert calculate_score(0.1, 0, 0) == Decimal("0.2")


class TestVariableBonus:
    """Test referral bonus tiers."""

    @pytest.mark.parametrize(
        "referrals,expected",
        [
            (0, Decimal("0")),
            (4, Decimal("0")),
            (5, Decimal("0.2")),
            (9, Decimal("0.2")),
            (10, Decimal("0.4")),
            (250, Decimal("0.4")),
        ],
    )
    def test_tier_boundaries(self, referrals, expected):
        """Bonus rate switches at 5 and 10 active referrals."""
        assert calculate_variable_bonus(referrals) == expected

    def test_tier_info_lowest(self):
        """Lowest tier points at the next one."""
        info = get_bonus_tier_info(2)

        assert info.percent == 0
        assert info.label == "0%"
        assert info.next_tier_at == 5
        assert info.next_tier_percent == 20

    def test_tier_info_middle(self):
        """Middle tier points at the top one."""
        info = get_bonus_tier_info(7)

        assert info.percent == 20
        assert info.next_tier_at == 10
        assert info.next_tier_percent == 40

    def test_tier_info_top(self):
        """Top tier has no next tier."""
        info = get_bonus_tier_info(12)

        assert info.percent == 40
        assert info.next_tier_at is None
        assert info.next_tier_percent is None
