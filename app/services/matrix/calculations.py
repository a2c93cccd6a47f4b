"""
Matrix calculations.

Pure functions for level economics, referral points, bonus tiers and
queue scores. No database access; every result is a Decimal or int so
it can be stored in DECIMAL columns without float drift.

Negative inputs are accepted as-is and flow through the formulas.
"""

from dataclasses import dataclass
from decimal import Decimal

from app.config.matrix_constants import (
    BASE_ENTRY_VALUE,
    BONUS_RATE,
    BONUS_TIERS,
    REFERRAL_POINT_BANDS,
    REFERRAL_POINTS_CAP,
    REWARD_MULTIPLIER,
    SCORE_QUANTUM,
    SCORE_REENTRY_WEIGHT,
    SCORE_WAIT_HOUR_WEIGHT,
)


@dataclass(frozen=True)
class BonusTierInfo:
    """Referral bonus tier of a referrer."""

    percent: int
    label: str
    next_tier_at: int | None
    next_tier_percent: int | None


def calculate_level_value(level_number: int) -> Decimal:
    """
    Entry value of a level: 10 x 2^(level - 1).

    Levels below 1 yield fractional values.

    Args:
        level_number: Level number

    Returns:
        Entry value

    Example:
        >>> calculate_level_value(5)
        Decimal('160')
    """
    return BASE_ENTRY_VALUE * (Decimal(2) ** (level_number - 1))


def calculate_reward(level_number: int) -> Decimal:
    """Reward of a cycle receiver: twice the entry value."""
    return calculate_level_value(level_number) * REWARD_MULTIPLIER


def calculate_bonus(level_number: int) -> Decimal:
    """Referral bonus slice of a level: 40% of the entry value."""
    return calculate_level_value(level_number) * BONUS_RATE


def calculate_referral_points(referral_count: int) -> int:
    """
    Progressive referral points with a hard cap.

    First 10 referrals score 10 points each, the next 20 score 5, the
    next 20 score 2 and the next 50 score 1. Capped at 290.

    Args:
        referral_count: Number of active direct referrals

    Returns:
        Referral points

    Example:
        >>> calculate_referral_points(30)
        200
    """
    if referral_count <= 0:
        first_band_size, first_band_points = REFERRAL_POINT_BANDS[0]
        return min(first_band_size, referral_count) * first_band_points

    points = 0
    remaining = referral_count
    for band_size, points_per_referral in REFERRAL_POINT_BANDS:
        taken = min(remaining, band_size)
        points += taken * points_per_referral
        remaining -= taken
        if remaining <= 0:
            break

    return min(points, REFERRAL_POINTS_CAP)


def calculate_score(
    waiting_hours: Decimal | int | float,
    reentries: int,
    referral_count: int,
) -> Decimal:
    """
    Queue priority score.

    score = waiting_hours x 2 + reentries x 1.5 + referral points

    Args:
        waiting_hours: Hours since the entry joined the queue
        reentries: Times the entry recirculated or was topped up
        referral_count: Active direct referrals of the owner

    Returns:
        Score rounded to 4 decimal places

    Example:
        >>> calculate_score(24, 2, 5)
        Decimal('101.0000')
    """
    hours = Decimal(str(waiting_hours))
    score = (
        hours * SCORE_WAIT_HOUR_WEIGHT
        + Decimal(reentries) * SCORE_REENTRY_WEIGHT
        + Decimal(calculate_referral_points(referral_count))
    )
    return score.quantize(SCORE_QUANTUM)


def _tier_index(referral_count: int) -> int:
    index = 0
    for i, (threshold, _percent) in enumerate(BONUS_TIERS):
        if referral_count >= threshold:
            index = i
    return index


def calculate_variable_bonus(referral_count: int) -> Decimal:
    """
    Share of the referral slice a referrer receives.

    0 below 5 active referrals, 0.20 from 5, 0.40 from 10.
    """
    _threshold, percent = BONUS_TIERS[_tier_index(referral_count)]
    return Decimal(percent) / Decimal(100)


def get_bonus_tier_info(referral_count: int) -> BonusTierInfo:
    """
    Describe the bonus tier of a referrer and the next one.

    Args:
        referral_count: Active direct referrals

    Returns:
        BonusTierInfo; next tier fields are None at the top tier
    """
    index = _tier_index(referral_count)
    _threshold, percent = BONUS_TIERS[index]

    next_tier_at = None
    next_tier_percent = None
    if index + 1 < len(BONUS_TIERS):
        next_tier_at, next_tier_percent = BONUS_TIERS[index + 1]

    return BonusTierInfo(
        percent=percent,
        label=f"{percent}%",
        next_tier_at=next_tier_at,
        next_tier_percent=next_tier_percent,
    )
