"""
Business constants of the matrix.

Central location for the fixed economics of levels, cycles, scores and
bonuses. Tunable runtime knobs live in app.config.settings instead.
"""

from decimal import Decimal

from app.models.enums import CyclePosition


# Levels
TOTAL_LEVELS = 10
FIRST_LEVEL = 1
BASE_ENTRY_VALUE = Decimal("10")  # level 1 entry, doubles every level
REWARD_MULTIPLIER = Decimal("2")
BONUS_RATE = Decimal("0.40")

# Cycle
MATRIX_SIZE = 7

# Rank 1 is the highest score in the selected group
CYCLE_POSITIONS: tuple[CyclePosition, ...] = (
    CyclePosition.RECEIVER,
    CyclePosition.DONATE_1,
    CyclePosition.ADVANCE_1,
    CyclePosition.DONATE_2,
    CyclePosition.ADVANCE_2,
    CyclePosition.COMMUNITY,
    CyclePosition.REENTRY,
)

# Receiver payout split (of reward value)
RECEIVER_NET_RATE = Decimal("0.90")
JUPITER_POOL_RATE = Decimal("0.10")

# Community position split (of entry value)
COMMUNITY_RESERVE_RATE = Decimal("0.10")
COMMUNITY_OPERATIONAL_RATE = Decimal("0.10")
COMMUNITY_BONUS_RATE = Decimal("0.40")
COMMUNITY_PROFIT_RATE = Decimal("0.40")

# Score weights
SCORE_WAIT_HOUR_WEIGHT = Decimal("2")
SCORE_REENTRY_WEIGHT = Decimal("1.5")

# Referral points: (referrals in band, points per referral)
REFERRAL_POINT_BANDS: tuple[tuple[int, int], ...] = (
    (10, 10),  # 1-10
    (20, 5),   # 11-30
    (20, 2),   # 31-50
    (50, 1),   # 51-100
)
REFERRAL_POINTS_CAP = 290

# Referral bonus tiers: (minimum active referrals, percent), ascending
BONUS_TIERS: tuple[tuple[int, int], ...] = (
    (0, 0),
    (5, 20),
    (10, 40),
)

# Jupiter Pool intervention estimates (multiples of entry value)
INTERVENTION_CRITICAL_MULTIPLIER = Decimal("7")
INTERVENTION_WARNING_MULTIPLIER = Decimal("3.5")

# Money precision
MONEY_QUANTUM = Decimal("0.00000001")
SCORE_QUANTUM = Decimal("0.0001")
