"""
Matrix engine.

Queue scoring, cycle formation and payout distribution.
"""

from app.services.matrix.calculations import (
    BonusTierInfo,
    calculate_bonus,
    calculate_level_value,
    calculate_referral_points,
    calculate_reward,
    calculate_score,
    calculate_variable_bonus,
    get_bonus_tier_info,
)
from app.services.matrix.cycle_distributor import CycleDistributor, CycleResult
from app.services.matrix.queue_manager import PurchaseEligibility, QueueManager
from app.services.matrix.service import (
    CycleOutcome,
    MatrixService,
    PurchaseResult,
    RecoveryResult,
    SweepResult,
)


__all__ = [
    "BonusTierInfo",
    "CycleDistributor",
    "CycleOutcome",
    "CycleResult",
    "MatrixService",
    "PurchaseEligibility",
    "PurchaseResult",
    "QueueManager",
    "RecoveryResult",
    "SweepResult",
    "calculate_bonus",
    "calculate_level_value",
    "calculate_referral_points",
    "calculate_reward",
    "calculate_score",
    "calculate_variable_bonus",
    "get_bonus_tier_info",
]
