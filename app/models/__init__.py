"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from app.models.base import Base
from app.models.bonus_history import BonusHistory
from app.models.cycle_history import CycleHistory
from app.models.enums import (
    CyclePosition,
    LevelHealthStatus,
    QueueStatus,
    TransactionStatus,
    TransactionType,
    UserStatus,
)
from app.models.jupiter_pool import JupiterPool
from app.models.level import Level
from app.models.queue_entry import QueueEntry
from app.models.system_funds import SystemFunds
from app.models.transaction import Transaction
from app.models.user import User


__all__ = [
    "Base",
    "BonusHistory",
    "CycleHistory",
    "CyclePosition",
    "JupiterPool",
    "Level",
    "LevelHealthStatus",
    "QueueEntry",
    "QueueStatus",
    "SystemFunds",
    "Transaction",
    "TransactionStatus",
    "TransactionType",
    "User",
    "UserStatus",
]
