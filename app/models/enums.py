"""
Enumerations shared by models and services.

Stored in the database as their string values.
"""

from enum import Enum


class UserStatus(str, Enum):
    """Account status of a participant."""

    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"


class QueueStatus(str, Enum):
    """Status of a queue entry (quota)."""

    WAITING = "WAITING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"


class CyclePosition(str, Enum):
    """Role a quota plays inside a fired cycle."""

    RECEIVER = "RECEIVER"
    DONATE_1 = "DONATE_1"
    ADVANCE_1 = "ADVANCE_1"
    DONATE_2 = "DONATE_2"
    ADVANCE_2 = "ADVANCE_2"
    COMMUNITY = "COMMUNITY"
    REENTRY = "REENTRY"


class TransactionType(str, Enum):
    """Ledger transaction types."""

    DEPOSIT = "DEPOSIT"
    QUOTA_PURCHASE = "QUOTA_PURCHASE"
    CYCLE_REWARD = "CYCLE_REWARD"
    BONUS_REFERRAL = "BONUS_REFERRAL"
    WITHDRAWAL = "WITHDRAWAL"
    INTERNAL_TRANSFER_IN = "INTERNAL_TRANSFER_IN"
    INTERNAL_TRANSFER_OUT = "INTERNAL_TRANSFER_OUT"
    JUPITER_POOL_DEPOSIT = "JUPITER_POOL_DEPOSIT"
    JUPITER_POOL_WITHDRAWAL = "JUPITER_POOL_WITHDRAWAL"


class TransactionStatus(str, Enum):
    """Ledger transaction status."""

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


class LevelHealthStatus(str, Enum):
    """Staleness classification of a level."""

    HEALTHY = "healthy"
    WARNING = "warning"
    CRITICAL = "critical"
