"""
BonusHistory model.

Referral bonuses paid from the community position of a cycle.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class BonusHistory(Base):
    """BonusHistory model - referral bonus payouts."""

    __tablename__ = "bonus_history"
    __table_args__ = (
        CheckConstraint(
            'amount > 0', name='check_bonus_history_amount_positive'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    referrer_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    referred_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    level_id: Mapped[int] = mapped_column(
        ForeignKey("levels.id", ondelete="CASCADE"),
        nullable=False
    )
    cycle_group_id: Mapped[str] = mapped_column(String(64), nullable=False)

    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    # Tier percent of the referrer at payout time (0, 20, 40)
    percent: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<BonusHistory(referrer_id={self.referrer_id}, "
            f"referred_id={self.referred_id}, amount={self.amount}, "
            f"percent={self.percent})>"
        )
