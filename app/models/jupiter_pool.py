"""
JupiterPool model.

Singleton row (id=1) holding the secondary reserve funded by the
receiver skim.
"""

from datetime import UTC, date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.types import MoneyType


class JupiterPool(Base):
    """JupiterPool model - reserve balance and counters."""

    __tablename__ = "jupiter_pool"
    __table_args__ = (
        CheckConstraint(
            'balance >= 0', name='check_jupiter_pool_balance_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_deposits: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_withdrawals: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Reset when counters_date is not today (UTC)
    today_deposits: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    today_withdrawals: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    counters_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    total_interventions: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<JupiterPool(balance={self.balance}, "
            f"deposits={self.total_deposits}, "
            f"withdrawals={self.total_withdrawals})>"
        )
