"""
Transaction model.

Ledger of balance movements. Pool-only rows carry no user.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TransactionStatus
from app.models.types import MoneyType


class Transaction(Base):
    """Transaction model - ledger entries."""

    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint(
            'amount >= 0', name='check_transaction_amount_non_negative'
        ),
        Index('idx_transaction_type', 'type'),
        Index('idx_transaction_cycle_group', 'cycle_group_id'),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True
    )

    type: Mapped[str] = mapped_column(String(40), nullable=False)
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.PENDING.value
    )

    # Context
    level_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    cycle_group_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )
    # Payment reference from the verifier, never reused
    external_ref: Mapped[str | None] = mapped_column(
        String(255), nullable=True, unique=True
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Transaction(id={self.id}, type={self.type}, "
            f"user_id={self.user_id}, amount={self.amount}, "
            f"status={self.status})>"
        )
