"""
CycleHistory model.

One row per position of a fired cycle; the seven rows of a cycle share
a cycle_group_id.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import Base
from app.models.enums import TransactionStatus
from app.models.types import MoneyType


class CycleHistory(Base):
    """CycleHistory model - audit trail of cycle positions."""

    __tablename__ = "cycle_history"
    __table_args__ = (
        UniqueConstraint(
            'cycle_group_id', 'position',
            name='uq_cycle_history_group_position'
        ),
        CheckConstraint(
            'amount >= 0', name='check_cycle_history_amount_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    level_id: Mapped[int] = mapped_column(
        ForeignKey("levels.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    queue_entry_id: Mapped[int | None] = mapped_column(
        ForeignKey("queue_entries.id", ondelete="SET NULL"),
        nullable=True
    )

    position: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # RECEIVER .. REENTRY
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    cycle_group_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=TransactionStatus.CONFIRMED.value
    )

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<CycleHistory(cycle={self.cycle_group_id}, "
            f"position={self.position}, user_id={self.user_id}, "
            f"amount={self.amount})>"
        )
