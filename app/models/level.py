"""
Level model.

One row per matrix level (1-10). Economics are fixed at seed time;
the pooled cash balance and counters move with purchases and cycles.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import CheckConstraint, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.types import MoneyType


if TYPE_CHECKING:
    from app.models.queue_entry import QueueEntry


class Level(Base):
    """Level model - per-level economics and pooled cash."""

    __tablename__ = "levels"
    __table_args__ = (
        CheckConstraint(
            'level_number >= 1 AND level_number <= 10',
            name='check_level_number_range'
        ),
        CheckConstraint(
            'cash_balance >= 0', name='check_level_cash_non_negative'
        ),
        CheckConstraint(
            'total_users >= 0', name='check_level_total_users_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    level_number: Mapped[int] = mapped_column(
        Integer, nullable=False, unique=True, index=True
    )

    # Economics (derived from level_number, immutable after creation)
    entry_value: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    reward_value: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    bonus_value: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)

    # Pooled state
    cash_balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_cycles: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )
    # Cached count of WAITING + PROCESSING entries
    total_users: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Timestamps
    last_cycle_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    queue_entries: Mapped[list["QueueEntry"]] = relationship(
        "QueueEntry",
        back_populates="level",
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<Level(number={self.level_number}, entry={self.entry_value}, "
            f"cash={self.cash_balance}, cycles={self.total_cycles})>"
        )

    @property
    def cycle_cost(self) -> Decimal:
        """Cash drawn from the level by one cycle."""
        return self.entry_value * 7
