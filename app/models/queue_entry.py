"""
QueueEntry model.

A user's quota at a level. WAITING entries of a level are ordered by
score DESC, entered_at ASC, id ASC.
"""

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.models.base import Base
from app.models.enums import QueueStatus
from app.models.types import ScoreType


if TYPE_CHECKING:
    from app.models.level import Level
    from app.models.user import User


class QueueEntry(Base):
    """QueueEntry model - quotas queued at a level."""

    __tablename__ = "queue_entries"
    __table_args__ = (
        UniqueConstraint(
            'user_id', 'level_id', 'quota_number',
            name='uq_queue_entry_user_level_quota'
        ),
        CheckConstraint(
            'reentries >= 0', name='check_queue_entry_reentries_non_negative'
        ),
        CheckConstraint(
            'quota_number >= 1', name='check_queue_entry_quota_number_positive'
        ),
        Index('idx_queue_entry_level_status', 'level_id', 'status'),
        Index('idx_queue_entry_cycle_group', 'cycle_group_id'),
    )

    # Primary key
    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    # References
    user_id: Mapped[int] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )
    level_id: Mapped[int] = mapped_column(
        ForeignKey("levels.id", ondelete="CASCADE"),
        nullable=False
    )

    # Per-user sequence within the level, starting at 1
    quota_number: Mapped[int] = mapped_column(Integer, nullable=False)

    # Priority
    score: Mapped[Decimal] = mapped_column(
        ScoreType, default=Decimal("0"), nullable=False
    )
    reentries: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=QueueStatus.WAITING.value
    )  # WAITING, PROCESSING, COMPLETED

    # Set while PROCESSING and kept on completion
    cycle_group_id: Mapped[str | None] = mapped_column(
        String(64), nullable=True
    )

    # Timestamps
    entered_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    processed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(
        "User", back_populates="queue_entries"
    )
    level: Mapped["Level"] = relationship(
        "Level", back_populates="queue_entries"
    )

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"<QueueEntry(id={self.id}, user_id={self.user_id}, "
            f"level_id={self.level_id}, quota={self.quota_number}, "
            f"score={self.score}, status={self.status})>"
        )
