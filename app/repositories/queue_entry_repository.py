"""
QueueEntry repository.

Queue queries for a level: ordering, counting, candidate locking and
position lookup.
"""

from datetime import datetime

from sqlalchemy import and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import QueueStatus
from app.models.queue_entry import QueueEntry
from app.repositories.base import BaseRepository


class QueueEntryRepository(BaseRepository[QueueEntry]):
    """Repository for QueueEntry entity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize queue entry repository."""
        super().__init__(QueueEntry, session)

    @staticmethod
    def _queue_order():
        return (
            QueueEntry.score.desc(),
            QueueEntry.entered_at.asc(),
            QueueEntry.id.asc(),
        )

    async def count_waiting(self, level_id: int) -> int:
        """Count WAITING entries of a level."""
        return await self.count(
            level_id=level_id, status=QueueStatus.WAITING.value
        )

    async def count_user_waiting(self, user_id: int, level_id: int) -> int:
        """Count WAITING entries of a user at a level."""
        return await self.count(
            user_id=user_id,
            level_id=level_id,
            status=QueueStatus.WAITING.value,
        )

    async def count_user_open(self, user_id: int, level_id: int) -> int:
        """Count WAITING + PROCESSING entries of a user at a level."""
        stmt = select(func.count()).select_from(QueueEntry).where(
            QueueEntry.user_id == user_id,
            QueueEntry.level_id == level_id,
            QueueEntry.status.in_(
                [QueueStatus.WAITING.value, QueueStatus.PROCESSING.value]
            ),
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0

    async def count_user_total(self, user_id: int, level_id: int) -> int:
        """Count all entries of a user at a level, any status."""
        return await self.count(user_id=user_id, level_id=level_id)

    async def get_user_waiting(
        self, user_id: int, level_id: int
    ) -> QueueEntry | None:
        """
        Get the user's best placed WAITING entry at a level.

        Args:
            user_id: User ID
            level_id: Level ID

        Returns:
            QueueEntry or None
        """
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.user_id == user_id,
                QueueEntry.level_id == level_id,
                QueueEntry.status == QueueStatus.WAITING.value,
            )
            .order_by(*self._queue_order())
            .limit(1)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_waiting(self, level_id: int) -> list[QueueEntry]:
        """Get all WAITING entries of a level in queue order."""
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.level_id == level_id,
                QueueEntry.status == QueueStatus.WAITING.value,
            )
            .order_by(*self._queue_order())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def lock_top_waiting(
        self, level_id: int, limit: int
    ) -> list[QueueEntry]:
        """
        Lock the top WAITING entries of a level.

        Args:
            level_id: Level ID
            limit: Number of entries

        Returns:
            Locked entries in queue order
        """
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.level_id == level_id,
                QueueEntry.status == QueueStatus.WAITING.value,
            )
            .order_by(*self._queue_order())
            .limit(limit)
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_waiting_page(
        self, level_id: int, offset: int, limit: int
    ) -> list[QueueEntry]:
        """Get a page of WAITING entries in queue order."""
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.level_id == level_id,
                QueueEntry.status == QueueStatus.WAITING.value,
            )
            .order_by(*self._queue_order())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_user_waiting_entries(
        self, user_id: int, level_id: int
    ) -> list[QueueEntry]:
        """Get all WAITING entries of a user at a level in queue order."""
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.user_id == user_id,
                QueueEntry.level_id == level_id,
                QueueEntry.status == QueueStatus.WAITING.value,
            )
            .order_by(*self._queue_order())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_position(self, entry: QueueEntry) -> int:
        """
        1-based position of a WAITING entry in its level's queue.

        Args:
            entry: WAITING queue entry

        Returns:
            Number of entries ahead of it plus one
        """
        ahead = or_(
            QueueEntry.score > entry.score,
            and_(
                QueueEntry.score == entry.score,
                QueueEntry.entered_at < entry.entered_at,
            ),
            and_(
                QueueEntry.score == entry.score,
                QueueEntry.entered_at == entry.entered_at,
                QueueEntry.id < entry.id,
            ),
        )
        stmt = select(func.count()).select_from(QueueEntry).where(
            QueueEntry.level_id == entry.level_id,
            QueueEntry.status == QueueStatus.WAITING.value,
            ahead,
        )
        result = await self.session.execute(stmt)
        return (result.scalar() or 0) + 1

    async def get_oldest_waiting_entered_at(
        self, level_id: int
    ) -> datetime | None:
        """Entry time of the oldest WAITING entry of a level."""
        stmt = select(func.min(QueueEntry.entered_at)).where(
            QueueEntry.level_id == level_id,
            QueueEntry.status == QueueStatus.WAITING.value,
        )
        result = await self.session.execute(stmt)
        return result.scalar()

    async def find_stuck_processing(
        self, older_than: datetime
    ) -> list[QueueEntry]:
        """
        Find PROCESSING entries not touched since a moment.

        Args:
            older_than: Entries updated before this are stuck

        Returns:
            Locked entries ordered by level and id
        """
        stmt = (
            select(QueueEntry)
            .where(
                QueueEntry.status == QueueStatus.PROCESSING.value,
                QueueEntry.updated_at < older_than,
            )
            .order_by(QueueEntry.level_id.asc(), QueueEntry.id.asc())
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
