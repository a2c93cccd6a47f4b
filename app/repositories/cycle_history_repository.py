"""
CycleHistory repository.

Data access layer for cycle audit rows.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.cycle_history import CycleHistory
from app.repositories.base import BaseRepository


class CycleHistoryRepository(BaseRepository[CycleHistory]):
    """Repository for CycleHistory entity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize cycle history repository."""
        super().__init__(CycleHistory, session)

    async def get_by_group(self, cycle_group_id: str) -> list[CycleHistory]:
        """Get the rows of one cycle ordered by insertion."""
        stmt = (
            select(CycleHistory)
            .where(CycleHistory.cycle_group_id == cycle_group_id)
            .order_by(CycleHistory.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_committed_groups(
        self, cycle_group_ids: list[str]
    ) -> set[str]:
        """
        Which of the given cycle groups have history rows.

        Args:
            cycle_group_ids: Candidate cycle group IDs

        Returns:
            Subset of IDs with at least one CycleHistory row
        """
        if not cycle_group_ids:
            return set()

        stmt = (
            select(CycleHistory.cycle_group_id)
            .where(CycleHistory.cycle_group_id.in_(cycle_group_ids))
            .distinct()
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def count_level_cycles_since(
        self, level_id: int, since: datetime
    ) -> int:
        """Count distinct cycles fired at a level since a moment."""
        stmt = select(
            func.count(func.distinct(CycleHistory.cycle_group_id))
        ).where(
            CycleHistory.level_id == level_id,
            CycleHistory.created_at >= since,
        )
        result = await self.session.execute(stmt)
        return result.scalar() or 0
