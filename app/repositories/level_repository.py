"""
Level repository.

Reads and locks level rows. Locks are always taken in ascending
level_number order.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.level import Level
from app.repositories.base import BaseRepository


class LevelRepository(BaseRepository[Level]):
    """Repository for Level entity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize level repository."""
        super().__init__(Level, session)

    async def get_by_number(
        self, level_number: int, for_update: bool = False
    ) -> Level | None:
        """
        Get level by its number.

        Args:
            level_number: Level number (1-10)
            for_update: Lock the row with SELECT FOR UPDATE

        Returns:
            Level or None
        """
        stmt = select(Level).where(Level.level_number == level_number)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_many(self, level_numbers: Iterable[int]) -> dict[int, Level]:
        """
        Lock several levels in ascending order.

        Args:
            level_numbers: Level numbers to lock, any order

        Returns:
            Dict level_number -> locked Level (missing numbers omitted)
        """
        numbers = sorted(set(level_numbers))
        stmt = (
            select(Level)
            .where(Level.level_number.in_(numbers))
            .order_by(Level.level_number.asc())
            .with_for_update()
        )
        result = await self.session.execute(stmt)
        return {level.level_number: level for level in result.scalars().all()}

    async def get_all(self) -> list[Level]:
        """Get all levels ordered by number."""
        stmt = select(Level).order_by(Level.level_number.asc())
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
