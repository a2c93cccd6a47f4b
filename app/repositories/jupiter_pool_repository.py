"""
JupiterPool repository.

Access to the singleton pool row.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.jupiter_pool import JupiterPool
from app.repositories.base import BaseRepository


JUPITER_POOL_ID = 1


class JupiterPoolRepository(BaseRepository[JupiterPool]):
    """Repository for the JupiterPool singleton."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize Jupiter Pool repository."""
        super().__init__(JupiterPool, session)

    async def get_pool(self, for_update: bool = False) -> JupiterPool:
        """
        Get the pool row, creating it on first use.

        Args:
            for_update: Lock the row with SELECT FOR UPDATE

        Returns:
            JupiterPool singleton
        """
        pool = await self.get_by_id(JUPITER_POOL_ID, for_update=for_update)
        if pool is None:
            pool = await self.create(id=JUPITER_POOL_ID)
        return pool
