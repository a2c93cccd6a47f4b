"""
SystemFunds repository.

Access to the singleton funds row.
"""

from sqlalchemy.ext.asyncio import AsyncSession

from app.models.system_funds import SystemFunds
from app.repositories.base import BaseRepository


SYSTEM_FUNDS_ID = 1


class SystemFundsRepository(BaseRepository[SystemFunds]):
    """Repository for the SystemFunds singleton."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize system funds repository."""
        super().__init__(SystemFunds, session)

    async def get_funds(self, for_update: bool = False) -> SystemFunds:
        """
        Get the funds row, creating it on first use.

        Args:
            for_update: Lock the row with SELECT FOR UPDATE

        Returns:
            SystemFunds singleton
        """
        funds = await self.get_by_id(SYSTEM_FUNDS_ID, for_update=for_update)
        if funds is None:
            funds = await self.create(id=SYSTEM_FUNDS_ID)
        return funds
