"""
BonusHistory repository.

Data access layer for referral bonus payouts.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.bonus_history import BonusHistory
from app.repositories.base import BaseRepository


class BonusHistoryRepository(BaseRepository[BonusHistory]):
    """Repository for BonusHistory entity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize bonus history repository."""
        super().__init__(BonusHistory, session)

    async def get_total_for_referrer(self, referrer_id: int) -> Decimal:
        """Sum of bonuses paid to a referrer."""
        stmt = select(func.coalesce(func.sum(BonusHistory.amount), 0)).where(
            BonusHistory.referrer_id == referrer_id
        )
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))
