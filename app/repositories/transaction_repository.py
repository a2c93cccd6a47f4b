"""
Transaction repository.

Ledger writes and lookups.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import TransactionStatus, TransactionType
from app.models.transaction import Transaction
from app.repositories.base import BaseRepository


class TransactionRepository(BaseRepository[Transaction]):
    """Repository for Transaction entity."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize transaction repository."""
        super().__init__(Transaction, session)

    async def record(
        self,
        type: TransactionType,
        amount: Decimal,
        *,
        user_id: int | None = None,
        level_number: int | None = None,
        cycle_group_id: str | None = None,
        external_ref: str | None = None,
        description: str | None = None,
        confirmed_at: datetime | None = None,
    ) -> Transaction:
        """
        Record a confirmed ledger transaction.

        Args:
            type: Transaction type
            amount: Amount (non-negative)
            user_id: Owner, None for pool-only rows
            level_number: Level the movement belongs to
            cycle_group_id: Cycle the movement belongs to
            external_ref: Unique payment reference
            description: Human readable note
            confirmed_at: Confirmation time

        Returns:
            Created transaction
        """
        return await self.create(
            user_id=user_id,
            type=type.value,
            amount=amount,
            status=TransactionStatus.CONFIRMED.value,
            level_number=level_number,
            cycle_group_id=cycle_group_id,
            external_ref=external_ref,
            description=description,
            confirmed_at=confirmed_at,
        )

    async def external_ref_exists(self, external_ref: str) -> bool:
        """Check if a payment reference was already consumed."""
        return await self.exists(external_ref=external_ref)

    async def get_by_cycle(self, cycle_group_id: str) -> list[Transaction]:
        """Get ledger rows of one cycle."""
        stmt = (
            select(Transaction)
            .where(Transaction.cycle_group_id == cycle_group_id)
            .order_by(Transaction.id.asc())
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
