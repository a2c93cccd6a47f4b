"""
User repository.

Data access layer for User model: referral graph lookups and
conditional balance updates.
"""

from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.enums import UserStatus
from app.models.user import User
from app.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """User repository with specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize user repository."""
        super().__init__(User, session)

    async def count_active_referrals(self, user_id: int) -> int:
        """
        Count ACTIVE users referred by a user.

        Args:
            user_id: Referrer ID

        Returns:
            Number of active direct referrals
        """
        return await self.count(
            referrer_id=user_id, status=UserStatus.ACTIVE.value
        )

    async def count_active_referrals_bulk(
        self, user_ids: list[int]
    ) -> dict[int, int]:
        """
        Count ACTIVE direct referrals for many users in one query.

        Args:
            user_ids: Referrer IDs

        Returns:
            Dict user_id -> count (users without referrals are absent)
        """
        if not user_ids:
            return {}

        stmt = (
            select(User.referrer_id, func.count(User.id))
            .where(
                User.referrer_id.in_(user_ids),
                User.status == UserStatus.ACTIVE.value,
            )
            .group_by(User.referrer_id)
        )
        result = await self.session.execute(stmt)
        return {referrer_id: count for referrer_id, count in result.all()}

    async def debit_balance(self, user_id: int, amount: Decimal) -> bool:
        """
        Debit balance only if it stays non-negative.

        Args:
            user_id: User ID
            amount: Amount to debit

        Returns:
            True if debited, False if balance was insufficient
        """
        stmt = (
            update(User)
            .where(User.id == user_id, User.balance >= amount)
            .values(balance=User.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def credit_earning(
        self, user_id: int, amount: Decimal, *, bonus: bool = False
    ) -> None:
        """
        Credit a cycle reward or referral bonus.

        Args:
            user_id: User ID
            amount: Amount to credit
            bonus: Count towards total_bonus instead of total_earned
        """
        values = {"balance": User.balance + amount}
        if bonus:
            values["total_bonus"] = User.total_bonus + amount
        else:
            values["total_earned"] = User.total_earned + amount

        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def record_deposit(self, user_id: int, amount: Decimal) -> None:
        """Add an externally paid amount to total_deposited."""
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(total_deposited=User.total_deposited + amount)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)

    async def raise_current_level(self, user_id: int, level_number: int) -> None:
        """Set current_level to level_number if it is higher."""
        stmt = (
            update(User)
            .where(User.id == user_id, User.current_level < level_number)
            .values(current_level=level_number)
            .execution_options(synchronize_session="fetch")
        )
        await self.session.execute(stmt)
