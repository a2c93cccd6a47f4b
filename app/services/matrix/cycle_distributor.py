"""
Cycle distributor.

Executes the fixed 7-position payout of a cycle. Rank 1 (highest score)
takes CYCLE_POSITIONS[0] and so on:

    RECEIVER   0.9 x reward to the user, 0.1 x reward to the Jupiter Pool
    DONATE_*   no movement, value is part of the receiver reward
    ADVANCE_*  new WAITING quota at the next level fed with the entry
               value; at the top level the value goes to profit
    COMMUNITY  entry value split reserve/operational/bonus/profit
    REENTRY    entry returns to WAITING with reentries + 1

The whole cycle runs in the caller's transaction. Any broken
precondition raises CycleInvariantError before a commit can happen.
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.matrix_constants import (
    COMMUNITY_BONUS_RATE,
    COMMUNITY_OPERATIONAL_RATE,
    COMMUNITY_PROFIT_RATE,
    COMMUNITY_RESERVE_RATE,
    CYCLE_POSITIONS,
    JUPITER_POOL_RATE,
    MATRIX_SIZE,
    MONEY_QUANTUM,
    RECEIVER_NET_RATE,
    TOTAL_LEVELS,
)
from app.models.enums import CyclePosition, QueueStatus, TransactionType
from app.models.level import Level
from app.models.queue_entry import QueueEntry
from app.models.system_funds import SystemFunds
from app.repositories.bonus_history_repository import BonusHistoryRepository
from app.repositories.cycle_history_repository import CycleHistoryRepository
from app.repositories.level_repository import LevelRepository
from app.repositories.system_funds_repository import SystemFundsRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.services.jupiter_pool_service import JupiterPoolService
from app.services.matrix.calculations import calculate_variable_bonus
from app.services.matrix.queue_manager import QueueManager
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import CycleInvariantError


@dataclass
class PositionPayout:
    """Effect of a cycle on one participant."""

    entry_id: int
    user_id: int
    position: CyclePosition
    amount: Decimal
    action: str


@dataclass
class CycleResult:
    """Summary of a fired cycle."""

    cycle_group_id: str
    level_number: int
    participants: list[PositionPayout] = field(default_factory=list)
    receiver_payout: Decimal = Decimal("0")
    pool_deposit: Decimal = Decimal("0")
    referral_bonus_paid: Decimal = Decimal("0")
    profit_added: Decimal = Decimal("0")
    advanced_entry_ids: list[int] = field(default_factory=list)

    @property
    def total_paid(self) -> Decimal:
        """Money leaving the system to users."""
        return self.receiver_payout + self.referral_bonus_paid


class CycleDistributor(BaseService):
    """Applies the payout protocol to a selected group of entries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize cycle distributor."""
        super().__init__(session)
        self.queue = QueueManager(session)
        self.pool = JupiterPoolService(session)
        self.level_repo = LevelRepository(session)
        self.user_repo = UserRepository(session)
        self.funds_repo = SystemFundsRepository(session)
        self.history_repo = CycleHistoryRepository(session)
        self.bonus_repo = BonusHistoryRepository(session)
        self.transaction_repo = TransactionRepository(session)

    def _check_preconditions(self, level: Level, entries: list[QueueEntry]) -> str:
        if len(entries) != MATRIX_SIZE:
            raise CycleInvariantError(
                f"Level {level.level_number} cycle needs {MATRIX_SIZE} "
                f"candidates, got {len(entries)}",
                level_number=level.level_number,
                candidates=len(entries),
            )

        group_ids = {entry.cycle_group_id for entry in entries}
        if len(group_ids) != 1 or None in group_ids:
            raise CycleInvariantError(
                f"Level {level.level_number} candidates do not share one cycle",
                level_number=level.level_number,
            )

        for entry in entries:
            if entry.status != QueueStatus.PROCESSING.value:
                raise CycleInvariantError(
                    f"Entry {entry.id} is {entry.status}, expected PROCESSING",
                    level_number=level.level_number,
                    entry_id=entry.id,
                )

        if level.cash_balance < level.cycle_cost:
            raise CycleInvariantError(
                f"Level {level.level_number} cash {level.cash_balance} "
                f"is below cycle cost {level.cycle_cost}",
                level_number=level.level_number,
                cash_balance=str(level.cash_balance),
                required=str(level.cycle_cost),
            )

        return group_ids.pop()

    async def distribute(
        self, level: Level, entries: list[QueueEntry]
    ) -> CycleResult:
        """
        Pay out one cycle.

        Args:
            level: Locked level row
            entries: PROCESSING entries ranked by score, one cycle group

        Returns:
            CycleResult

        Raises:
            CycleInvariantError: Wrong candidate set or insufficient cash
        """
        cycle_group_id = self._check_preconditions(level, entries)
        level_number = level.level_number
        entry_value = level.entry_value
        now = utc_now()

        # Ascending lock order: this level is held, the next one follows
        next_level = None
        if level_number < TOTAL_LEVELS:
            next_level = await self.level_repo.get_by_number(
                level_number + 1, for_update=True
            )

        funds = await self.funds_repo.get_funds(for_update=True)
        result = CycleResult(cycle_group_id=cycle_group_id, level_number=level_number)

        for entry, position in zip(entries, CYCLE_POSITIONS, strict=True):
            if position == CyclePosition.RECEIVER:
                amount = await self._pay_receiver(level, entry, result, now)
                action = "receive"
            elif position in (CyclePosition.DONATE_1, CyclePosition.DONATE_2):
                amount = entry_value
                action = "donate"
            elif position in (CyclePosition.ADVANCE_1, CyclePosition.ADVANCE_2):
                amount = entry_value
                action = await self._advance(
                    entry, entry_value, next_level, funds, result
                )
            elif position == CyclePosition.COMMUNITY:
                amount = entry_value
                action = "community"
                await self._distribute_community(level, entry, funds, result, now)
            else:
                amount = entry_value
                action = "reentry"
                await self.queue.recirculate(entry)

            if position != CyclePosition.REENTRY:
                entry.status = QueueStatus.COMPLETED.value
                entry.processed_at = now

            await self.history_repo.create(
                user_id=entry.user_id,
                level_id=level.id,
                queue_entry_id=entry.id,
                position=position.value,
                amount=amount,
                cycle_group_id=cycle_group_id,
                confirmed_at=now,
            )
            result.participants.append(
                PositionPayout(
                    entry_id=entry.id,
                    user_id=entry.user_id,
                    position=position,
                    amount=amount,
                    action=action,
                )
            )

        level.cash_balance -= level.cycle_cost
        if level.cash_balance < 0:
            raise CycleInvariantError(
                f"Level {level_number} cash would go negative",
                level_number=level_number,
            )
        level.total_cycles += 1
        level.total_users -= MATRIX_SIZE - 1
        level.last_cycle_at = now

        funds.total_out += result.total_paid
        await self.session.flush()

        self.logger.info(
            f"Cycle {cycle_group_id} at level {level_number}: "
            f"receiver={result.receiver_payout} pool={result.pool_deposit} "
            f"bonus={result.referral_bonus_paid} profit={result.profit_added} "
            f"advanced={len(result.advanced_entry_ids)}"
        )
        return result

    async def _pay_receiver(
        self,
        level: Level,
        entry: QueueEntry,
        result: CycleResult,
        now: datetime,
    ) -> Decimal:
        reward = level.reward_value
        net = (reward * RECEIVER_NET_RATE).quantize(MONEY_QUANTUM)
        skim = (reward * JUPITER_POOL_RATE).quantize(MONEY_QUANTUM)

        await self.user_repo.credit_earning(entry.user_id, net)
        await self.transaction_repo.record(
            TransactionType.CYCLE_REWARD,
            net,
            user_id=entry.user_id,
            level_number=level.level_number,
            cycle_group_id=result.cycle_group_id,
            description=f"Level {level.level_number} cycle reward",
            confirmed_at=now,
        )
        await self.pool.deposit(
            skim,
            level_number=level.level_number,
            cycle_group_id=result.cycle_group_id,
        )

        result.receiver_payout = net
        result.pool_deposit = skim
        return reward

    async def _advance(
        self,
        entry: QueueEntry,
        entry_value: Decimal,
        next_level: Level | None,
        funds: SystemFunds,
        result: CycleResult,
    ) -> str:
        if next_level is None:
            funds.profit += entry_value
            result.profit_added += entry_value
            return "profit"

        advanced = await self.queue.enqueue(
            entry.user_id,
            next_level.level_number,
            is_new_quota=True,
            level=next_level,
            cash_credit=entry_value,
        )
        await self.user_repo.raise_current_level(
            entry.user_id, next_level.level_number
        )
        result.advanced_entry_ids.append(advanced.id)
        return "advance"

    async def _distribute_community(
        self,
        level: Level,
        entry: QueueEntry,
        funds: SystemFunds,
        result: CycleResult,
        now: datetime,
    ) -> None:
        value = level.entry_value
        bonus_slice = (value * COMMUNITY_BONUS_RATE).quantize(MONEY_QUANTUM)

        funds.reserve += (value * COMMUNITY_RESERVE_RATE).quantize(MONEY_QUANTUM)
        funds.operational += (value * COMMUNITY_OPERATIONAL_RATE).quantize(
            MONEY_QUANTUM
        )
        profit = (value * COMMUNITY_PROFIT_RATE).quantize(MONEY_QUANTUM)

        paid = await self._pay_referral_bonus(
            level, entry, value, bonus_slice, now, result
        )
        profit += bonus_slice - paid

        funds.profit += profit
        result.profit_added += profit
        result.referral_bonus_paid += paid

    async def _pay_referral_bonus(
        self,
        level: Level,
        entry: QueueEntry,
        value: Decimal,
        bonus_slice: Decimal,
        now: datetime,
        result: CycleResult,
    ) -> Decimal:
        user = await self.user_repo.get_by_id(entry.user_id)
        if user is None or user.referrer_id is None:
            return Decimal("0")

        referrer = await self.user_repo.get_by_id(user.referrer_id)
        if referrer is None or not referrer.is_active:
            return Decimal("0")

        referrals = await self.user_repo.count_active_referrals(referrer.id)
        rate = calculate_variable_bonus(referrals)
        amount = min((value * rate).quantize(MONEY_QUANTUM), bonus_slice)
        if amount <= 0:
            return Decimal("0")

        await self.user_repo.credit_earning(referrer.id, amount, bonus=True)
        await self.transaction_repo.record(
            TransactionType.BONUS_REFERRAL,
            amount,
            user_id=referrer.id,
            level_number=level.level_number,
            cycle_group_id=result.cycle_group_id,
            description=f"Referral bonus from user {user.id}",
            confirmed_at=now,
        )
        await self.bonus_repo.create(
            referrer_id=referrer.id,
            referred_id=user.id,
            level_id=level.id,
            cycle_group_id=result.cycle_group_id,
            amount=amount,
            percent=int(rate * 100),
        )
        return amount
