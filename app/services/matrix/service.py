"""
Matrix service.

Transport-agnostic entry point of the matrix engine. Every public
operation opens its own session, runs as one transaction and is retried
on serialization conflicts. Not-found and validation errors come back
as typed results; fatal cycle invariants are rolled back and logged.
"""

from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import Any

from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.config.matrix_constants import FIRST_LEVEL, TOTAL_LEVELS
from app.config.settings import settings
from app.models.enums import QueueStatus, TransactionType, UserStatus
from app.models.level import Level
from app.models.system_funds import SystemFunds
from app.models.user import User
from app.repositories.cycle_history_repository import CycleHistoryRepository
from app.repositories.jupiter_pool_repository import JupiterPoolRepository
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.repositories.system_funds_repository import SystemFundsRepository
from app.repositories.transaction_repository import TransactionRepository
from app.repositories.user_repository import UserRepository
from app.services.base_service import log_operation
from app.services.jupiter_pool_service import InjectionResult, JupiterPoolService
from app.services.matrix.calculations import (
    calculate_bonus,
    calculate_level_value,
    calculate_reward,
)
from app.services.matrix.cycle_distributor import CycleDistributor, CycleResult
from app.services.matrix.queue_manager import PurchaseEligibility, QueueManager
from app.utils.datetime_utils import utc_now
from app.utils.db_decorators import with_conflict_retry
from app.utils.exceptions import (
    NOT_FOUND_ERRORS,
    CycleInvariantError,
    LevelNotFoundError,
    MatrixValidationError,
    UserNotFoundError,
)


@dataclass
class CycleOutcome:
    """Result of one cycle attempt."""

    fired: bool
    level_number: int
    cycle: CycleResult | None = None
    error: str | None = None


@dataclass
class PurchaseResult:
    """Result of a quota purchase or user activation."""

    success: bool
    quota_id: int | None = None
    quota_number: int | None = None
    error: str | None = None
    context: dict[str, Any] = field(default_factory=dict)
    cycle: CycleOutcome | None = None


@dataclass
class SweepResult:
    """Result of a pending-cycles sweep."""

    cycles_processed: int = 0
    by_level: dict[int, int] = field(default_factory=dict)
    errors: list[str] = field(default_factory=list)


@dataclass
class RecoveryResult:
    """Result of a stuck-entry recovery pass."""

    reverted: int = 0
    completed: int = 0


class MatrixService:
    """
    Facade over queue manager and cycle distributor.

    Args:
        session_maker: Factory of AsyncSession, defaults to the
            application's async_session_maker
    """

    def __init__(
        self, session_maker: async_sessionmaker[AsyncSession] | None = None
    ) -> None:
        if session_maker is None:
            from app.config.database import async_session_maker

            session_maker = async_session_maker
        self.session_maker = session_maker
        self.logger = logger.bind(service=self.__class__.__name__)

    # Queries

    async def can_purchase_quota(
        self, user_id: int, level_number: int
    ) -> PurchaseEligibility:
        """Check if a user may buy a quota at a level."""
        async with self.session_maker() as session:
            return await QueueManager(session).can_purchase(user_id, level_number)

    async def count_user_quotas(self, user_id: int, level_number: int) -> int:
        """Count the user's WAITING quotas at a level."""
        async with self.session_maker() as session:
            return await QueueManager(session).count_active_quotas(
                user_id, level_number
            )

    async def can_process_cycle(self, level_number: int) -> bool:
        """Check if a level is ready for a cycle."""
        async with self.session_maker() as session:
            return await QueueManager(session).can_process_cycle(level_number)

    # Purchases

    async def purchase_quota(
        self,
        user_id: int,
        level_number: int,
        external_payment_ref: str | None = None,
    ) -> PurchaseResult:
        """
        Buy a quota at a level.

        Without external_payment_ref the entry value is debited from the
        user's balance; with it a confirmed DEPOSIT is recorded instead.
        A successful purchase may fire a cycle right away
        (AUTO_PROCESS_CYCLES). A failure of that cycle never undoes the
        purchase; it is reported in PurchaseResult.cycle and left to the
        sweep.

        Args:
            user_id: Buyer
            level_number: Target level (1-10)
            external_payment_ref: Verified payment reference

        Returns:
            PurchaseResult

        Raises:
            ConcurrencyConflictError: Conflict retries exhausted before the
                purchase committed
        """
        try:
            result = await self._purchase(user_id, level_number, external_payment_ref)
        except NOT_FOUND_ERRORS + (MatrixValidationError,) as e:
            self.logger.info(
                f"Purchase denied for user {user_id} at level {level_number}: "
                f"{e.message}"
            )
            return PurchaseResult(success=False, error=e.message, context=e.context)

        return await self._after_purchase(result, level_number)

    @with_conflict_retry
    async def _purchase(
        self,
        user_id: int,
        level_number: int,
        external_payment_ref: str | None,
    ) -> PurchaseResult:
        async with self.session_maker() as session, session.begin():
            if not FIRST_LEVEL <= level_number <= TOTAL_LEVELS:
                raise MatrixValidationError(
                    f"Invalid level: {level_number}", level_number=level_number
                )

            level = await LevelRepository(session).get_by_number(
                level_number, for_update=True
            )
            if level is None:
                raise LevelNotFoundError(level_number)

            # Lock order: level, funds, then the user row
            funds = await SystemFundsRepository(session).get_funds(for_update=True)
            user = await UserRepository(session).get_by_id(user_id, for_update=True)
            if user is None:
                raise UserNotFoundError(user_id)

            eligibility = await QueueManager(session).can_purchase(
                user_id, level_number
            )
            if not eligibility.can_purchase:
                raise MatrixValidationError(
                    eligibility.reason or "Purchase not allowed",
                    user_id=user_id,
                    level_number=level_number,
                )

            open_quotas = await QueueEntryRepository(session).count_user_open(
                user_id, level.id
            )
            if open_quotas >= settings.max_quotas_per_level:
                raise MatrixValidationError(
                    f"Quota limit of {settings.max_quotas_per_level} reached "
                    f"at level {level_number}",
                    user_id=user_id,
                    level_number=level_number,
                    open_quotas=open_quotas,
                    max_quotas=settings.max_quotas_per_level,
                )

            return await self._buy_quota(
                session, user, level, funds, external_payment_ref
            )

    async def _buy_quota(
        self,
        session: AsyncSession,
        user: User,
        level: Level,
        funds: SystemFunds,
        external_payment_ref: str | None,
    ) -> PurchaseResult:
        users = UserRepository(session)
        transactions = TransactionRepository(session)
        price = level.entry_value
        now = utc_now()

        if external_payment_ref:
            if await transactions.external_ref_exists(external_payment_ref):
                raise MatrixValidationError(
                    "Payment reference already used",
                    external_payment_ref=external_payment_ref,
                )
            try:
                await transactions.record(
                    TransactionType.DEPOSIT,
                    price,
                    user_id=user.id,
                    level_number=level.level_number,
                    external_ref=external_payment_ref,
                    description=f"Payment for level {level.level_number} quota",
                    confirmed_at=now,
                )
            except IntegrityError as e:
                # A concurrent purchase stored the same reference first
                raise MatrixValidationError(
                    "Payment reference already used",
                    external_payment_ref=external_payment_ref,
                ) from e
            await users.record_deposit(user.id, price)
        elif not await users.debit_balance(user.id, price):
            raise MatrixValidationError(
                "Insufficient balance",
                user_id=user.id,
                balance=str(user.balance),
                required=str(price),
            )

        entry = await QueueManager(session).enqueue(
            user.id, level.level_number, is_new_quota=True, level=level
        )
        await transactions.record(
            TransactionType.QUOTA_PURCHASE,
            price,
            user_id=user.id,
            level_number=level.level_number,
            description=f"Level {level.level_number} quota #{entry.quota_number}",
            confirmed_at=now,
        )
        funds.total_in += price
        await users.raise_current_level(user.id, level.level_number)

        self.logger.info(
            f"User {user.id} bought quota #{entry.quota_number} "
            f"at level {level.level_number} for {price}"
        )
        return PurchaseResult(
            success=True, quota_id=entry.id, quota_number=entry.quota_number
        )

    async def _after_purchase(
        self, result: PurchaseResult, level_number: int
    ) -> PurchaseResult:
        # The purchase is committed here; a failing cycle is left to the sweep
        if not (result.success and settings.auto_process_cycles):
            return result

        try:
            if await self.can_process_cycle(level_number):
                result.cycle = await self.process_cycle(level_number)
        except Exception as e:
            self.logger.exception(
                f"Cycle after purchase of quota {result.quota_id} at level "
                f"{level_number} failed, deferred to sweep: {e}"
            )
            result.cycle = CycleOutcome(
                fired=False, level_number=level_number, error=str(e)
            )
        return result

    async def activate_user(self, user_id: int, payment_ref: str) -> PurchaseResult:
        """
        Activate a PENDING user with a verified payment.

        Records the DEPOSIT and the user's first level-1 quota.

        Args:
            user_id: User to activate
            payment_ref: Verified payment reference

        Returns:
            PurchaseResult of the level-1 quota
        """
        try:
            result = await self._activate(user_id, payment_ref)
        except NOT_FOUND_ERRORS + (MatrixValidationError,) as e:
            self.logger.info(f"Activation denied for user {user_id}: {e.message}")
            return PurchaseResult(success=False, error=e.message, context=e.context)

        return await self._after_purchase(result, FIRST_LEVEL)

    @with_conflict_retry
    async def _activate(self, user_id: int, payment_ref: str) -> PurchaseResult:
        async with self.session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(
                FIRST_LEVEL, for_update=True
            )
            if level is None:
                raise LevelNotFoundError(FIRST_LEVEL)

            funds = await SystemFundsRepository(session).get_funds(for_update=True)
            user = await UserRepository(session).get_by_id(user_id, for_update=True)
            if user is None:
                raise UserNotFoundError(user_id)
            if user.status != UserStatus.PENDING.value:
                raise MatrixValidationError(
                    f"User {user_id} is {user.status}, expected PENDING",
                    user_id=user_id,
                    status=user.status,
                )

            user.status = UserStatus.ACTIVE.value
            user.activated_at = utc_now()
            await session.flush()

            result = await self._buy_quota(session, user, level, funds, payment_ref)
            self.logger.info(f"User {user_id} activated with {payment_ref}")
            return result

    # Cycles

    async def process_cycle(self, level_number: int) -> CycleOutcome:
        """
        Fire one cycle at a level if it is ready.

        Args:
            level_number: Level to cycle

        Returns:
            CycleOutcome; fired=False with an error when the level is
            unknown, not ready or the cycle was rolled back

        Raises:
            ConcurrencyConflictError: Conflict retries exhausted
        """
        try:
            return await self._process_cycle(level_number)
        except CycleInvariantError as e:
            self.logger.critical(
                f"Cycle at level {level_number} rolled back: {e.message} "
                f"context={e.context}"
            )
            return CycleOutcome(fired=False, level_number=level_number, error=e.message)

    @with_conflict_retry
    async def _process_cycle(self, level_number: int) -> CycleOutcome:
        async with self.session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(
                level_number, for_update=True
            )
            if level is None:
                return CycleOutcome(
                    fired=False,
                    level_number=level_number,
                    error=f"Level {level_number} not found",
                )

            queue = QueueManager(session)
            if not await queue.is_ready(level):
                return CycleOutcome(
                    fired=False,
                    level_number=level_number,
                    error=f"Level {level_number} is not ready for a cycle",
                )

            entries = await queue.select_cycle_candidates(
                level, refresh_scores=settings.refresh_scores_before_cycle
            )
            cycle = await CycleDistributor(session).distribute(level, entries)
            return CycleOutcome(fired=True, level_number=level_number, cycle=cycle)

    @log_operation
    async def process_pending_cycles(
        self, max_cycles: int | None = None
    ) -> SweepResult:
        """
        Fire every ready cycle, lowest level first.

        Advances feed the next level, so one sweep can cascade upwards.

        Args:
            max_cycles: Upper bound of cycles (MAX_CYCLES_PER_SWEEP)

        Returns:
            SweepResult
        """
        limit = max_cycles if max_cycles is not None else settings.max_cycles_per_sweep
        sweep = SweepResult()

        for level_number in range(FIRST_LEVEL, TOTAL_LEVELS + 1):
            while sweep.cycles_processed < limit:
                if not await self.can_process_cycle(level_number):
                    break
                outcome = await self.process_cycle(level_number)
                if not outcome.fired:
                    sweep.errors.append(f"Level {level_number}: {outcome.error}")
                    break
                sweep.cycles_processed += 1
                sweep.by_level[level_number] = sweep.by_level.get(level_number, 0) + 1

        self.logger.info(
            f"Sweep fired {sweep.cycles_processed} cycles: {sweep.by_level}"
        )
        return sweep

    # Jupiter Pool

    @with_conflict_retry
    async def inject_jupiter_pool(
        self,
        level_number: int,
        amount: Decimal | None = None,
        reason: str = "Manual intervention",
    ) -> InjectionResult:
        """
        Operator injection of pool money into a stalled level.

        Runs in its own session and is retried on conflicts like every
        other mutating operation.

        Args:
            level_number: Target level
            amount: Amount to inject, defaults to the level's shortfall
            reason: Note stored on the ledger row

        Returns:
            InjectionResult

        Raises:
            LevelNotFoundError: Level does not exist
            MatrixValidationError: Nothing to inject or pool too small
            ConcurrencyConflictError: Conflict retries exhausted
        """
        async with self.session_maker() as session:
            return await JupiterPoolService(session).inject(
                level_number, amount, reason
            )

    # Maintenance

    async def initialize_levels(self) -> int:
        """
        Seed the 10 levels and the pool and funds singletons.

        Existing levels are left untouched, so the call is idempotent.

        Returns:
            Number of levels created
        """
        created = 0
        async with self.session_maker() as session, session.begin():
            levels = LevelRepository(session)
            existing = {level.level_number for level in await levels.get_all()}
            for level_number in range(FIRST_LEVEL, TOTAL_LEVELS + 1):
                if level_number in existing:
                    continue
                await levels.create(
                    level_number=level_number,
                    entry_value=calculate_level_value(level_number),
                    reward_value=calculate_reward(level_number),
                    bonus_value=calculate_bonus(level_number),
                )
                created += 1

            await JupiterPoolRepository(session).get_pool()
            await SystemFundsRepository(session).get_funds()

        self.logger.info(f"Seeded {created} levels")
        return created

    @with_conflict_retry
    async def update_all_scores(self) -> int:
        """
        Recompute WAITING scores of every level.

        Returns:
            Number of entries updated
        """
        async with self.session_maker() as session, session.begin():
            queue = QueueManager(session)
            levels = await LevelRepository(session).lock_many(
                range(FIRST_LEVEL, TOTAL_LEVELS + 1)
            )
            updated = 0
            for level in levels.values():
                updated += await queue.refresh_level_scores(level)

        self.logger.info(f"Updated scores of {updated} queue entries")
        return updated

    @log_operation
    @with_conflict_retry
    async def recover_stuck_entries(
        self, older_than_minutes: int | None = None
    ) -> RecoveryResult:
        """
        Resolve PROCESSING entries left behind by a crashed cycle.

        Entries whose cycle wrote history are completed; the rest go
        back to WAITING.

        Args:
            older_than_minutes: Minimum age (STUCK_PROCESSING_MINUTES)

        Returns:
            RecoveryResult
        """
        minutes = (
            older_than_minutes
            if older_than_minutes is not None
            else settings.stuck_processing_minutes
        )
        recovery = RecoveryResult()

        async with self.session_maker() as session, session.begin():
            levels = await LevelRepository(session).lock_many(
                range(FIRST_LEVEL, TOTAL_LEVELS + 1)
            )
            levels_by_id = {level.id: level for level in levels.values()}

            stuck = await QueueEntryRepository(session).find_stuck_processing(
                utc_now() - timedelta(minutes=minutes)
            )
            if not stuck:
                return recovery

            committed = await CycleHistoryRepository(session).get_committed_groups(
                list({entry.cycle_group_id for entry in stuck if entry.cycle_group_id})
            )
            to_release = []
            now = utc_now()
            for entry in stuck:
                if entry.cycle_group_id in committed:
                    entry.status = QueueStatus.COMPLETED.value
                    entry.processed_at = now
                    level = levels_by_id.get(entry.level_id)
                    if level is not None and level.total_users > 0:
                        level.total_users -= 1
                    recovery.completed += 1
                else:
                    to_release.append(entry)

            await QueueManager(session).release_candidates(to_release)
            recovery.reverted = len(to_release)

        self.logger.warning(
            f"Recovered stuck entries: reverted={recovery.reverted} "
            f"completed={recovery.completed}"
        )
        return recovery

