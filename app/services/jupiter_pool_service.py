"""
Jupiter Pool service.

Secondary reserve funded by a skim of every receiver payout. Reports
per-level staleness and intervention estimates, and performs explicit
injections of pool money into a stalled level's cash.
"""

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.matrix_constants import (
    INTERVENTION_CRITICAL_MULTIPLIER,
    INTERVENTION_WARNING_MULTIPLIER,
    MATRIX_SIZE,
)
from app.config.settings import settings
from app.models.enums import LevelHealthStatus, TransactionType
from app.models.jupiter_pool import JupiterPool
from app.models.level import Level
from app.repositories.jupiter_pool_repository import JupiterPoolRepository
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.base_service import BaseService, transaction
from app.utils.datetime_utils import days_since, utc_now
from app.utils.exceptions import (
    InsufficientPoolBalanceError,
    LevelNotFoundError,
    MatrixValidationError,
)


@dataclass
class PoolBalance:
    """Snapshot of the pool counters."""

    balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    today_deposits: Decimal
    today_withdrawals: Decimal
    health_score: int


@dataclass
class LevelHealth:
    """Staleness report of one level."""

    level: int
    entry_value: Decimal
    days_since_last_cycle: int
    queue_size: int
    cash_balance: Decimal
    status: LevelHealthStatus
    estimated_intervention: Decimal
    can_process: bool
    needs_intervention: bool


@dataclass
class LevelsHealthSummary:
    """Aggregate over all level reports."""

    healthy: int = 0
    warning: int = 0
    critical: int = 0
    total_intervention_needed: Decimal = Decimal("0")
    overall_health: int = 100


@dataclass
class LevelsHealthReport:
    """Result of get_levels_health."""

    levels: list[LevelHealth] = field(default_factory=list)
    summary: LevelsHealthSummary = field(default_factory=LevelsHealthSummary)


@dataclass
class InjectionResult:
    """Outcome of a pool injection."""

    level_number: int
    amount: Decimal
    pool_balance: Decimal
    level_cash_balance: Decimal


def calculate_health_score(balance: Decimal, total_deposits: Decimal) -> int:
    """
    Pool health: balance as a percentage of all deposits, capped at 100.

    A pool that never received deposits is fully healthy.
    """
    if total_deposits <= 0:
        return 100
    ratio = (balance / total_deposits * 100).quantize(
        Decimal("1"), rounding=ROUND_HALF_UP
    )
    return min(100, int(ratio))


def classify_staleness(days: int) -> LevelHealthStatus:
    """Map days since the last cycle to a health status."""
    if days >= settings.jupiter_pool_critical_days:
        return LevelHealthStatus.CRITICAL
    if days >= settings.jupiter_pool_warning_days:
        return LevelHealthStatus.WARNING
    return LevelHealthStatus.HEALTHY


def estimate_intervention(
    status: LevelHealthStatus, entry_value: Decimal, queue_size: int
) -> Decimal:
    """
    Estimated injection a stalled level needs.

    Only levels with a full matrix waiting get an estimate.
    """
    if queue_size < MATRIX_SIZE:
        return Decimal("0")
    if status == LevelHealthStatus.CRITICAL:
        return entry_value * INTERVENTION_CRITICAL_MULTIPLIER
    if status == LevelHealthStatus.WARNING:
        return (entry_value * INTERVENTION_WARNING_MULTIPLIER).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
    return Decimal("0")


class JupiterPoolService(BaseService):
    """Jupiter Pool reserve operations."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize Jupiter Pool service."""
        super().__init__(session)
        self.pool_repo = JupiterPoolRepository(session)
        self.level_repo = LevelRepository(session)
        self.entry_repo = QueueEntryRepository(session)
        self.transaction_repo = TransactionRepository(session)

    @staticmethod
    def _roll_day(pool: JupiterPool) -> None:
        today = utc_now().date()
        if pool.counters_date != today:
            pool.today_deposits = Decimal("0")
            pool.today_withdrawals = Decimal("0")
            pool.counters_date = today

    async def deposit(
        self,
        amount: Decimal,
        *,
        level_number: int,
        cycle_group_id: str,
    ) -> JupiterPool:
        """
        Credit the receiver skim of a cycle.

        Runs inside the cycle's transaction.

        Args:
            amount: Skim amount
            level_number: Level of the cycle
            cycle_group_id: Cycle correlation ID

        Returns:
            Updated pool row
        """
        pool = await self.pool_repo.get_pool(for_update=True)
        self._roll_day(pool)

        pool.balance += amount
        pool.total_deposits += amount
        pool.today_deposits += amount

        await self.transaction_repo.record(
            TransactionType.JUPITER_POOL_DEPOSIT,
            amount,
            level_number=level_number,
            cycle_group_id=cycle_group_id,
            description=f"Receiver skim of level {level_number} cycle",
            confirmed_at=utc_now(),
        )
        await self.session.flush()
        return pool

    async def get_balance(self) -> PoolBalance:
        """Current pool counters and health score."""
        pool = await self.pool_repo.get_pool()
        today = utc_now().date()
        fresh = pool.counters_date == today

        return PoolBalance(
            balance=pool.balance,
            total_deposits=pool.total_deposits,
            total_withdrawals=pool.total_withdrawals,
            today_deposits=pool.today_deposits if fresh else Decimal("0"),
            today_withdrawals=pool.today_withdrawals if fresh else Decimal("0"),
            health_score=calculate_health_score(
                pool.balance, pool.total_deposits
            ),
        )

    async def _days_since_last_cycle(self, level: Level) -> int:
        if level.last_cycle_at is not None:
            return days_since(level.last_cycle_at)

        oldest = await self.entry_repo.get_oldest_waiting_entered_at(level.id)
        if oldest is None:
            return 0
        return days_since(oldest)

    async def get_level_health(self, level: Level) -> LevelHealth:
        """Staleness report of one level."""
        days = await self._days_since_last_cycle(level)
        queue_size = await self.entry_repo.count_waiting(level.id)
        status = classify_staleness(days)
        can_process = queue_size >= MATRIX_SIZE

        return LevelHealth(
            level=level.level_number,
            entry_value=level.entry_value,
            days_since_last_cycle=days,
            queue_size=queue_size,
            cash_balance=level.cash_balance,
            status=status,
            estimated_intervention=estimate_intervention(
                status, level.entry_value, queue_size
            ),
            can_process=can_process,
            needs_intervention=(
                can_process
                and level.cash_balance < level.cycle_cost
                and status != LevelHealthStatus.HEALTHY
            ),
        )

    async def get_levels_health(self) -> LevelsHealthReport:
        """
        Staleness report of every level plus a summary.

        overall_health = round((100 x healthy + 50 x warning) / levels)
        """
        report = LevelsHealthReport()
        for level in await self.level_repo.get_all():
            health = await self.get_level_health(level)
            report.levels.append(health)

            summary = report.summary
            if health.status == LevelHealthStatus.CRITICAL:
                summary.critical += 1
            elif health.status == LevelHealthStatus.WARNING:
                summary.warning += 1
            else:
                summary.healthy += 1
            summary.total_intervention_needed += health.estimated_intervention

        if report.levels:
            summary = report.summary
            score = Decimal(100 * summary.healthy + 50 * summary.warning) / len(
                report.levels
            )
            summary.overall_health = int(
                score.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
            )
        return report

    @transaction
    async def inject(
        self,
        level_number: int,
        amount: Decimal | None = None,
        reason: str = "Manual intervention",
    ) -> InjectionResult:
        """
        Move pool money into a level's cash.

        Commits on success. The level is locked before the pool row.

        Args:
            level_number: Target level
            amount: Amount to inject, defaults to the level's shortfall
                for one cycle (7 x entry value - cash)
            reason: Note stored on the ledger row

        Returns:
            InjectionResult with the new balances

        Raises:
            LevelNotFoundError: Level does not exist
            MatrixValidationError: Nothing to inject
            InsufficientPoolBalanceError: Pool balance below amount
        """
        level = await self.level_repo.get_by_number(level_number, for_update=True)
        if level is None:
            raise LevelNotFoundError(level_number)

        if amount is None:
            amount = level.cycle_cost - level.cash_balance
        if amount <= 0:
            raise MatrixValidationError(
                f"Nothing to inject into level {level_number}",
                level_number=level_number,
                amount=str(amount),
            )

        pool = await self.pool_repo.get_pool(for_update=True)
        if pool.balance < amount:
            raise InsufficientPoolBalanceError(
                f"Jupiter Pool balance {pool.balance} is below {amount}",
                level_number=level_number,
                pool_balance=str(pool.balance),
                amount=str(amount),
            )

        self._roll_day(pool)
        pool.balance -= amount
        pool.total_withdrawals += amount
        pool.today_withdrawals += amount
        pool.total_interventions += 1
        level.cash_balance += amount

        await self.transaction_repo.record(
            TransactionType.JUPITER_POOL_WITHDRAWAL,
            amount,
            level_number=level_number,
            description=reason,
            confirmed_at=utc_now(),
        )
        await self.session.flush()

        self.logger.warning(
            f"Jupiter Pool injected {amount} into level {level_number}: {reason}"
        )
        return InjectionResult(
            level_number=level_number,
            amount=amount,
            pool_balance=pool.balance,
            level_cash_balance=level.cash_balance,
        )
