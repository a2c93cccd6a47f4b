"""
Integration tests for JupiterPoolService.

Tests cover:
- Balance snapshot and health score
- Level staleness report
- Manual injections and their guards
- Conflict retry of injections through the matrix facade
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

import pytest
from sqlalchemy.exc import DBAPIError

from app.config.settings import settings
from app.models import LevelHealthStatus, TransactionType
from app.repositories.jupiter_pool_repository import JupiterPoolRepository
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.repositories.transaction_repository import TransactionRepository
from app.services.jupiter_pool_service import JupiterPoolService
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import (
    ConcurrencyConflictError,
    InsufficientPoolBalanceError,
    LevelNotFoundError,
    MatrixValidationError,
)


async def fund_pool(session_maker, amount: Decimal) -> None:
    async with session_maker() as session, session.begin():
        pool = await JupiterPoolRepository(session).get_pool(for_update=True)
        pool.balance = amount
        pool.total_deposits = amount


async def set_last_cycle(session_maker, level_number: int, days_ago: int) -> None:
    async with session_maker() as session, session.begin():
        level = await LevelRepository(session).get_by_number(level_number, for_update=True)
        level.last_cycle_at = utc_now() - timedelta(days=days_ago)


class TestPoolBalance:
    """Tests for get_balance."""

    @pytest.mark.asyncio
    async def test_empty_pool_is_healthy(self, session_maker):
        async with session_maker() as session:
            balance = await JupiterPoolService(session).get_balance()

        assert balance.balance == Decimal("0")
        assert balance.health_score == 100

    @pytest.mark.asyncio
    async def test_deposit_updates_counters(self, session_maker):
        async with session_maker() as session, session.begin():
            await JupiterPoolService(session).deposit(
                Decimal("2"), level_number=1, cycle_group_id="cycle_1_test"
            )

        async with session_maker() as session:
            balance = await JupiterPoolService(session).get_balance()
            ledger = await TransactionRepository(session).get_by_cycle("cycle_1_test")

        assert balance.balance == Decimal("2")
        assert balance.today_deposits == Decimal("2")
        assert balance.health_score == 100
        assert ledger[0].type == TransactionType.JUPITER_POOL_DEPOSIT.value


class TestLevelsHealth:
    """Tests for get_levels_health."""

    async def report(self, session_maker):
        async with session_maker() as session:
            return await JupiterPoolService(session).get_levels_health()

    @pytest.mark.asyncio
    async def test_fresh_levels_healthy(self, session_maker):
        report = await self.report(session_maker)

        assert len(report.levels) == 10
        assert report.summary.healthy == 10
        assert report.summary.overall_health == 100
        assert report.summary.total_intervention_needed == Decimal("0")

    @pytest.mark.asyncio
    async def test_stalled_level_is_critical(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users], cash_credit=Decimal("0"))
        await set_last_cycle(session_maker, 1, days_ago=6)

        report = await self.report(session_maker)
        level_one = report.levels[0]

        assert level_one.status == LevelHealthStatus.CRITICAL
        assert level_one.days_since_last_cycle == 6
        assert level_one.queue_size == 7
        assert level_one.can_process is True
        assert level_one.needs_intervention is True
        assert level_one.estimated_intervention == Decimal("70")
        assert report.summary.critical == 1
        assert report.summary.overall_health == 90

    @pytest.mark.asyncio
    async def test_warning_level(self, session_maker):
        await set_last_cycle(session_maker, 2, days_ago=4)

        report = await self.report(session_maker)
        level_two = report.levels[1]

        assert level_two.status == LevelHealthStatus.WARNING
        assert level_two.estimated_intervention == Decimal("0")
        assert level_two.needs_intervention is False
        assert report.summary.warning == 1
        assert report.summary.overall_health == 95

    @pytest.mark.asyncio
    async def test_never_cycled_counts_from_oldest_entry(
        self, session_maker, create_user, enqueue
    ):
        user = await create_user()
        (entry_id,) = await enqueue([user.id])
        async with session_maker() as session, session.begin():
            entry = await QueueEntryRepository(session).get_by_id(entry_id)
            entry.entered_at = utc_now() - timedelta(days=3, hours=2)

        report = await self.report(session_maker)

        assert report.levels[0].days_since_last_cycle == 3
        assert report.levels[0].status == LevelHealthStatus.WARNING


class TestInject:
    """Tests for inject."""

    @pytest.mark.asyncio
    async def test_default_amount_is_shortfall(self, session_maker, create_user, enqueue):
        await fund_pool(session_maker, Decimal("100"))
        users = [await create_user() for _ in range(2)]
        await enqueue([u.id for u in users])

        async with session_maker() as session:
            result = await JupiterPoolService(session).inject(1)

        assert result.amount == Decimal("50")
        assert result.level_cash_balance == Decimal("70")
        assert result.pool_balance == Decimal("50")

        async with session_maker() as session:
            pool = await JupiterPoolRepository(session).get_pool()
            level = await LevelRepository(session).get_by_number(1)
            withdrawals = await TransactionRepository(session).find_by(
                type=TransactionType.JUPITER_POOL_WITHDRAWAL.value
            )
        assert pool.total_withdrawals == Decimal("50")
        assert pool.today_withdrawals == Decimal("50")
        assert pool.total_interventions == 1
        assert level.cash_balance == Decimal("70")
        assert withdrawals[0].description == "Manual intervention"

    @pytest.mark.asyncio
    async def test_explicit_amount_and_reason(self, session_maker):
        await fund_pool(session_maker, Decimal("100"))

        async with session_maker() as session:
            result = await JupiterPoolService(session).inject(
                3, Decimal("25"), reason="Level 3 stalled"
            )

        assert result.amount == Decimal("25")
        assert result.level_cash_balance == Decimal("25")

    @pytest.mark.asyncio
    async def test_insufficient_pool(self, session_maker):
        await fund_pool(session_maker, Decimal("10"))

        with pytest.raises(InsufficientPoolBalanceError):
            async with session_maker() as session:
                await JupiterPoolService(session).inject(1)

        async with session_maker() as session:
            level = await LevelRepository(session).get_by_number(1)
            pool = await JupiterPoolRepository(session).get_pool()
        assert level.cash_balance == Decimal("0")
        assert pool.balance == Decimal("10")

    @pytest.mark.asyncio
    async def test_funded_level_needs_nothing(self, session_maker, create_user, enqueue):
        await fund_pool(session_maker, Decimal("100"))
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users])

        with pytest.raises(MatrixValidationError):
            async with session_maker() as session:
                await JupiterPoolService(session).inject(1)

    @pytest.mark.asyncio
    async def test_unknown_level(self, session_maker):
        with pytest.raises(LevelNotFoundError):
            async with session_maker() as session:
                await JupiterPoolService(session).inject(12, Decimal("5"))


class Deadlock(Exception):
    sqlstate = "40P01"


class TestInjectThroughFacade:
    """Tests for MatrixService.inject_jupiter_pool."""

    @pytest.mark.asyncio
    async def test_inject(self, session_maker, matrix_service):
        await fund_pool(session_maker, Decimal("100"))

        result = await matrix_service.inject_jupiter_pool(1, reason="Level 1 stalled")

        assert result.amount == Decimal("70")
        assert result.pool_balance == Decimal("30")
        assert result.level_cash_balance == Decimal("70")

    @pytest.mark.asyncio
    async def test_validation_errors_propagate(self, session_maker, matrix_service):
        await fund_pool(session_maker, Decimal("10"))

        with pytest.raises(InsufficientPoolBalanceError):
            await matrix_service.inject_jupiter_pool(1)

    @pytest.mark.asyncio
    async def test_deadlock_is_retried(self, monkeypatch, session_maker, matrix_service):
        monkeypatch.setattr(settings, "conflict_retry_backoff_ms", 0)
        await fund_pool(session_maker, Decimal("100"))
        get_by_number = LevelRepository.get_by_number
        calls = 0

        async def deadlock_once(self, level_number, for_update=False):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise DBAPIError("SELECT", {}, Deadlock())
            return await get_by_number(self, level_number, for_update=for_update)

        monkeypatch.setattr(LevelRepository, "get_by_number", deadlock_once)

        result = await matrix_service.inject_jupiter_pool(1)

        assert calls == 2
        assert result.amount == Decimal("70")
        async with session_maker() as session:
            pool = await JupiterPoolRepository(session).get_pool()
        assert pool.balance == Decimal("30")
        assert pool.total_interventions == 1

    @pytest.mark.asyncio
    async def test_retries_exhausted(self, monkeypatch, session_maker, matrix_service):
        monkeypatch.setattr(settings, "conflict_retry_backoff_ms", 0)
        await fund_pool(session_maker, Decimal("100"))

        with patch.object(
            LevelRepository,
            "get_by_number",
            side_effect=DBAPIError("SELECT", {}, Deadlock()),
        ):
            with pytest.raises(ConcurrencyConflictError):
                await matrix_service.inject_jupiter_pool(1)

        async with session_maker() as session:
            pool = await JupiterPoolRepository(session).get_pool()
        assert pool.balance == Decimal("100")
