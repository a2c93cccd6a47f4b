"""
Integration tests for QueueManager.

Tests cover:
- Quota numbering and level counters on enqueue
- Top-up of an existing quota
- Purchase gating
- Cycle readiness and candidate selection
- Score refresh
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from app.models import QueueStatus, UserStatus
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.services.matrix import QueueManager
from app.utils.datetime_utils import utc_now
from app.utils.exceptions import LevelNotFoundError, QueueEntryNotFoundError


async def load_level(session_maker, level_number: int = 1):
    async with session_maker() as session:
        return await LevelRepository(session).get_by_number(level_number)


async def load_entry(session_maker, entry_id: int):
    async with session_maker() as session:
        return await QueueEntryRepository(session).get_by_id(entry_id)


class TestEnqueue:
    """Tests for adding quotas."""

    @pytest.mark.asyncio
    async def test_quota_numbers_increase(self, session_maker, create_user, enqueue):
        user = await create_user()

        first, second = await enqueue([user.id, user.id])

        assert (await load_entry(session_maker, first)).quota_number == 1
        assert (await load_entry(session_maker, second)).quota_number == 2

    @pytest.mark.asyncio
    async def test_new_quota_funds_level(self, session_maker, create_user, enqueue):
        user = await create_user()

        await enqueue([user.id, user.id])

        level = await load_level(session_maker)
        assert level.cash_balance == Decimal("20")
        assert level.total_users == 2

    @pytest.mark.asyncio
    async def test_new_quota_is_waiting(self, session_maker, create_user, enqueue):
        user = await create_user()

        (entry_id,) = await enqueue([user.id])

        entry = await load_entry(session_maker, entry_id)
        assert entry.status == QueueStatus.WAITING.value
        assert entry.reentries == 0
        assert entry.cycle_group_id is None

    @pytest.mark.asyncio
    async def test_fresh_score_counts_referrals(self, session_maker, create_user, enqueue):
        referrer = await create_user()
        await create_user(referrer_id=referrer.id)
        await create_user(referrer_id=referrer.id)
        await create_user(referrer_id=referrer.id, status=UserStatus.PENDING)

        (entry_id,) = await enqueue([referrer.id])

        assert (await load_entry(session_maker, entry_id)).score == Decimal("20")

    @pytest.mark.asyncio
    async def test_top_up_existing_quota(self, session_maker, create_user, enqueue):
        user = await create_user()
        (entry_id,) = await enqueue([user.id])

        async with session_maker() as session, session.begin():
            entry = await QueueManager(session).enqueue(user.id, 1, is_new_quota=False)

        assert entry.id == entry_id
        assert entry.reentries == 1
        assert entry.score >= Decimal("1.5")

        level = await load_level(session_maker)
        assert level.cash_balance == Decimal("10")
        assert level.total_users == 1

    @pytest.mark.asyncio
    async def test_top_up_without_quota(self, session_maker, create_user):
        user = await create_user()

        with pytest.raises(QueueEntryNotFoundError):
            async with session_maker() as session, session.begin():
                await QueueManager(session).enqueue(user.id, 1, is_new_quota=False)

    @pytest.mark.asyncio
    async def test_unknown_level(self, session_maker, create_user):
        user = await create_user()

        with pytest.raises(LevelNotFoundError):
            async with session_maker() as session, session.begin():
                await QueueManager(session).enqueue(user.id, 11)


class TestPurchaseGating:
    """Tests for can_purchase."""

    async def check(self, session_maker, user_id: int, level_number: int):
        async with session_maker() as session:
            return await QueueManager(session).can_purchase(user_id, level_number)

    @pytest.mark.asyncio
    async def test_active_user_level_one(self, session_maker, create_user):
        user = await create_user()

        eligibility = await self.check(session_maker, user.id, 1)

        assert eligibility.can_purchase is True
        assert eligibility.reason is None

    @pytest.mark.asyncio
    async def test_pending_user(self, session_maker, create_user):
        user = await create_user(status=UserStatus.PENDING)

        eligibility = await self.check(session_maker, user.id, 1)

        assert eligibility.can_purchase is False
        assert eligibility.reason == "User is not active"

    @pytest.mark.asyncio
    async def test_missing_user(self, session_maker):
        eligibility = await self.check(session_maker, 999, 1)

        assert eligibility.reason == "User not found"

    @pytest.mark.asyncio
    async def test_higher_level_needs_quota_below(self, session_maker, create_user):
        user = await create_user()

        eligibility = await self.check(session_maker, user.id, 2)

        assert eligibility.can_purchase is False
        assert eligibility.reason == "An active quota at level 1 is required"

    @pytest.mark.asyncio
    async def test_higher_level_with_quota_below(self, session_maker, create_user, enqueue):
        user = await create_user()
        await enqueue([user.id])

        eligibility = await self.check(session_maker, user.id, 2)

        assert eligibility.can_purchase is True

    @pytest.mark.asyncio
    async def test_count_active_quotas(self, session_maker, create_user, enqueue):
        user = await create_user()
        await enqueue([user.id, user.id, user.id])

        async with session_maker() as session:
            queue = QueueManager(session)
            assert await queue.count_active_quotas(user.id, 1) == 3
            assert await queue.count_active_quotas(user.id, 2) == 0
            assert await queue.count_active_quotas(user.id, 42) == 0


class TestCycleReadiness:
    """Tests for readiness and candidate selection."""

    async def ready(self, session_maker, level_number: int = 1) -> bool:
        async with session_maker() as session:
            return await QueueManager(session).can_process_cycle(level_number)

    @pytest.mark.asyncio
    async def test_six_entries_not_ready(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(6)]
        await enqueue([u.id for u in users])

        assert await self.ready(session_maker) is False

    @pytest.mark.asyncio
    async def test_seven_funded_entries_ready(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users])

        assert await self.ready(session_maker) is True

    @pytest.mark.asyncio
    async def test_unfunded_level_not_ready(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users], cash_credit=Decimal("0"))

        assert await self.ready(session_maker) is False

    @pytest.mark.asyncio
    async def test_unknown_level_not_ready(self, session_maker):
        assert await self.ready(session_maker, 11) is False

    @pytest.mark.asyncio
    async def test_select_top_seven(self, session_maker, create_user, enqueue):
        """Oldest entries rank first; selected ones share one cycle group."""
        users = [await create_user() for _ in range(8)]
        entry_ids = await enqueue([u.id for u in users])

        async with session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(1, for_update=True)
            selected = await QueueManager(session).select_cycle_candidates(level)

        assert [e.id for e in selected] == entry_ids[:7]
        assert {e.status for e in selected} == {QueueStatus.PROCESSING.value}
        assert len({e.cycle_group_id for e in selected}) == 1

        left = await load_entry(session_maker, entry_ids[7])
        assert left.status == QueueStatus.WAITING.value

    @pytest.mark.asyncio
    async def test_referrals_jump_the_queue(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        late = await create_user()
        await create_user(referrer_id=late.id)
        entry_ids = await enqueue([u.id for u in users] + [late.id])

        async with session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(1, for_update=True)
            selected = await QueueManager(session).select_cycle_candidates(level)

        assert selected[0].id == entry_ids[-1]
        assert entry_ids[6] not in [e.id for e in selected]

    @pytest.mark.asyncio
    async def test_release_candidates(self, session_maker, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users])

        async with session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(1, for_update=True)
            queue = QueueManager(session)
            selected = await queue.select_cycle_candidates(level)
            await queue.release_candidates(selected)

        async with session_maker() as session:
            assert await QueueEntryRepository(session).count_waiting(level.id) == 7


class TestScoreRefresh:
    """Tests for periodic score recomputation."""

    @pytest.mark.asyncio
    async def test_wait_time_raises_score(self, session_maker, create_user, enqueue):
        user = await create_user()
        (entry_id,) = await enqueue([user.id])

        async with session_maker() as session, session.begin():
            entry = await QueueEntryRepository(session).get_by_id(entry_id)
            entry.entered_at = utc_now() - timedelta(hours=5)
            entry.reentries = 2

        async with session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(1, for_update=True)
            updated = await QueueManager(session).refresh_level_scores(level)

        entry = await load_entry(session_maker, entry_id)
        assert updated == 1
        # 5 h x 2 + 2 reentries x 1.5
        assert Decimal("13") <= entry.score < Decimal("13.01")

    @pytest.mark.asyncio
    async def test_empty_level(self, session_maker):
        async with session_maker() as session, session.begin():
            level = await LevelRepository(session).get_by_number(4, for_update=True)
            assert await QueueManager(session).refresh_level_scores(level) == 0
