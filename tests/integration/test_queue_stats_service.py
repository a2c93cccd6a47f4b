"""Integration tests for QueueStatsService."""

from decimal import Decimal

import pytest

from app.services.queue_stats_service import QueueStatsService
from app.utils.exceptions import LevelNotFoundError


@pytest.fixture
async def queue(create_user, enqueue):
    """Level 1 queue: maria, lena, maria (in that order)."""
    maria = await create_user(name="Maria Sanchez")
    lena = await create_user(name="Lena")
    await enqueue([maria.id, lena.id, maria.id])
    return maria, lena


class TestUserPositions:
    """Tests for get_user_positions."""

    @pytest.mark.asyncio
    async def test_positions_of_all_quotas(self, session_maker, queue):
        maria, _lena = queue

        async with session_maker() as session:
            positions = await QueueStatsService(session).get_user_positions(maria.id, 1)

        assert [p.position for p in positions] == [1, 3]
        assert [p.quota_number for p in positions] == [1, 2]
        assert positions[0].total_in_queue == 3
        assert positions[0].percentile == 100
        assert positions[1].percentile == 33
        assert positions[0].estimated_wait == "Calculating..."

    @pytest.mark.asyncio
    async def test_not_queued(self, session_maker, queue, create_user):
        stranger = await create_user()

        async with session_maker() as session:
            positions = await QueueStatsService(session).get_user_positions(stranger.id, 1)

        assert positions == []

    @pytest.mark.asyncio
    async def test_unknown_level(self, session_maker, queue):
        maria, _lena = queue

        with pytest.raises(LevelNotFoundError):
            async with session_maker() as session:
                await QueueStatsService(session).get_user_positions(maria.id, 11)


class TestQueuePage:
    """Tests for get_queue_page and find_user_page."""

    @pytest.mark.asyncio
    async def test_first_page(self, session_maker, queue):
        maria, lena = queue

        async with session_maker() as session:
            page = await QueueStatsService(session).get_queue_page(
                1, page=1, limit=2, current_user_id=lena.id
            )

        assert page.total == 3
        assert page.total_pages == 2
        assert [item.position for item in page.items] == [1, 2]
        assert page.items[0].name == "Maria S."
        assert page.items[0].code == maria.referral_code
        assert page.items[0].is_current_user is False
        assert page.items[1].name == "Lena"
        assert page.items[1].is_current_user is True
        assert page.current_user_position == 2

    @pytest.mark.asyncio
    async def test_second_page(self, session_maker, queue):
        maria, _lena = queue

        async with session_maker() as session:
            page = await QueueStatsService(session).get_queue_page(1, page=2, limit=2)

        assert len(page.items) == 1
        assert page.items[0].position == 3
        assert page.items[0].user_id == maria.id
        assert page.current_user_position is None

    @pytest.mark.asyncio
    async def test_unknown_level_is_empty(self, session_maker):
        async with session_maker() as session:
            page = await QueueStatsService(session).get_queue_page(11)

        assert page.items == []
        assert page.total == 0

    @pytest.mark.asyncio
    async def test_find_user_page(self, session_maker, queue, create_user):
        maria, lena = queue
        stranger = await create_user()

        async with session_maker() as session:
            stats = QueueStatsService(session)
            assert await stats.find_user_page(maria.id, 1, limit=2) == (1, 1)
            assert await stats.find_user_page(lena.id, 1, limit=1) == (2, 2)
            assert await stats.find_user_page(stranger.id, 1) is None
            assert await stats.find_user_page(maria.id, 11) is None


class TestLevelStats:
    """Tests for level statistics."""

    @pytest.mark.asyncio
    async def test_level_stats(self, session_maker, queue):
        async with session_maker() as session:
            stats = await QueueStatsService(session).get_level_stats(1)

        assert stats.total_in_queue == 3
        assert stats.cash_balance == Decimal("30")
        assert stats.total_cycles == 0
        assert stats.cycles_today == 0
        assert stats.avg_cycles_per_day == 0
        assert stats.oldest_entry_days == 0
        assert stats.last_cycle_at is None

    @pytest.mark.asyncio
    async def test_stats_after_cycle(self, session_maker, matrix_service, create_user, enqueue):
        users = [await create_user() for _ in range(7)]
        await enqueue([u.id for u in users])
        await matrix_service.process_cycle(1)

        async with session_maker() as session:
            stats = await QueueStatsService(session).get_level_stats(1)

        assert stats.total_cycles == 1
        assert stats.cycles_today == 1
        assert stats.avg_cycles_per_day == pytest.approx(1 / 30)
        assert stats.total_in_queue == 1

    @pytest.mark.asyncio
    async def test_all_levels(self, session_maker):
        async with session_maker() as session:
            stats = await QueueStatsService(session).get_all_levels_stats()

        assert [s.level_number for s in stats] == list(range(1, 11))
        assert stats[9].entry_value == Decimal("5120")
