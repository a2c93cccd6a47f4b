"""
Queue statistics service.

Read-only views of the level queues: a user's positions, per-level
statistics and a paginated queue listing.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.matrix_constants import MATRIX_SIZE
from app.models.level import Level
from app.repositories.cycle_history_repository import CycleHistoryRepository
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.utils.datetime_utils import days_since, utc_now
from app.utils.exceptions import LevelNotFoundError
from app.utils.formatters import (
    format_display_name,
    format_time_in_queue,
    format_wait_estimate,
)


# Window used to average cycles per day
STATS_WINDOW_DAYS = 30


@dataclass
class UserQueuePosition:
    """Position of one of the user's WAITING quotas."""

    entry_id: int
    quota_number: int
    position: int
    total_in_queue: int
    percentile: int
    score: Decimal
    reentries: int
    entered_at: datetime
    estimated_wait: str


@dataclass
class LevelStats:
    """Statistics of one level."""

    level_number: int
    entry_value: Decimal
    reward_value: Decimal
    cash_balance: Decimal
    total_cycles: int
    cycles_today: int
    avg_cycles_per_day: float
    total_in_queue: int
    oldest_entry_at: datetime | None
    oldest_entry_days: int | None
    last_cycle_at: datetime | None


@dataclass
class QueueItem:
    """One row of the queue listing."""

    position: int
    entry_id: int
    user_id: int
    name: str
    code: str | None
    score: Decimal
    reentries: int
    time_in_queue: str
    is_current_user: bool


@dataclass
class QueuePage:
    """A page of the queue listing."""

    items: list[QueueItem] = field(default_factory=list)
    page: int = 1
    limit: int = 10
    total: int = 0
    total_pages: int = 0
    current_user_position: int | None = None


def estimate_wait_time(position: int, avg_cycles_per_day: float) -> str:
    """
    Estimate how long a queue position waits for its cycle.

    Each cycle consumes 7 positions.

    Args:
        position: 1-based queue position
        avg_cycles_per_day: Recent cycle rate of the level

    Returns:
        Human readable estimate
    """
    if avg_cycles_per_day <= 0:
        return format_wait_estimate(None)

    cycles_needed = math.ceil(position / MATRIX_SIZE)
    return format_wait_estimate(cycles_needed / avg_cycles_per_day)


class QueueStatsService(BaseService):
    """Read-only queue statistics."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize queue statistics service."""
        super().__init__(session)
        self.level_repo = LevelRepository(session)
        self.entry_repo = QueueEntryRepository(session)
        self.user_repo = UserRepository(session)
        self.history_repo = CycleHistoryRepository(session)

    estimate_wait_time = staticmethod(estimate_wait_time)

    async def _get_level(self, level_number: int) -> Level:
        level = await self.level_repo.get_by_number(level_number)
        if level is None:
            raise LevelNotFoundError(level_number)
        return level

    async def _avg_cycles_per_day(self, level: Level) -> float:
        since = utc_now() - timedelta(days=STATS_WINDOW_DAYS)
        cycles = await self.history_repo.count_level_cycles_since(level.id, since)
        return cycles / STATS_WINDOW_DAYS

    async def get_user_positions(
        self, user_id: int, level_number: int
    ) -> list[UserQueuePosition]:
        """
        Positions of all WAITING quotas of a user at a level.

        Args:
            user_id: Queue owner
            level_number: Level

        Returns:
            Positions, best placed first

        Raises:
            LevelNotFoundError: Level does not exist
        """
        level = await self._get_level(level_number)
        entries = await self.entry_repo.get_user_waiting_entries(user_id, level.id)
        if not entries:
            return []

        total = await self.entry_repo.count_waiting(level.id)
        avg_cycles = await self._avg_cycles_per_day(level)

        positions = []
        for entry in entries:
            position = await self.entry_repo.get_position(entry)
            positions.append(
                UserQueuePosition(
                    entry_id=entry.id,
                    quota_number=entry.quota_number,
                    position=position,
                    total_in_queue=total,
                    percentile=round((1 - (position - 1) / total) * 100),
                    score=entry.score,
                    reentries=entry.reentries,
                    entered_at=entry.entered_at,
                    estimated_wait=estimate_wait_time(position, avg_cycles),
                )
            )
        return positions

    async def get_level_stats(self, level_number: int) -> LevelStats:
        """
        Statistics of one level.

        Raises:
            LevelNotFoundError: Level does not exist
        """
        level = await self._get_level(level_number)

        start_of_day = utc_now().replace(hour=0, minute=0, second=0, microsecond=0)
        cycles_today = await self.history_repo.count_level_cycles_since(
            level.id, start_of_day
        )
        oldest = await self.entry_repo.get_oldest_waiting_entered_at(level.id)

        return LevelStats(
            level_number=level.level_number,
            entry_value=level.entry_value,
            reward_value=level.reward_value,
            cash_balance=level.cash_balance,
            total_cycles=level.total_cycles,
            cycles_today=cycles_today,
            avg_cycles_per_day=await self._avg_cycles_per_day(level),
            total_in_queue=await self.entry_repo.count_waiting(level.id),
            oldest_entry_at=oldest,
            oldest_entry_days=days_since(oldest) if oldest is not None else None,
            last_cycle_at=level.last_cycle_at,
        )

    async def get_all_levels_stats(self) -> list[LevelStats]:
        """Statistics of every level, ascending."""
        return [
            await self.get_level_stats(level.level_number)
            for level in await self.level_repo.get_all()
        ]

    async def get_queue_page(
        self,
        level_number: int,
        page: int = 1,
        limit: int = 10,
        current_user_id: int | None = None,
    ) -> QueuePage:
        """
        Paginated WAITING queue of a level in queue order.

        An unknown level yields an empty page.

        Args:
            level_number: Level
            page: 1-based page number
            limit: Page size
            current_user_id: Viewer, flagged in items and located

        Returns:
            QueuePage
        """
        page = max(page, 1)
        level = await self.level_repo.get_by_number(level_number)
        if level is None:
            return QueuePage(page=page, limit=limit)

        total = await self.entry_repo.count_waiting(level.id)
        entries = await self.entry_repo.get_waiting_page(
            level.id, (page - 1) * limit, limit
        )

        start = (page - 1) * limit + 1
        items = []
        for index, entry in enumerate(entries):
            user = await self.user_repo.get_by_id(entry.user_id)
            items.append(
                QueueItem(
                    position=start + index,
                    entry_id=entry.id,
                    user_id=entry.user_id,
                    name=format_display_name(user.name if user else None),
                    code=user.referral_code if user else None,
                    score=entry.score,
                    reentries=entry.reentries,
                    time_in_queue=format_time_in_queue(entry.entered_at),
                    is_current_user=entry.user_id == current_user_id,
                )
            )

        current_position = None
        if current_user_id is not None:
            viewer_entry = await self._best_waiting_entry(current_user_id, level.id)
            if viewer_entry is not None:
                current_position = await self.entry_repo.get_position(viewer_entry)

        return QueuePage(
            items=items,
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit) if limit else 0,
            current_user_position=current_position,
        )

    async def _best_waiting_entry(self, user_id: int, level_id: int):
        entries = await self.entry_repo.get_user_waiting_entries(user_id, level_id)
        return entries[0] if entries else None

    async def find_user_page(
        self, user_id: int, level_number: int, limit: int = 10
    ) -> tuple[int, int] | None:
        """
        Locate the page holding the user's best placed quota.

        Returns:
            (position, page) or None if the user is not queued there
        """
        level = await self.level_repo.get_by_number(level_number)
        if level is None:
            return None

        entry = await self._best_waiting_entry(user_id, level.id)
        if entry is None:
            return None

        position = await self.entry_repo.get_position(entry)
        return position, math.ceil(position / limit)
