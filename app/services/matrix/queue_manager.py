"""
Queue manager.

Owns the ordered queue of each level: enqueue and top-up, purchase
gating, cycle readiness and exclusive candidate selection.

Every method runs inside the caller's transaction. Methods that change
a level's cash, counters or queue statuses expect the level row to be
locked (LevelRepository.get_by_number(..., for_update=True)).
"""

from dataclasses import dataclass
from decimal import Decimal
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from app.config.matrix_constants import FIRST_LEVEL, MATRIX_SIZE, TOTAL_LEVELS
from app.models.enums import QueueStatus
from app.models.level import Level
from app.models.queue_entry import QueueEntry
from app.repositories.level_repository import LevelRepository
from app.repositories.queue_entry_repository import QueueEntryRepository
from app.repositories.user_repository import UserRepository
from app.services.base_service import BaseService
from app.services.matrix.calculations import calculate_score
from app.utils.datetime_utils import hours_since, utc_now
from app.utils.exceptions import LevelNotFoundError, QueueEntryNotFoundError


@dataclass
class PurchaseEligibility:
    """Whether a user may buy a quota, and why not."""

    can_purchase: bool
    reason: str | None = None


def new_cycle_group_id(level_number: int) -> str:
    """Generate a cycle correlation ID."""
    return f"cycle_{level_number}_{uuid4().hex}"


class QueueManager(BaseService):
    """Queue operations of the matrix levels."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize queue manager."""
        super().__init__(session)
        self.level_repo = LevelRepository(session)
        self.entry_repo = QueueEntryRepository(session)
        self.user_repo = UserRepository(session)

    async def enqueue(
        self,
        user_id: int,
        level_number: int,
        is_new_quota: bool = True,
        *,
        level: Level | None = None,
        cash_credit: Decimal | None = None,
    ) -> QueueEntry:
        """
        Add a quota to a level's queue or top up an existing one.

        New quota: quota_number is the user's entry count at the level
        plus one, score starts from referral points only, the level's
        cash grows by cash_credit (entry value by default) and
        total_users by one.

        Top-up: the user's WAITING entry gets reentries + 1 and a
        recomputed score. No row is created and cash is untouched.

        Args:
            user_id: Owner of the quota
            level_number: Target level
            is_new_quota: Create a new entry instead of topping up
            level: Already locked level row, locked here when omitted
            cash_credit: Amount added to the level's cash

        Returns:
            Created or updated entry

        Raises:
            LevelNotFoundError: Level does not exist
            QueueEntryNotFoundError: Top-up without a WAITING entry
        """
        if level is None:
            level = await self.level_repo.get_by_number(
                level_number, for_update=True
            )
        if level is None:
            raise LevelNotFoundError(level_number)

        referrals = await self.user_repo.count_active_referrals(user_id)

        if not is_new_quota:
            entry = await self.entry_repo.get_user_waiting(user_id, level.id)
            if entry is None:
                raise QueueEntryNotFoundError(user_id, level_number)

            entry.reentries += 1
            entry.score = calculate_score(
                hours_since(entry.entered_at), entry.reentries, referrals
            )
            await self.session.flush()

            self.logger.debug(
                f"Topped up quota {entry.id} of user {user_id} at level "
                f"{level_number}: reentries={entry.reentries}"
            )
            return entry

        prior = await self.entry_repo.count_user_total(user_id, level.id)
        entry = await self.entry_repo.create(
            user_id=user_id,
            level_id=level.id,
            quota_number=prior + 1,
            score=calculate_score(0, 0, referrals),
            reentries=0,
            status=QueueStatus.WAITING.value,
            entered_at=utc_now(),
        )

        level.cash_balance += (
            cash_credit if cash_credit is not None else level.entry_value
        )
        level.total_users += 1
        await self.session.flush()

        self.logger.info(
            f"User {user_id} joined level {level_number} queue "
            f"with quota #{entry.quota_number}"
        )
        return entry

    async def count_active_quotas(self, user_id: int, level_number: int) -> int:
        """
        Count the user's WAITING quotas at a level.

        Returns 0 for an unknown level.
        """
        level = await self.level_repo.get_by_number(level_number)
        if level is None:
            return 0
        return await self.entry_repo.count_user_waiting(user_id, level.id)

    async def can_purchase(
        self, user_id: int, level_number: int
    ) -> PurchaseEligibility:
        """
        Check if a user may buy a quota at a level.

        The user must exist and be ACTIVE. Above level 1 the user also
        needs a WAITING quota at the level below.

        Args:
            user_id: Buyer
            level_number: Target level

        Returns:
            PurchaseEligibility with a denial reason
        """
        if not FIRST_LEVEL <= level_number <= TOTAL_LEVELS:
            return PurchaseEligibility(
                False, f"Invalid level: {level_number}"
            )

        user = await self.user_repo.get_by_id(user_id)
        if user is None:
            return PurchaseEligibility(False, "User not found")
        if not user.is_active:
            return PurchaseEligibility(False, "User is not active")

        if level_number > FIRST_LEVEL:
            previous = await self.count_active_quotas(user_id, level_number - 1)
            if previous == 0:
                return PurchaseEligibility(
                    False,
                    f"An active quota at level {level_number - 1} is required",
                )

        return PurchaseEligibility(True)

    async def is_ready(self, level: Level) -> bool:
        """Whether a level has 7 WAITING entries and cash for a cycle."""
        waiting = await self.entry_repo.count_waiting(level.id)
        if waiting < MATRIX_SIZE:
            return False
        return level.cash_balance >= level.entry_value * MATRIX_SIZE

    async def can_process_cycle(self, level_number: int) -> bool:
        """
        Check cycle readiness of a level.

        Returns False for an unknown level.
        """
        level = await self.level_repo.get_by_number(level_number)
        if level is None:
            return False
        return await self.is_ready(level)

    async def refresh_level_scores(self, level: Level) -> int:
        """
        Recompute scores of all WAITING entries of a level.

        Args:
            level: Level row

        Returns:
            Number of entries updated
        """
        entries = await self.entry_repo.get_waiting(level.id)
        if not entries:
            return 0

        referrals = await self.user_repo.count_active_referrals_bulk(
            list({entry.user_id for entry in entries})
        )
        now = utc_now()
        for entry in entries:
            entry.score = calculate_score(
                hours_since(entry.entered_at, now),
                entry.reentries,
                referrals.get(entry.user_id, 0),
            )

        await self.session.flush()
        return len(entries)

    async def select_cycle_candidates(
        self, level: Level, refresh_scores: bool = True
    ) -> list[QueueEntry]:
        """
        Lock the top WAITING entries of a locked level for a cycle.

        Selected entries move to PROCESSING and share a fresh
        cycle_group_id. The caller checks the count.

        Args:
            level: Locked level row
            refresh_scores: Recompute scores before selecting

        Returns:
            Up to 7 entries ranked by score
        """
        if refresh_scores:
            await self.refresh_level_scores(level)

        entries = await self.entry_repo.lock_top_waiting(level.id, MATRIX_SIZE)
        cycle_group_id = new_cycle_group_id(level.level_number)
        for entry in entries:
            entry.status = QueueStatus.PROCESSING.value
            entry.cycle_group_id = cycle_group_id

        await self.session.flush()
        return entries

    async def release_candidates(self, entries: list[QueueEntry]) -> None:
        """Return PROCESSING entries to WAITING."""
        for entry in entries:
            entry.status = QueueStatus.WAITING.value
            entry.cycle_group_id = None
        await self.session.flush()

    async def recirculate(self, entry: QueueEntry) -> None:
        """
        Send a cycled entry back to the end of the WAITING queue.

        reentries + 1, entered_at reset, score recomputed.
        """
        referrals = await self.user_repo.count_active_referrals(entry.user_id)
        entry.status = QueueStatus.WAITING.value
        entry.cycle_group_id = None
        entry.reentries += 1
        entry.entered_at = utc_now()
        entry.score = calculate_score(0, entry.reentries, referrals)
        await self.session.flush()
