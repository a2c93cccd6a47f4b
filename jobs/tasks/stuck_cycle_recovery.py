"""
Stuck cycle recovery task.

Resolves queue entries left PROCESSING by a worker that died between
candidate selection and commit.
"""

import dramatiq
from loguru import logger

from app.config.settings import settings
from app.utils.distributed_lock import DistributedLock, LockNotAcquiredError
from app.utils.redis_utils import get_redis_client
from jobs.async_runner import run_async
from jobs.tasks.cycle_processing import SWEEP_LOCK_NAME, SWEEP_LOCK_TIMEOUT
from jobs.utils.database import get_task_matrix_service


@dramatiq.actor(max_retries=3, time_limit=600_000)
def recover_stuck_cycles(older_than_minutes: int | None = None) -> dict:
    """
    Revert or complete stuck PROCESSING entries.

    Shares the sweep lock so recovery never races a running sweep.

    Args:
        older_than_minutes: Minimum age (STUCK_PROCESSING_MINUTES)

    Returns:
        Dict with reverted and completed counts
    """
    minutes = older_than_minutes or settings.stuck_processing_minutes
    logger.info(f"Starting stuck cycle recovery (older than {minutes} min)...")

    result = run_async(_recover_stuck_cycles_async(minutes))

    if result.get("reverted") or result.get("completed"):
        logger.warning(
            f"Stuck cycle recovery: {result['reverted']} reverted, "
            f"{result['completed']} completed"
        )
    else:
        logger.info("Stuck cycle recovery: nothing to do")
    return result


async def _recover_stuck_cycles_async(minutes: int) -> dict:
    """Async implementation of stuck cycle recovery."""
    redis_client = get_redis_client()
    lock = DistributedLock(redis_client)

    try:
        async with lock.lock(SWEEP_LOCK_NAME, timeout=SWEEP_LOCK_TIMEOUT):
            recovery = await get_task_matrix_service().recover_stuck_entries(minutes)
            return {"reverted": recovery.reverted, "completed": recovery.completed}
    except LockNotAcquiredError:
        logger.info("Cycle sweep in progress, recovery postponed")
        return {"reverted": 0, "completed": 0, "skipped": True}
    finally:
        await redis_client.aclose()
