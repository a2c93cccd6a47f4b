"""
Cycle processing task.

Fires every ready cycle across all levels. Runs on the scheduler's
sweep interval and can be sent on demand by an operator.
"""

import dramatiq
from loguru import logger

from app.utils.distributed_lock import DistributedLock, LockNotAcquiredError
from app.utils.redis_utils import get_redis_client
from jobs.async_runner import run_async
from jobs.utils.database import get_task_matrix_service


SWEEP_LOCK_NAME = "matrix_cycle_sweep"
SWEEP_LOCK_TIMEOUT = 300  # seconds


@dramatiq.actor(max_retries=3, time_limit=600_000)  # 10 min, above lock timeout
def process_matrix_cycles(max_cycles: int | None = None) -> dict:
    """
    Process pending matrix cycles.

    Args:
        max_cycles: Upper bound for this sweep (MAX_CYCLES_PER_SWEEP)

    Returns:
        Dict with cycles_processed, by_level and errors
    """
    logger.info("Starting matrix cycle sweep...")

    result = run_async(_process_matrix_cycles_async(max_cycles))

    logger.info(
        f"Matrix cycle sweep complete: {result['cycles_processed']} cycles, "
        f"{len(result['errors'])} errors"
    )
    return result


async def _process_matrix_cycles_async(max_cycles: int | None) -> dict:
    """Async implementation of the cycle sweep."""
    redis_client = get_redis_client()
    lock = DistributedLock(redis_client)

    try:
        async with lock.lock(SWEEP_LOCK_NAME, timeout=SWEEP_LOCK_TIMEOUT):
            sweep = await get_task_matrix_service().process_pending_cycles(max_cycles)
            return {
                "cycles_processed": sweep.cycles_processed,
                "by_level": sweep.by_level,
                "errors": sweep.errors,
            }
    except LockNotAcquiredError:
        logger.info("Cycle sweep already running on another worker, skipping")
        return {"cycles_processed": 0, "by_level": {}, "errors": [], "skipped": True}
    finally:
        await redis_client.aclose()
