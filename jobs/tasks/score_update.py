"""
Score update task.

Recomputes queue scores so waiting time keeps counting between cycles.
"""

import dramatiq
from loguru import logger

from jobs.async_runner import run_async
from jobs.utils.database import get_task_matrix_service


@dramatiq.actor(max_retries=3, time_limit=300_000)
def update_queue_scores() -> int:
    """
    Update WAITING scores of every level.

    Returns:
        Number of entries updated
    """
    logger.info("Starting queue score update...")

    updated = run_async(get_task_matrix_service().update_all_scores())

    logger.info(f"Queue score update complete: {updated} entries")
    return updated
