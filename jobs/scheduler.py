"""
Matrix task scheduler.

Sends the matrix actors to the broker on fixed intervals and serves the
health endpoint. Workers are started separately:

    dramatiq jobs.broker jobs.tasks
    python -m jobs.scheduler
"""

import asyncio
import signal

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

from app.config.settings import settings
from app.utils.logging import setup_logging
from jobs.broker import broker  # noqa: F401
from jobs.health import start_health_server, stop_health_server
from jobs.tasks import (
    monitor_jupiter_pool,
    process_matrix_cycles,
    recover_stuck_cycles,
    update_queue_scores,
)


def create_scheduler() -> AsyncIOScheduler:
    """
    Build the scheduler with one interval job per matrix actor.

    Returns:
        Configured, not yet started AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    job_defaults = {"max_instances": 1, "coalesce": True}

    scheduler.add_job(
        process_matrix_cycles.send,
        "interval",
        seconds=settings.cycle_sweep_interval_seconds,
        id="process_matrix_cycles",
        name="Matrix cycle sweep",
        **job_defaults,
    )
    scheduler.add_job(
        update_queue_scores.send,
        "interval",
        seconds=settings.score_update_interval_seconds,
        id="update_queue_scores",
        name="Queue score update",
        **job_defaults,
    )
    scheduler.add_job(
        recover_stuck_cycles.send,
        "interval",
        minutes=settings.stuck_processing_minutes,
        id="recover_stuck_cycles",
        name="Stuck cycle recovery",
        **job_defaults,
    )
    scheduler.add_job(
        monitor_jupiter_pool.send,
        "interval",
        seconds=settings.pool_monitor_interval_seconds,
        id="monitor_jupiter_pool",
        name="Jupiter Pool monitor",
        **job_defaults,
    )
    return scheduler


async def main() -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    setup_logging("matrix scheduler")

    scheduler = create_scheduler()
    scheduler.start()
    runner = await start_health_server(scheduler, port=settings.health_check_port)
    logger.info(f"Scheduler started with {len(scheduler.get_jobs())} jobs")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)

    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down scheduler...")
        scheduler.shutdown(wait=False)
        await stop_health_server(runner)


if __name__ == "__main__":
    asyncio.run(main())
