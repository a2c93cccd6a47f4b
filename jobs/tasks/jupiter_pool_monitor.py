"""
Jupiter Pool monitor task.

Logs stalled levels and the intervention the pool would need. Injections
stay an explicit operator action.
"""

import dramatiq
from loguru import logger

from app.models.enums import LevelHealthStatus
from app.services.jupiter_pool_service import JupiterPoolService
from jobs.async_runner import run_async
from jobs.utils.database import task_session_maker


@dramatiq.actor(max_retries=1, time_limit=120_000)
def monitor_jupiter_pool() -> dict:
    """
    Report level staleness and pool coverage.

    Returns:
        Dict with level status counts, intervention total and pool balance
    """
    logger.info("Starting Jupiter Pool monitoring...")
    return run_async(_monitor_jupiter_pool_async())


async def _monitor_jupiter_pool_async() -> dict:
    """Async implementation of Jupiter Pool monitoring."""
    async with task_session_maker() as session:
        service = JupiterPoolService(session)
        balance = await service.get_balance()
        report = await service.get_levels_health()

    for health in report.levels:
        if health.needs_intervention:
            log = (
                logger.error
                if health.status == LevelHealthStatus.CRITICAL
                else logger.warning
            )
            log(
                f"Level {health.level} stalled for {health.days_since_last_cycle} "
                f"days: queue={health.queue_size} cash={health.cash_balance} "
                f"estimated intervention={health.estimated_intervention}"
            )

    summary = report.summary
    if summary.total_intervention_needed > balance.balance:
        logger.warning(
            f"Jupiter Pool balance {balance.balance} cannot cover "
            f"estimated interventions {summary.total_intervention_needed}"
        )

    logger.info(
        f"Jupiter Pool monitoring complete: healthy={summary.healthy} "
        f"warning={summary.warning} critical={summary.critical} "
        f"overall={summary.overall_health}% pool_health={balance.health_score}"
    )
    return {
        "healthy": summary.healthy,
        "warning": summary.warning,
        "critical": summary.critical,
        "overall_health": summary.overall_health,
        "total_intervention_needed": str(summary.total_intervention_needed),
        "pool_balance": str(balance.balance),
        "pool_health_score": balance.health_score,
    }
