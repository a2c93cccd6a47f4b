"""
Matrix background tasks.

Importing this package registers every actor with the broker.
"""

from jobs.tasks.cycle_processing import process_matrix_cycles
from jobs.tasks.jupiter_pool_monitor import monitor_jupiter_pool
from jobs.tasks.score_update import update_queue_scores
from jobs.tasks.stuck_cycle_recovery import recover_stuck_cycles


__all__ = [
    "monitor_jupiter_pool",
    "process_matrix_cycles",
    "recover_stuck_cycles",
    "update_queue_scores",
]
