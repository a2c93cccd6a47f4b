"""
Services.

Business logic layer.
"""

from app.services.base_service import BaseService, log_operation, transaction
from app.services.jupiter_pool_service import JupiterPoolService
from app.services.matrix import MatrixService
from app.services.queue_stats_service import QueueStatsService


__all__ = [
    "BaseService",
    "JupiterPoolService",
    "MatrixService",
    "QueueStatsService",
    "log_operation",
    "transaction",
]
