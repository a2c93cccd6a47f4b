"""Task utilities."""
from jobs.utils.database import (
    get_task_matrix_service,
    task_engine,
    task_session_maker,
)

__all__ = [
    "get_task_matrix_service",
    "task_engine",
    "task_session_maker",
]
