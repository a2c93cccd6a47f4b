"""
Database access for background tasks.

Worker threads run their own event loops, so tasks use an engine
without connection pooling and a MatrixService bound to it.
"""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from app.config.settings import settings
from app.services.matrix import MatrixService


task_engine = create_async_engine(
    settings.database_url,
    echo=False,
    poolclass=NullPool,
)

task_session_maker = async_sessionmaker(
    bind=task_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


def get_task_matrix_service() -> MatrixService:
    """MatrixService using the task session maker."""
    return MatrixService(task_session_maker)
