"""Pytest configuration and shared fixtures for all tests."""

import itertools
import os
import sys
from decimal import Decimal
from pathlib import Path

# Minimal environment for settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "DEBUG")

# Add project root to PYTHONPATH
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import dramatiq
import pytest
from dramatiq.brokers.stub import StubBroker
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Actors bind to the global broker at import time
dramatiq.set_broker(StubBroker())
import jobs.tasks  # noqa: E402, F401

from app.models import Base, UserStatus
from app.repositories.level_repository import LevelRepository
from app.repositories.user_repository import UserRepository
from app.services.matrix import MatrixService, QueueManager


@pytest.fixture
async def engine(tmp_path):
    """File-backed SQLite engine with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'matrix.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session_maker(engine):
    """Session factory over a database with the 10 levels seeded."""
    maker = async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    await MatrixService(maker).initialize_levels()
    return maker


@pytest.fixture
def matrix_service(session_maker):
    """MatrixService bound to the test database."""
    return MatrixService(session_maker)


@pytest.fixture
def create_user(session_maker):
    """
    Factory creating committed users.

    Returns:
        Async callable(status=ACTIVE, balance=0, referrer_id=None, name=None)
    """
    counter = itertools.count(1)

    async def _create(
        status: UserStatus = UserStatus.ACTIVE,
        balance: Decimal = Decimal("0"),
        referrer_id: int | None = None,
        name: str | None = None,
    ):
        number = next(counter)
        async with session_maker() as session, session.begin():
            return await UserRepository(session).create(
                name=name or f"User {number}",
                referral_code=f"REF{number:05d}",
                status=status.value,
                balance=balance,
                referrer_id=referrer_id,
            )

    return _create


@pytest.fixture
def enqueue(session_maker):
    """
    Put users straight into a level queue, bypassing purchase checks.

    Returns:
        Async callable(user_ids, level_number, cash_credit=None) -> entry ids
    """
    async def _enqueue(
        user_ids: list[int],
        level_number: int = 1,
        cash_credit: Decimal | None = None,
    ) -> list[int]:
        ids = []
        for user_id in user_ids:
            async with session_maker() as session, session.begin():
                level = await LevelRepository(session).get_by_number(
                    level_number, for_update=True
                )
                entry = await QueueManager(session).enqueue(
                    user_id, level_number, level=level, cash_credit=cash_credit
                )
                ids.append(entry.id)
        return ids

    return _enqueue
