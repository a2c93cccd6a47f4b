#!/usr/bin/env python3
"""Initialize database tables and seed the matrix levels."""

import asyncio
import sys

from loguru import logger
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from app.config.settings import settings
from app.models import Base
from app.services.matrix import MatrixService

# Configure logger for script
logger.remove()
logger.add(sys.stderr, level="INFO")


async def init_database() -> None:
    """Create all tables, then seed levels and singletons."""
    logger.info("Connecting to database...")
    engine = create_async_engine(settings.database_url, echo=False)

    async with engine.begin() as conn:
        logger.info("Creating tables (checkfirst=True)...")
        await conn.run_sync(Base.metadata.create_all, checkfirst=True)

    session_maker = async_sessionmaker(engine, expire_on_commit=False)
    created = await MatrixService(session_maker).initialize_levels()

    await engine.dispose()
    logger.success(f"Database initialized ({created} levels created)")


if __name__ == "__main__":
    asyncio.run(init_database())
