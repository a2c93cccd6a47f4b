"""
Distributed lock.

Redis-backed lock so only one worker runs a sweep at a time.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import redis.asyncio as redis
from loguru import logger
from redis.exceptions import LockError


class LockNotAcquiredError(Exception):
    """Raised when another worker holds the lock."""
    pass


class DistributedLock:
    """
    Non-blocking named locks on top of redis-py.

    Example:
        lock = DistributedLock(redis_client)
        async with lock.lock("matrix_cycle_sweep", timeout=300):
            ...
    """

    KEY_PREFIX = "matrix:lock:"

    def __init__(self, redis_client: redis.Redis) -> None:
        """
        Initialize lock helper.

        Args:
            redis_client: Async Redis client
        """
        self.redis_client = redis_client

    @asynccontextmanager
    async def lock(self, name: str, timeout: int = 300) -> AsyncIterator[None]:
        """
        Hold a named lock for the duration of the block.

        Args:
            name: Lock name
            timeout: Seconds after which Redis expires the lock

        Raises:
            LockNotAcquiredError: Lock is held elsewhere
        """
        redis_lock = self.redis_client.lock(
            f"{self.KEY_PREFIX}{name}", timeout=timeout, blocking=False
        )
        if not await redis_lock.acquire():
            raise LockNotAcquiredError(f"Lock {name} is held by another worker")

        logger.debug(f"Acquired lock {name}")
        try:
            yield
        finally:
            try:
                await redis_lock.release()
            except LockError as e:
                logger.warning(f"Lock {name} expired before release: {e}")
