"""
Database decorators for conflict retry.

Retries a whole unit of work when the database reports a serialization
failure or deadlock.
"""

import asyncio
from collections.abc import Callable
from functools import wraps
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy.exc import DBAPIError

from app.config.settings import settings
from app.utils.exceptions import ConcurrencyConflictError, is_conflict_error


T = TypeVar("T")


def with_conflict_retry(func: Callable[..., T]) -> Callable[..., T]:
    """
    Decorator that re-runs an async unit of work on conflicts.

    The wrapped function must open and finish its own transaction, so a
    retry starts from a clean session. Backoff doubles on every attempt.

    Usage:
        @with_conflict_retry
        async def purchase_quota(self, user_id: int, level_number: int):
            async with self.session_maker() as session, session.begin():
                ...

    Args:
        func: Async function to wrap

    Returns:
        Wrapped function raising ConcurrencyConflictError once
        CONFLICT_MAX_RETRIES retries are exhausted
    """
    @wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        max_retries = settings.conflict_max_retries
        backoff = settings.conflict_retry_backoff_ms / 1000

        attempt = 0
        while True:
            try:
                return await func(*args, **kwargs)
            except DBAPIError as e:
                if not is_conflict_error(e):
                    raise
                if attempt >= max_retries:
                    logger.error(
                        f"Conflict retries exhausted in {func.__name__} "
                        f"after {attempt + 1} attempts"
                    )
                    raise ConcurrencyConflictError(
                        f"{func.__name__} aborted by concurrent update, retry later",
                        function=func.__name__,
                        attempts=attempt + 1,
                    ) from e

                delay = backoff * (2 ** attempt)
                attempt += 1
                logger.warning(
                    f"Conflict in {func.__name__}, retry {attempt}/{max_retries} "
                    f"in {delay:.3f}s"
                )
                await asyncio.sleep(delay)

    return wrapper
