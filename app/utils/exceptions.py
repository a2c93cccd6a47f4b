"""
Exception handling utilities.

Defines the matrix error taxonomy and helpers to classify database
errors by handling strategy.
"""

from typing import Any

from sqlalchemy.exc import DBAPIError, OperationalError


class MatrixError(Exception):
    """Base class for matrix engine errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context


# Not found

class LevelNotFoundError(MatrixError):
    """Raised when a level number has no row."""

    def __init__(self, level_number: int) -> None:
        super().__init__(
            f"Level {level_number} not found", level_number=level_number
        )


class UserNotFoundError(MatrixError):
    """Raised when a user id has no row."""

    def __init__(self, user_id: int) -> None:
        super().__init__(f"User {user_id} not found", user_id=user_id)


class QueueEntryNotFoundError(MatrixError):
    """Raised when a user has no WAITING entry to top up."""

    def __init__(self, user_id: int, level_number: int) -> None:
        super().__init__(
            f"User {user_id} has no waiting quota at level {level_number}",
            user_id=user_id,
            level_number=level_number,
        )


NOT_FOUND_ERRORS = (
    LevelNotFoundError,
    UserNotFoundError,
    QueueEntryNotFoundError,
)


class MatrixValidationError(MatrixError):
    """Raised when a request breaks a business rule."""
    pass


class InsufficientPoolBalanceError(MatrixValidationError):
    """Raised when an injection exceeds the Jupiter Pool balance."""
    pass


class ConcurrencyConflictError(MatrixError):
    """
    Raised after conflict retries are exhausted.

    The operation had no effect and is safe to retry.
    """

    retry_safe = True


class CycleInvariantError(MatrixError):
    """
    Raised when a cycle cannot complete consistently.

    The surrounding transaction must be rolled back.
    """
    pass


# SQLSTATE codes worth retrying: serialization failure, deadlock,
# lock not available
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03"})


def get_sqlstate(exc: BaseException) -> str | None:
    """
    Extract SQLSTATE from a wrapped DBAPI error.

    Args:
        exc: Exception raised by SQLAlchemy

    Returns:
        SQLSTATE code or None
    """
    if not isinstance(exc, DBAPIError):
        return None
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


def is_conflict_error(exc: BaseException) -> bool:
    """
    Check if exception is a transient concurrency conflict.

    Args:
        exc: Exception to check

    Returns:
        True if the transaction may be retried
    """
    if get_sqlstate(exc) in RETRYABLE_SQLSTATES:
        return True
    # SQLite reports lock contention without SQLSTATE
    return isinstance(exc, OperationalError) and "database is locked" in str(exc)
