"""
Logging setup.

Configures loguru sinks for the matrix engine processes.
Sets up log rotation and retention policies.
"""

import sys

from loguru import logger

from app.config.settings import settings


def setup_logging(process_name: str = "matrix") -> None:
    """Configure logger with stderr and file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)
    logger.add(
        settings.log_file,
        rotation="1 day",
        retention="7 days",
        level=settings.log_level,
        encoding="utf-8",
    )

    logger.info(f"Starting {process_name} ({settings.environment})...")
