"""
Logging configuration.

Configures loguru sinks for workers and scripts.
"""

import sys

from loguru import logger

from mintsync.config.settings import settings


def setup_logging(log_file: str | None = "logs/mintsync.log") -> None:
    """Configure logger with stderr output and file rotation."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=settings.log_level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | {message}"
        ),
    )
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )
