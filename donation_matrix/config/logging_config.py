"""
Logging configuration.

Configures the loguru logger with a stderr sink and a rotated file sink.
"""

import sys

from loguru import logger

from donation_matrix.config.settings import settings


def setup_logging() -> None:
    """Configure logger with file rotation."""
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)

    if settings.log_file:
        logger.add(
            settings.log_file,
            rotation="1 day",
            retention="7 days",
            level=settings.log_level,
            encoding="utf-8",
        )

    logger.info("Donation matrix engine logging configured")
