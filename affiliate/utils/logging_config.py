"""
Logging setup.

Configures loguru sinks for workers and maintenance scripts.
"""

import sys

from loguru import logger

from affiliate.config.settings import settings


def setup_logging(component: str = "affiliate") -> None:
    """
    Configure logger with stderr and rotating file sinks.

    Args:
        component: Name logged at startup and bound to every record
    """
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

    logger.configure(extra={"component": component})
    logger.info(f"Starting {component}...")
