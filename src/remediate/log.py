"""
Logging
"""

from __future__ import annotations

import sys

from loguru import logger

__all__ = (
    "configure_logging",
    "logger",
)

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <7}</level> | "
    "<cyan>{name}</cyan> - <level>{message}</level>"
)


def configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Replace loguru's default sink with a stderr sink at the requested level.

    ``verbose`` wins over ``quiet`` when both are set.
    """
    level = "INFO"
    if quiet:
        level = "WARNING"
    if verbose:
        level = "DEBUG"

    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT, colorize=None)
