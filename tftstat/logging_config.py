"""Centralized logging configuration for the tftstat crawler."""

import logging
import sys
from typing import Optional, TextIO

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Bibliothèques trop bavardes en INFO
NOISY_LOGGERS = ("aiohttp", "pymongo", "uvicorn.access", "asyncio")


def _parse_level(level: Optional[str]) -> int:
    if not level:
        return logging.INFO
    value = logging.getLevelName(level.upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: Optional[str] = None, stream: TextIO = sys.stdout) -> None:
    """
    Configure logging for the whole crawler process.

    One line per event on ``stream``; the per-cycle summaries of each region
    are logged at INFO, per-player lines at DEBUG.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Unknown or missing values fall back to INFO.
        stream: Destination of the log lines (stdout by default)
    """
    log_level = _parse_level(level)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=[logging.StreamHandler(stream)],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("tftstat").setLevel(log_level)
    # Le client Riot logue chaque 429 / retry : on garde INFO même en DEBUG
    logging.getLogger("tftstat.riot").setLevel(max(log_level, logging.INFO))

    logger = logging.getLogger("tftstat.logging_config")
    if level and _parse_level(level) == logging.INFO and level.upper() != "INFO":
        logger.warning(f"Unknown log level {level!r}, using INFO")
    logger.info(f"Logging initialized at level: {logging.getLevelName(log_level)}")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with consistent configuration.

    Args:
        name: The logger name (typically __name__)

    Returns:
        Configured logger instance
    """
    return logging.getLogger(name)
