"""
Logging setup for the service and the libraries it drives.
"""

import logging
import sys
from typing import Iterable

from exam_timer.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Chatty at INFO; only their warnings are worth seeing next to ours
NOISY_LIBRARIES = ("aiosqlite", "sqlalchemy.engine", "redis", "uvicorn.access")


def _level(name: str) -> int:
    return getattr(logging, name.upper(), logging.INFO)


def setup_logger(name: str) -> logging.Logger:
    """
    Return a logger writing "timestamp | level | module | message" to stdout.

    Args:
        name: Logger name (usually __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    log_level = _level(settings.log_level)
    logger.setLevel(log_level)
    logger.propagate = False

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT))
    logger.addHandler(handler)

    return logger


def quiet_libraries(names: Iterable[str] = NOISY_LIBRARIES) -> None:
    """Raise third-party loggers to WARNING unless we run at DEBUG."""
    if _level(settings.log_level) <= logging.DEBUG:
        return
    for name in names:
        logging.getLogger(name).setLevel(logging.WARNING)


logger = setup_logger("exam_timer")
