"""
Logging configuration

Two kinds of loggers exist:
- module loggers (logging.getLogger(__name__)) for the service itself
- the "flow_tracker" logger, the default sink tracked log lines are mirrored to
"""

import logging
import sys
from typing import Optional
from core.config import settings

MIRROR_LOGGER_NAME = "flow_tracker"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

# Third-party loggers kept at WARNING
QUIET_LOGGERS = ("sqlalchemy.engine", "sqlalchemy.pool", "apscheduler", "httpx")


def resolve_level(name: Optional[str], default: int = logging.INFO) -> int:
    if not name:
        return default
    level = logging.getLevelName(name.upper())
    return level if isinstance(level, int) else default


def setup_logging(level: Optional[str] = None, mirror_level: Optional[str] = None) -> logging.Logger:
    """
    Configure the root logger on stdout and return the mirror logger.

    level defaults to settings.LOG_LEVEL; mirror_level (the "flow_tracker"
    logger) defaults to the same level.
    """
    log_level = resolve_level(level or settings.LOG_LEVEL)

    logging.basicConfig(
        level=log_level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    mirror = logging.getLogger(MIRROR_LOGGER_NAME)
    mirror.setLevel(resolve_level(mirror_level, default=log_level))

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured at {logging.getLevelName(log_level)} level")
    return mirror
