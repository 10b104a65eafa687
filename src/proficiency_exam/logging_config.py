"""Log routing for the exam service: progress to stdout, problems to stderr"""

import logging
import sys
from typing import Optional

from proficiency_exam.config import config

LOG_FORMAT = "%(levelname)s:%(name)s:%(message)s"

# httpx logs every request line at INFO, and those carry payment references
QUIET_LOGGERS = ("httpx", "httpcore")


class BelowWarningFilter(logging.Filter):
    def filter(self, record):
        return record.levelno < logging.WARNING


def _level_from_name(name: Optional[str]) -> int:
    level = logging.getLevelName((name or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(level: Optional[str] = None):
    """
    Configure the root logger for the service.

    DEBUG and INFO records go to stdout, WARNING and above to stderr.
    Calling it again replaces the handlers instead of stacking new ones.

    Args:
        level: Level name, defaults to ``config["log_level"]``. Unknown
            names fall back to INFO.
    """
    formatter = logging.Formatter(LOG_FORMAT)

    stdout_handler = logging.StreamHandler(sys.stdout)
    stdout_handler.setLevel(logging.DEBUG)
    stdout_handler.addFilter(BelowWarningFilter())
    stdout_handler.setFormatter(formatter)

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.WARNING)
    stderr_handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(_level_from_name(level or config["log_level"]))
    root_logger.handlers.clear()
    root_logger.addHandler(stdout_handler)
    root_logger.addHandler(stderr_handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
