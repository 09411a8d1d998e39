"""
Console logging for the backup service.

Usage:
    from db_backup.logging_config import init_logging
    init_logging()
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime

# ANSI color codes for console output
COLORS = {
    "DEBUG": "\033[36m",  # Cyan
    "INFO": "\033[32m",  # Green
    "WARNING": "\033[33m",  # Yellow
    "ERROR": "\033[31m",  # Red
    "CRITICAL": "\033[35m",  # Magenta
    "RESET": "\033[0m",
}

# Module-specific colors for tags
TAG_COLORS = {
    "db_backup.backup": "\033[94m",  # Blue
    "db_backup.database": "\033[92m",  # Green
    "db_backup.storage": "\033[95m",  # Magenta
    "db_backup.retention": "\033[93m",  # Yellow
    "db_backup.cron": "\033[96m",  # Cyan
}

_NOISY_LOGGERS = ("boto3", "botocore", "s3transfer", "urllib3")

_initialized = False


class ColoredConsoleFormatter(logging.Formatter):
    """Formatter with colored level names and ``[logger]`` tags."""

    def __init__(self, use_color: bool = True) -> None:
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        if self.use_color:
            level_color = COLORS.get(record.levelname, "")
            reset = COLORS["RESET"]
            tag_color = TAG_COLORS.get(record.name, "\033[37m")
        else:
            level_color = reset = tag_color = ""

        timestamp = datetime.fromtimestamp(record.created).strftime("%Y-%m-%d %H:%M:%S")
        level_str = f"{level_color}{record.levelname:8}{reset}"
        tag_str = f"{tag_color}[{record.name}]{reset}"

        msg = f"{timestamp} {level_str} {tag_str} {record.getMessage()}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def _get_console_level() -> int:
    """Console level from LOG_LEVEL, defaulting to INFO."""
    level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_name, logging.INFO)


def init_logging(console_level: int | None = None) -> None:
    """Install the colored console handler on the root logger (idempotent)."""
    global _initialized

    if _initialized:
        return

    if console_level is None:
        console_level = _get_console_level()

    root_logger = logging.getLogger()
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(ColoredConsoleFormatter(use_color=sys.stdout.isatty()))

    root_logger.setLevel(console_level)
    root_logger.addHandler(console_handler)

    # Reduce noise from third-party libraries
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _initialized = True
