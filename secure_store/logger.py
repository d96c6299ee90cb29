"""
Logging setup for applications that embed the secure store.

Library modules only ever call logging.getLogger(__name__) or use a logger
handed to them; nothing here runs at import time.
"""

from __future__ import annotations

import json
import logging
import os
import sys
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Union

LOGGER_NAME = "secure_store"
LOG_FILE_NAME = "secure-store.log"
LOG_RETENTION_DAYS = 14


class JsonFormatter(logging.Formatter):
    """One JSON object per line, UTC timestamps."""

    converter = time.gmtime

    def __init__(self) -> None:
        super().__init__(datefmt="%Y-%m-%dT%H:%M:%SZ")

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logger(
    console_level: Union[int, str] = logging.ERROR,
    file_level: Union[int, str] = logging.INFO,
    log_dir: str = "logs",
) -> logging.Logger:
    """
    Configure the package logger with console and daily-rotating file output.

    Calling it again returns the already configured logger unchanged.

    Args:
        console_level: Minimum level written to stderr
        file_level: Minimum level written to the JSON log file
        log_dir: Directory for log files (created if missing)

    Returns:
        The "secure_store" logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
    logger.addHandler(console)

    os.makedirs(log_dir, exist_ok=True)
    file_handler = TimedRotatingFileHandler(
        os.path.join(log_dir, LOG_FILE_NAME),
        when="midnight",
        backupCount=LOG_RETENTION_DAYS,
        utc=True,
        encoding="utf-8",
    )
    file_handler.setLevel(file_level)
    file_handler.setFormatter(JsonFormatter())
    logger.addHandler(file_handler)

    return logger
