"""Logging setup shared by the API server and the audit CLI.

Every run logs to stdout and to LOG_FILE. The audit CLI relies on this to keep
a dated trail of findings next to what it prints.
"""

import logging
import os
import sys
from pathlib import Path

LOG_FORMAT = "[%(asctime)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at INFO; they only pass WARNING and above
QUIET_LOGGERS = ("sqlalchemy.engine", "httpx", "uvicorn.access")


def get_log_level(level_name: str | None = None) -> int:
    """Level for level_name, else LOG_LEVEL, else INFO (unknown names also give INFO)."""
    name = (level_name or os.getenv("LOG_LEVEL") or "INFO").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


def _handler(handler: logging.Handler, level: int) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def setup_logging(log_file: str = "logs/condo.log", level_name: str | None = None) -> None:
    """
    Route the root logger to stdout and to log_file.

    Args:
        log_file: Log file path; missing parent directories are created
        level_name: Level name overriding LOG_LEVEL (optional)

    Calling it again replaces the handlers installed by a previous call.
    """
    log_path = Path(log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = get_log_level(level_name)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    root_logger.addHandler(_handler(logging.StreamHandler(sys.stdout), level))
    root_logger.addHandler(_handler(logging.FileHandler(log_path, encoding="utf-8"), level))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
