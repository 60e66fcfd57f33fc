"""Structured JSON logging for td.

Writes JSONL to .todos/td.log with rotation (5MB, 3 backups). This is the
operational log; issue progress notes live in the store.
"""

from __future__ import annotations

import json
import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from typing import Any

_LOG_FILENAME = "td.log"
_setup_lock = threading.Lock()
_MAX_BYTES = 5 * 1024 * 1024  # 5MB
_BACKUP_COUNT = 3

# Structured extras copied into the JSON entry when present on the record
_EXTRA_FIELDS = ("command", "issue_id", "session", "action", "entity", "error")

logger = logging.getLogger("td")
logger.addHandler(logging.NullHandler())


class _JsonFormatter(logging.Formatter):
    """Format log records as single-line JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "ts": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for name in _EXTRA_FIELDS:
            if hasattr(record, name):
                entry[name] = getattr(record, name)
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = str(record.exc_info[1])
        return json.dumps(entry, default=str)


def get_logger(name: str) -> logging.Logger:
    """Child logger under the ``td`` namespace."""
    return logging.getLogger(f"td.{name}")


def setup_logging(todos_dir: str, level: str = "INFO") -> logging.Logger:
    """Set up structured JSON logging to .todos/td.log.

    Safe to call repeatedly; a handler for a different directory is replaced.
    """
    log_path = os.path.join(todos_dir, _LOG_FILENAME)
    target_filename = os.path.abspath(log_path)

    with _setup_lock:
        for h in logger.handlers[:]:
            if not isinstance(h, RotatingFileHandler):
                continue
            if h.baseFilename == target_filename:
                return logger
            logger.removeHandler(h)
            h.close()

        handler = RotatingFileHandler(
            log_path,
            maxBytes=_MAX_BYTES,
            backupCount=_BACKUP_COUNT,
        )
        handler.setFormatter(_JsonFormatter())
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    return logger


def shutdown_logging() -> None:
    """Detach and close file handlers (used when a project dir goes away)."""
    with _setup_lock:
        for h in logger.handlers[:]:
            if isinstance(h, RotatingFileHandler):
                logger.removeHandler(h)
                h.close()
