"""JSON-line logging for challenge events.

Every submission, rule trigger, config edit and storage failure is logged
as one JSON object per line, e.g.::

    {"ts": "2026-01-05T18:02:11+00:00", "level": "INFO", "event": "day_submitted", "day": 3, ...}

Handlers are attached once per logger name. ``LOG_LEVEL`` sets the level and
``LOG_FILE`` adds a size-rotated file next to the console output.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import Any

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
DEFAULT_BACKUP_COUNT = 5


def _file_handler(path: str) -> logging.Handler:
    log_dir = os.path.dirname(path)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    return RotatingFileHandler(
        path,
        maxBytes=int(os.getenv("LOG_MAX_BYTES", DEFAULT_MAX_BYTES)),
        backupCount=int(os.getenv("LOG_BACKUP_COUNT", DEFAULT_BACKUP_COUNT)),
    )


def get_logger(name: str = "riskcalc") -> logging.Logger:
    """Return the JSON logger called ``name``, configuring it on first use."""

    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    level = os.getenv("LOG_LEVEL", "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    handlers = [logging.StreamHandler()]
    log_path = os.getenv("LOG_FILE")
    if log_path:
        handlers.append(_file_handler(log_path))
    for handler in handlers:
        handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(handler)

    # each configured logger owns its handlers
    logger.propagate = False
    return logger


def log_json(logger: logging.Logger, event: str, level: int = logging.INFO, **kwargs: Any) -> None:
    """Emit ``event`` with ``kwargs`` as a single JSON line."""

    if not logger.isEnabledFor(level):
        return
    payload = {
        "ts": datetime.now(timezone.utc).isoformat(timespec="seconds"),
        "level": logging.getLevelName(level),
        "event": event,
        **kwargs,
    }
    logger.log(level, json.dumps(payload, default=str))


__all__ = ["get_logger", "log_json"]
