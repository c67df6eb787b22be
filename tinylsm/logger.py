"""Logging setup for the engine: a rotating log file and a settable level."""

from __future__ import annotations

import logging
import os
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

LOGGER_NAME = "tinylsm"
DEFAULT_LOG_PATH = "logs/tiny_lsm.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
MAX_LOG_FILES = 3

OFF = logging.CRITICAL + 10

_LEVELS = {
    "trace": 5,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "err": logging.ERROR,
    "critical": logging.CRITICAL,
    "off": OFF,
}

_handler: RotatingFileHandler | None = None
_init_lock = threading.Lock()


def init_log_file(path: str | os.PathLike[str] = DEFAULT_LOG_PATH) -> logging.Logger:
    """Send the engine's log records to a rotating file at debug level.

    Only the first call has an effect; later calls return the same logger.
    """
    global _handler
    logger = logging.getLogger(LOGGER_NAME)
    with _init_lock:
        if _handler is not None:
            return logger
        log_path = Path(path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            log_path, maxBytes=MAX_LOG_BYTES, backupCount=MAX_LOG_FILES, encoding="utf-8"
        )
        handler.setFormatter(
            logging.Formatter("[%(asctime)s] [%(name)s] [%(levelname)s] %(message)s")
        )
        logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
        _handler = handler
    logger.info("logging initialized")
    return logger


def reset_log_level(level: str) -> int:
    """Set the engine's log level by name and return the numeric level.

    Unknown names switch logging off.
    """
    numeric = _LEVELS.get(level.strip().lower(), OFF)
    logging.getLogger(LOGGER_NAME).setLevel(numeric)
    return numeric