"""Logging setup for the accounts service."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

log_format = logging.Formatter(
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
)


def setup_logger(name: str = "accounts") -> logging.Logger:
    """Log to stdout, and to a rotating file when LOG_FILE is set.

    The level comes from LOG_LEVEL (INFO by default).
    """
    log = logging.getLogger(name)
    log.setLevel(getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))
    if log.handlers:
        return log

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    log_file = os.getenv("LOG_FILE")
    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8")
        )
    for handler in handlers:
        handler.setFormatter(log_format)
        log.addHandler(handler)
    return log


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"accounts.{name}")
