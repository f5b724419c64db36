"""Logging helpers."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

PAGE_LOGGER_NAME = "meetlive.page"


def setup_logging(log_dir: str = "logs", level: int = logging.INFO, console: bool = True) -> tuple[logging.Logger, str]:
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "meetlive.log")

    logger = logging.getLogger("meetlive")
    logger.setLevel(level)

    if not logger.handlers:
        fmt = logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler = RotatingFileHandler(log_path, maxBytes=2_000_000, backupCount=3)
        handler.setFormatter(fmt)
        logger.addHandler(handler)
        if console:
            stream = logging.StreamHandler(sys.stdout)
            stream.setFormatter(fmt)
            logger.addHandler(stream)

    return logger, log_path


def log_bot(message: str) -> None:
    """Sink for log lines produced inside the meeting page."""
    logging.getLogger(PAGE_LOGGER_NAME).info("%s", message)
