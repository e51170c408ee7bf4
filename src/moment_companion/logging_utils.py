"""Logging helpers."""

from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler


def setup_logging(
    log_dir: str, level: int = logging.INFO, console: bool = True
) -> tuple[logging.Logger, str]:
    os.makedirs(log_dir, exist_ok=True)
    log_path = os.path.join(log_dir, "companion.log")

    logger = logging.getLogger("moment_companion")
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
            stream = logging.StreamHandler(sys.stderr)
            stream.setFormatter(fmt)
            logger.addHandler(stream)

    logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
    return logger, log_path
