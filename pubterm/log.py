"""Logging setup. The TUI owns the terminal, so records go to a file."""
from __future__ import annotations

import logging
import os
from pathlib import Path

from .config import LOG_FILENAME, config_dir

LOG_FMT = "%(asctime)s %(levelname)s %(name)s: %(message)s"

_CONFIGURED = False


def setup_logging(level: int | str | None = None, path: Path | None = None) -> Path:
    """Attach a file handler to the package logger once; returns the log path."""
    global _CONFIGURED
    path = path or config_dir() / LOG_FILENAME
    level = level or os.getenv("PUB_LOG_LEVEL", "INFO").upper()
    logger = logging.getLogger("pubterm")
    logger.setLevel(level)
    if _CONFIGURED:
        return path
    path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FMT))
    logger.addHandler(handler)
    logger.propagate = False
    _CONFIGURED = True
    return path
