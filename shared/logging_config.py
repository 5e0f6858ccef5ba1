"""
Logging configuration shared by the engine daemon and the desktop client.
"""
from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

LOG_LEVEL_ENV = "TABLESCOPE_LOG_LEVEL"


def _level_from_env(default: int) -> int:
    raw = os.getenv(LOG_LEVEL_ENV, "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_logging(namespace: str, level: int = logging.INFO, log_file: Path | None = None) -> logging.Logger:
    """
    Configure the logger for one top-level package namespace.

    Args:
        namespace: Package logger name ("explorer" or "sandboxd").
        level: Fallback level when TABLESCOPE_LOG_LEVEL is unset or invalid.
        log_file: Optional path of a UTF-8 log file, overwritten per run.
    """
    logger = logging.getLogger(namespace)
    level = _level_from_env(level)
    logger.setLevel(level)

    # Avoid duplicate handlers when the app is restarted in-process
    if logger.hasHandlers():
        logger.handlers.clear()

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.info("Logging initialized.")
    return logger
