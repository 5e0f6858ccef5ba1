"""Shared package for constants, runtime paths, and logging setup."""

from .constants import (
    SANDBOXD_BASE_URL,
    ensure_dirs,
    explorer_home,
    get_localappdata,
    sandbox_home,
)
from .logging_config import setup_logging

__all__ = [
    "SANDBOXD_BASE_URL",
    "get_localappdata",
    "sandbox_home",
    "explorer_home",
    "ensure_dirs",
    "setup_logging",
]
