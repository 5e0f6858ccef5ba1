from __future__ import annotations

import os
from pathlib import Path

SANDBOXD_BASE_URL = "http://127.0.0.1:11436"


def get_localappdata() -> Path:
    """Return LOCALAPPDATA path; fallback to user home-based AppData/Local."""
    env_path = os.getenv("LOCALAPPDATA")
    if env_path:
        return Path(env_path)
    return Path.home() / "AppData" / "Local"


def sandbox_home() -> Path:
    """%LOCALAPPDATA%\\Sandboxd\\"""
    return get_localappdata() / "Sandboxd"


def explorer_home() -> Path:
    """%LOCALAPPDATA%\\TableScope\\"""
    return get_localappdata() / "TableScope"


def ensure_dirs() -> None:
    """Create runtime directories for both the engine daemon and the client."""
    for rel in ("config", "logs"):
        (sandbox_home() / rel).mkdir(parents=True, exist_ok=True)

    explorer_root = explorer_home()
    dirs = [
        explorer_root / "config",
        explorer_root / "logs",
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)
