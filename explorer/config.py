from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from shared.constants import SANDBOXD_BASE_URL, explorer_home

DEFAULT_EXTENSIONS = ("numpy", "pandas", "matplotlib")
MB = 1024 * 1024


@dataclass(slots=True)
class ExplorerConfig:
    engine_base_url: str = SANDBOXD_BASE_URL
    extensions: list[str] = field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    large_file_bytes: int = 50 * MB
    boot_timeout_seconds: float = 30.0
    request_timeout_seconds: float = 120.0
    launch_engine: bool = True


def _config_path() -> Path:
    return explorer_home() / "config" / "explorer.json"


def _float_or_default(value: object, default: float) -> float:
    try:
        parsed = float(value)  # type: ignore[arg-type]
    except Exception:
        return default
    return parsed if parsed > 0 else default


def load_config() -> ExplorerConfig:
    raw: dict = {}
    cfg_path = _config_path()
    if cfg_path.exists():
        try:
            raw = json.loads(cfg_path.read_text(encoding="utf-8"))
        except Exception:
            raw = {}
    if not isinstance(raw, dict):
        raw = {}

    base_url = str(raw.get("engine_base_url", "")).strip() or SANDBOXD_BASE_URL
    env_url = os.getenv("EXPLORER_ENGINE_URL", "").strip()
    if env_url:
        base_url = env_url

    ext_raw = raw.get("extensions", list(DEFAULT_EXTENSIONS))
    extensions = [str(v).strip() for v in ext_raw if str(v).strip()] if isinstance(ext_raw, list) else []
    extensions = extensions or list(DEFAULT_EXTENSIONS)

    large_mb = _float_or_default(raw.get("large_file_mb", 50), 50.0)
    env_large = os.getenv("EXPLORER_LARGE_FILE_MB", "").strip()
    if env_large:
        large_mb = _float_or_default(env_large, large_mb)

    return ExplorerConfig(
        engine_base_url=base_url.rstrip("/"),
        extensions=extensions,
        large_file_bytes=int(large_mb * MB),
        boot_timeout_seconds=_float_or_default(raw.get("boot_timeout_seconds", 30), 30.0),
        request_timeout_seconds=_float_or_default(raw.get("request_timeout_seconds", 120), 120.0),
        launch_engine=bool(raw.get("launch_engine", True)),
    )
