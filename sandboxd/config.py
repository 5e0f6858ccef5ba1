from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path

from shared.constants import sandbox_home

DEFAULT_ALLOWED_EXTENSIONS = ("numpy", "pandas", "matplotlib")


@dataclass(slots=True)
class SandboxdConfig:
    allowed_extensions: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_EXTENSIONS))
    preview_rows: int = 5
    histogram_bins: int = 30
    plot_backend: str = "Agg"
    max_live_proxies: int = 256


def _config_path() -> Path:
    return sandbox_home() / "config" / "sandboxd.json"


def _int_or_default(value: object, default: int, minimum: int) -> int:
    try:
        parsed = int(value)  # type: ignore[arg-type]
    except Exception:
        parsed = default
    return max(minimum, parsed)


def load_config() -> SandboxdConfig:
    raw: dict = {}
    cfg_path = _config_path()
    if cfg_path.exists():
        try:
            raw = json.loads(cfg_path.read_text(encoding="utf-8"))
        except Exception:
            raw = {}
    if not isinstance(raw, dict):
        raw = {}

    allowed_raw = raw.get("allowed_extensions", list(DEFAULT_ALLOWED_EXTENSIONS))
    if isinstance(allowed_raw, list):
        allowed = [str(v).strip() for v in allowed_raw if str(v).strip()]
    else:
        allowed = list(DEFAULT_ALLOWED_EXTENSIONS)

    preview_rows = _int_or_default(raw.get("preview_rows", 5), 5, 1)
    env_preview = os.getenv("SANDBOXD_PREVIEW_ROWS", "").strip()
    if env_preview:
        preview_rows = _int_or_default(env_preview, preview_rows, 1)

    plot_backend = str(raw.get("plot_backend", "Agg")).strip() or "Agg"

    return SandboxdConfig(
        allowed_extensions=allowed,
        preview_rows=preview_rows,
        histogram_bins=_int_or_default(raw.get("histogram_bins", 30), 30, 1),
        plot_backend=plot_backend,
        max_live_proxies=_int_or_default(raw.get("max_live_proxies", 256), 256, 1),
    )
