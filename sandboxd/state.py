from __future__ import annotations

import asyncio
from time import monotonic
from typing import Literal

from pydantic import BaseModel, Field

from shared.constants import SANDBOXD_BASE_URL

from .runtime import AnalyticRuntime

HealthStatus = Literal["ready", "starting", "error"]


class HealthResponse(BaseModel):
    status: HealthStatus
    reasons: list[str] = Field(default_factory=list)
    extensions: list[str] = Field(default_factory=list)
    dataset_loaded: bool = False
    live_proxies: int = 0
    uptime_ms: int
    token_enabled: bool = True
    base_url: str = SANDBOXD_BASE_URL


class EngineState:
    """In-memory daemon state: readiness plus the per-engine evaluation lock."""

    def __init__(self, runtime: AnalyticRuntime) -> None:
        self.runtime = runtime
        self.started_at = monotonic()
        self.status: HealthStatus = "starting"
        self.reasons: list[str] = ["extensions_not_loaded"]
        self.token_enabled: bool = True
        self.active_evaluations: int = 0
        self.lock = asyncio.Lock()

    def uptime_ms(self) -> int:
        return int((monotonic() - self.started_at) * 1000)

    def mark_ready(self) -> None:
        self.status = "ready"
        self.reasons = []

    def mark_error(self, reason: str) -> None:
        self.status = "error"
        self.reasons = [reason]

    def health(self) -> HealthResponse:
        return HealthResponse(
            status=self.status,
            reasons=list(self.reasons),
            extensions=self.runtime.loaded_extensions,
            dataset_loaded=self.runtime.dataset.is_loaded,
            live_proxies=self.runtime.live_proxies,
            uptime_ms=self.uptime_ms(),
            token_enabled=self.token_enabled,
            base_url=SANDBOXD_BASE_URL,
        )
