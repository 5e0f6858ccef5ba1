from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from shared.constants import ensure_dirs

from .config import load_config
from .runtime import AnalyticRuntime, EngineError
from .security import TokenGuard, require_token
from .state import EngineState

logger = logging.getLogger(__name__)

GLOBAL_NAME_PATTERN = r"^[A-Za-z_][A-Za-z0-9_]*$"


class LoadPackagesRequest(BaseModel):
    names: list[str] = Field(min_length=1)


class LoadPackagesResponse(BaseModel):
    ok: bool
    loaded: list[str]


class BindGlobalRequest(BaseModel):
    name: str = Field(pattern=GLOBAL_NAME_PATTERN)
    value: Any = None


class EvaluateRequest(BaseModel):
    request: str = Field(min_length=1)


class EvaluateResponse(BaseModel):
    handle: str


class ReleaseResponse(BaseModel):
    ok: bool
    live_proxies: int


def create_app(runtime: AnalyticRuntime | None = None) -> FastAPI:
    app = FastAPI(title="sandboxd", version="0.1.0")
    state = EngineState(runtime or AnalyticRuntime(load_config()))
    app.state.engine = state
    app.state.token_guard = TokenGuard()

    @app.on_event("startup")
    async def on_startup() -> None:
        ensure_dirs()
        app.state.token_guard.load()
        state.token_enabled = app.state.token_guard.enabled
        logger.info("sandboxd started; waiting for extension load request")

    @app.exception_handler(EngineError)
    async def engine_error_handler(request: Request, exc: EngineError) -> JSONResponse:
        logger.warning("Engine error on %s: %s (%s)", request.url.path, exc.error, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.error, "detail": exc.detail})

    @app.get("/health")
    async def health() -> dict:
        return state.health().model_dump()

    @app.post("/packages/load", response_model=LoadPackagesResponse)
    async def load_packages(
        payload: LoadPackagesRequest,
        _: str = Depends(require_token),
    ) -> LoadPackagesResponse:
        async with state.lock:
            try:
                loaded = await asyncio.to_thread(state.runtime.load_packages, payload.names)
            except EngineError as exc:
                state.mark_error(exc.error)
                raise
        state.mark_ready()
        return LoadPackagesResponse(ok=True, loaded=loaded)

    @app.post("/globals")
    async def bind_global(
        payload: BindGlobalRequest,
        _: str = Depends(require_token),
    ) -> dict:
        async with state.lock:
            state.runtime.set_global(payload.name, payload.value)
        return {"ok": True}

    @app.post("/evaluate", response_model=EvaluateResponse)
    async def evaluate(
        payload: EvaluateRequest,
        _: str = Depends(require_token),
    ) -> EvaluateResponse:
        async with state.lock:
            state.active_evaluations += 1
            try:
                handle = await asyncio.to_thread(state.runtime.run, payload.request)
            finally:
                state.active_evaluations -= 1
        return EvaluateResponse(handle=handle)

    @app.get("/proxies/{handle}")
    async def proxy_value(handle: str, _: str = Depends(require_token)) -> dict:
        return {"value": state.runtime.proxy_value(handle)}

    @app.delete("/proxies/{handle}", response_model=ReleaseResponse)
    async def release_proxy(handle: str, _: str = Depends(require_token)) -> ReleaseResponse:
        live = state.runtime.destroy(handle)
        return ReleaseResponse(ok=True, live_proxies=live)

    return app


app = create_app()
