from __future__ import annotations

import asyncio
import logging
from typing import Any

import requests

from sandboxd.security import TOKEN_HEADER_NAME, read_token
from shared.constants import SANDBOXD_BASE_URL

from .errors import BoundaryError, DecodeError

logger = logging.getLogger(__name__)

HEALTH_TIMEOUT_SECONDS = 1.0
REQUEST_TIMEOUT_SECONDS = 120.0
ERROR_TEXT_MAX_LENGTH = 240


def _clip_text(value: object, limit: int = ERROR_TEXT_MAX_LENGTH) -> str:
    text_value = str(value or "").strip()
    if len(text_value) <= limit:
        return text_value
    return f"{text_value[:limit].rstrip()}…"


class BoundaryValue:
    """Engine-owned result handle. `destroy()` must run once the value is decoded."""

    def __init__(self, boundary: EngineBoundary, handle: str) -> None:
        self._boundary = boundary
        self.handle = handle
        self.destroyed = False

    async def to_py(self) -> Any:
        if self.destroyed:
            raise BoundaryError("Result handle was already released.", detail=self.handle)
        return await self._boundary.fetch(self.handle)

    async def destroy(self) -> None:
        if self.destroyed:
            return
        self.destroyed = True
        await self._boundary.release(self.handle)


class EngineBoundary:
    """HTTP client for the sandboxd contract; every call runs off the event loop."""

    def __init__(
        self,
        base_url: str = SANDBOXD_BASE_URL,
        *,
        http: Any = None,
        request_timeout: float = REQUEST_TIMEOUT_SECONDS,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._http = http or requests.Session()
        self._request_timeout = request_timeout

    def _headers(self) -> dict[str, str]:
        try:
            token = read_token()
        except FileNotFoundError as exc:
            raise BoundaryError("Engine token file not found. Has sandboxd been started?", status_code=401) from exc
        except OSError as exc:
            raise BoundaryError("Engine token file could not be read.", detail=str(exc), status_code=401) from exc
        return {TOKEN_HEADER_NAME: token, "Content-Type": "application/json"}

    def _error_from_response(self, response: Any) -> BoundaryError:
        if response.status_code == 401:
            return BoundaryError("Engine rejected the local token.", status_code=401)

        try:
            data = response.json()
        except ValueError:
            data = None

        if isinstance(data, dict):
            primary = _clip_text(data.get("error") or data.get("message") or "")
            detail = _clip_text(data.get("detail") or "")
            if primary:
                return BoundaryError(primary, detail=detail, status_code=response.status_code)
            if detail:
                return BoundaryError(detail, status_code=response.status_code)

        if response.status_code >= 500:
            return BoundaryError("Engine internal error.", status_code=response.status_code)
        return BoundaryError(f"Engine request failed with HTTP {response.status_code}.", status_code=response.status_code)

    def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        *,
        auth: bool = True,
        timeout: float | None = None,
    ) -> dict:
        headers = self._headers() if auth else {}
        try:
            response = self._http.request(
                method,
                f"{self.base_url}{path}",
                json=payload,
                headers=headers,
                timeout=timeout or self._request_timeout,
            )
        except requests.Timeout as exc:
            raise BoundaryError("Engine did not answer in time.", detail=path, status_code=504) from exc
        except requests.RequestException as exc:
            raise BoundaryError("Engine is unreachable.", detail=exc.__class__.__name__, status_code=503) from exc

        if response.status_code != 200:
            raise self._error_from_response(response)

        try:
            data = response.json()
        except ValueError as exc:
            raise DecodeError(f"Engine response to {path} is not JSON.") from exc
        if not isinstance(data, dict):
            raise DecodeError(f"Engine response to {path} is not an object.")
        return data

    async def _call(self, method: str, path: str, payload: dict | None = None, **kwargs: Any) -> dict:
        return await asyncio.to_thread(self._request, method, path, payload, **kwargs)

    async def health(self) -> dict:
        return await self._call("GET", "/health", auth=False, timeout=HEALTH_TIMEOUT_SECONDS)

    async def load_packages(self, names: list[str]) -> list[str]:
        data = await self._call("POST", "/packages/load", {"names": list(names)})
        loaded = data.get("loaded")
        if not isinstance(loaded, list):
            raise DecodeError("Engine response to /packages/load has no 'loaded' list.")
        return [str(n) for n in loaded]

    async def set_global(self, name: str, value: Any) -> None:
        await self._call("POST", "/globals", {"name": name, "value": value})

    async def evaluate(self, request: str) -> BoundaryValue:
        data = await self._call("POST", "/evaluate", {"request": request})
        handle = data.get("handle")
        if not isinstance(handle, str) or not handle:
            raise DecodeError("Engine response to /evaluate has no 'handle'.")
        return BoundaryValue(self, handle)

    async def fetch(self, handle: str) -> Any:
        data = await self._call("GET", f"/proxies/{handle}")
        if "value" not in data:
            raise DecodeError(f"Engine proxy {handle} has no 'value'.")
        return data["value"]

    async def release(self, handle: str) -> None:
        data = await self._call("DELETE", f"/proxies/{handle}")
        logger.debug("Released handle=%s live_proxies=%s", handle, data.get("live_proxies"))
