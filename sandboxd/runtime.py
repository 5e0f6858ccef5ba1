from __future__ import annotations

import importlib
import logging
import threading
from dataclasses import dataclass
from types import ModuleType
from typing import Any, Callable
from uuid import uuid4

from .config import SandboxdConfig

logger = logging.getLogger(__name__)

PYPLOT_MODULE = "matplotlib.pyplot"


class EngineError(RuntimeError):
    def __init__(self, *, error: str, detail: str | None = None, status_code: int = 500) -> None:
        super().__init__(detail or error)
        self.error = error
        self.detail = detail
        self.status_code = status_code


class ExtensionLoadError(EngineError):
    def __init__(self, *, detail: str, status_code: int = 500) -> None:
        super().__init__(error="extension_load_failed", detail=detail, status_code=status_code)


class UnknownRequestError(EngineError):
    def __init__(self, *, request: str) -> None:
        super().__init__(error="unknown_request", detail=request, status_code=404)


class ProxyNotFoundError(EngineError):
    def __init__(self, *, handle: str) -> None:
        super().__init__(error="proxy_not_found", detail=handle, status_code=404)


@dataclass
class DatasetSlot:
    """Single-slot repository for the resident dataset."""

    name: str = "df_global"
    _frame: Any = None

    @property
    def is_loaded(self) -> bool:
        return self._frame is not None

    def set(self, frame: Any) -> None:
        self._frame = frame

    def clear(self) -> None:
        self._frame = None

    def get(self) -> Any:
        return self._frame


RequestTemplate = Callable[["AnalyticRuntime"], dict[str, Any]]


class AnalyticRuntime:
    """Sandboxed interpreter state: loaded extensions, bound globals, live result proxies."""

    def __init__(self, config: SandboxdConfig | None = None, catalog: dict[str, RequestTemplate] | None = None) -> None:
        if catalog is None:
            from .templates import CATALOG

            catalog = CATALOG
        self.config = config or SandboxdConfig()
        self.catalog = catalog
        self.dataset = DatasetSlot()
        self._globals: dict[str, Any] = {}
        self._extensions: dict[str, ModuleType] = {}
        self._proxies: dict[str, Any] = {}
        self._lock = threading.Lock()

    @property
    def loaded_extensions(self) -> list[str]:
        return [name for name in self._extensions if name != PYPLOT_MODULE]

    @property
    def live_proxies(self) -> int:
        with self._lock:
            return len(self._proxies)

    def has_extension(self, name: str) -> bool:
        return name in self._extensions

    def require(self, name: str) -> ModuleType:
        module = self._extensions.get(name)
        if module is None:
            raise EngineError(error="extension_not_loaded", detail=name, status_code=409)
        return module

    def _import_extension(self, name: str) -> None:
        if name == "matplotlib":
            matplotlib = importlib.import_module("matplotlib")
            matplotlib.use(self.config.plot_backend)
            self._extensions[name] = matplotlib
            self._extensions[PYPLOT_MODULE] = importlib.import_module(PYPLOT_MODULE)
            return
        self._extensions[name] = importlib.import_module(name)

    def load_packages(self, names: list[str]) -> list[str]:
        allowed = set(self.config.allowed_extensions)
        rejected = [n for n in names if n not in allowed]
        if rejected:
            raise ExtensionLoadError(
                detail=f"extension(s) not allowed in sandbox: {', '.join(rejected)}",
                status_code=403,
            )

        for name in names:
            if name in self._extensions:
                continue
            try:
                self._import_extension(name)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", name, exc)
                raise ExtensionLoadError(detail=f"{name}: {exc}") from exc
            logger.info("Loaded extension %s", name)
        return self.loaded_extensions

    def set_global(self, name: str, value: Any) -> None:
        self._globals[name] = value

    def get_global(self, name: str, default: Any = None) -> Any:
        return self._globals.get(name, default)

    def pop_global(self, name: str, default: Any = None) -> Any:
        return self._globals.pop(name, default)

    def run(self, request: str) -> str:
        """Evaluate a catalog request and keep its result behind a new proxy handle."""
        template = self.catalog.get(request)
        if template is None:
            raise UnknownRequestError(request=request)

        try:
            result = template(self)
        except EngineError:
            raise
        except Exception as exc:
            logger.exception("Request %s raised outside its own error handling", request)
            raise EngineError(error="evaluation_failed", detail=f"{type(exc).__name__}: {exc}") from exc

        handle = uuid4().hex
        with self._lock:
            self._proxies[handle] = result
            live = len(self._proxies)
        if live > self.config.max_live_proxies:
            logger.warning("Live proxy count %s exceeds limit %s; clients are not releasing results", live, self.config.max_live_proxies)
        logger.debug("Evaluated request=%s handle=%s", request, handle)
        return handle

    def proxy_value(self, handle: str) -> Any:
        with self._lock:
            if handle not in self._proxies:
                raise ProxyNotFoundError(handle=handle)
            return self._proxies[handle]

    def destroy(self, handle: str) -> int:
        with self._lock:
            if self._proxies.pop(handle, None) is None:
                raise ProxyNotFoundError(handle=handle)
            return len(self._proxies)
