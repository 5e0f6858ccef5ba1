from __future__ import annotations

import asyncio
import logging
import subprocess
import sys
from contextlib import suppress
from time import monotonic

from .boundary import EngineBoundary
from .config import ExplorerConfig
from .errors import BootError, BoundaryError, DecodeError
from .output import ENGINE_REGION, OutputSink
from .session import SessionState

logger = logging.getLogger(__name__)

HEALTH_POLL_SECONDS = 0.25


class SubprocessLauncher:
    """Starts `python -m sandboxd` unless a daemon already answers on the configured URL."""

    def __init__(self, *, timeout_seconds: float = 30.0, spawn: bool = True) -> None:
        self.timeout_seconds = timeout_seconds
        self.spawn = spawn
        self._process: subprocess.Popen | None = None

    async def _is_healthy(self, boundary: EngineBoundary) -> bool:
        try:
            await boundary.health()
        except (BoundaryError, DecodeError):
            return False
        return True

    async def ensure_running(self, boundary: EngineBoundary) -> None:
        if await self._is_healthy(boundary):
            logger.info("Reusing running engine at %s", boundary.base_url)
            return
        if not self.spawn:
            raise BootError(f"No engine is running at {boundary.base_url} and launching is disabled.")

        try:
            self._process = subprocess.Popen([sys.executable, "-m", "sandboxd"])
        except OSError as exc:
            raise BootError(f"Could not start the engine process: {exc}") from exc
        logger.info("Spawned engine process pid=%s", self._process.pid)

        deadline = monotonic() + self.timeout_seconds
        while monotonic() < deadline:
            await asyncio.sleep(HEALTH_POLL_SECONDS)
            code = self._process.poll()
            if code is not None:
                self._process = None
                raise BootError(f"Engine process exited during startup with code {code}.")
            if await self._is_healthy(boundary):
                return

        self.shutdown()
        raise BootError(f"Engine did not become healthy within {self.timeout_seconds:.0f}s.")

    def shutdown(self) -> None:
        process, self._process = self._process, None
        if process is None or process.poll() is not None:
            return
        process.terminate()
        with suppress(subprocess.TimeoutExpired):
            process.wait(timeout=5)
            return
        process.kill()


class EngineLifecycle:
    """Owns the engine handle; boot runs once per session and is terminal on failure."""

    def __init__(
        self,
        state: SessionState,
        sink: OutputSink,
        config: ExplorerConfig,
        *,
        boundary: EngineBoundary | None = None,
        launcher: SubprocessLauncher | None = None,
    ) -> None:
        self._state = state
        self._sink = sink
        self._config = config
        self._boundary = boundary or EngineBoundary(
            config.engine_base_url,
            request_timeout=config.request_timeout_seconds,
        )
        self._launcher = launcher or SubprocessLauncher(
            timeout_seconds=config.boot_timeout_seconds,
            spawn=config.launch_engine,
        )
        self._handle: EngineBoundary | None = None
        self._boot_attempted = False

    @property
    def handle(self) -> EngineBoundary:
        if self._handle is None:
            raise BootError("Analytic engine is not ready.")
        return self._handle

    async def boot(self) -> EngineBoundary:
        if self._boot_attempted:
            raise BootError("Engine boot was already attempted in this session; reload the app to retry.")
        self._boot_attempted = True
        self._state.engine_ready = False

        extensions = ", ".join(self._config.extensions)
        try:
            self._sink.write(ENGINE_REGION, "Initializing analytic engine...")
            await self._launcher.ensure_running(self._boundary)
            self._sink.write(ENGINE_REGION, "Analytic engine started successfully!", "success")

            self._sink.write(ENGINE_REGION, f"Loading {extensions}...")
            await self._boundary.load_packages(self._config.extensions)
            self._sink.write(ENGINE_REGION, f"{extensions} loaded successfully!", "success")
        except (BootError, BoundaryError, DecodeError) as exc:
            self._state.engine_ready = False
            self._sink.write(ENGINE_REGION, f"Error during engine initialization: {exc}", "error")
            raise BootError(str(exc)) from exc

        self._handle = self._boundary
        self._state.engine_ready = True
        self._sink.write(ENGINE_REGION, "Ready to process files.", "success")
        return self._handle

    def shutdown(self) -> None:
        self._launcher.shutdown()
