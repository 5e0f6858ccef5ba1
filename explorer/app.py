from __future__ import annotations

import asyncio
import atexit
import logging
import os
import threading
from concurrent.futures import Future
from pathlib import Path
from typing import Any, Coroutine

import webview

from shared.constants import ensure_dirs, explorer_home
from shared.logging_config import setup_logging

from .analysis import AnalysisDispatcher
from .config import ExplorerConfig, load_config
from .errors import BootError
from .ingest import IngestionPipeline, SelectedFile
from .lifecycle import EngineLifecycle
from .output import OutputSink
from .session import SessionState

logger = logging.getLogger(__name__)

CALL_TIMEOUT_SECONDS = 600.0


class ExplorerApi:
    """JS API exposed to the webview; every operation runs on one private event loop."""

    def __init__(self, config: ExplorerConfig | None = None, *, lifecycle: EngineLifecycle | None = None) -> None:
        self._config = config or load_config()
        self._state = SessionState()
        self._sink = OutputSink()
        self._lifecycle = lifecycle or EngineLifecycle(self._state, self._sink, self._config)
        self._dispatcher = AnalysisDispatcher(self._state, self._sink, self._lifecycle)
        self._pipeline = IngestionPipeline(self._state, self._sink, self._lifecycle, self._dispatcher, self._config)
        self._selected: SelectedFile | None = None
        self._boot_future: Future | None = None

        self._loop = asyncio.new_event_loop()
        self._loop_thread = threading.Thread(target=self._loop.run_forever, name="explorer-loop", daemon=True)
        self._loop_thread.start()

    def _submit(self, coro: Coroutine[Any, Any, Any]) -> Future:
        return asyncio.run_coroutine_threadsafe(coro, self._loop)

    def _run(self, coro: Coroutine[Any, Any, Any]) -> Any:
        return self._submit(coro).result(timeout=CALL_TIMEOUT_SECONDS)

    async def _boot(self) -> None:
        try:
            await self._lifecycle.boot()
        except BootError as exc:
            logger.error("Engine boot failed: %s", exc)

    def start_engine(self) -> None:
        if self._boot_future is None:
            self._boot_future = self._submit(self._boot())

    async def _snapshot(self) -> dict:
        return {
            **self._state.as_dict(),
            "selected_file": self._selected.name if self._selected else None,
            "regions": self._sink.render(),
        }

    def get_state(self) -> dict:
        return self._run(self._snapshot())

    def select_file(self) -> dict:
        window = webview.windows[0]
        selected = window.create_file_dialog(
            webview.OPEN_DIALOG,
            allow_multiple=False,
            file_types=("CSV files (*.csv;*.txt)", "All files (*.*)"),
        )
        if selected:
            self._selected = SelectedFile.from_path(str(selected[0]))
        return self.get_state()

    def process_file(self) -> dict:
        self._run(self._pipeline.ingest(self._selected))
        return self.get_state()

    def show_info(self) -> dict:
        self._run(self._dispatcher.show_info())
        return self.get_state()

    def show_describe(self) -> dict:
        self._run(self._dispatcher.show_describe())
        return self.get_state()

    def show_histogram(self, column: str | None = None) -> dict:
        self._run(self._dispatcher.show_histogram(column))
        return self.get_state()

    def shutdown(self) -> None:
        self._lifecycle.shutdown()
        self._loop.call_soon_threadsafe(self._loop.stop)


def _assets_index_uri() -> str:
    return (Path(__file__).parent / "assets" / "index.html").resolve().as_uri()


def run_app() -> None:
    ensure_dirs()
    setup_logging("explorer", log_file=explorer_home() / "logs" / "explorer.log")

    api = ExplorerApi()
    atexit.register(api.shutdown)
    api.start_engine()
    webview.create_window(
        "TableScope",
        url=_assets_index_uri(),
        js_api=api,
        width=1180,
        height=760,
    )
    debug = os.getenv("EXPLORER_WEBVIEW_DEBUG", "0") == "1"
    try:
        webview.start(debug=debug, http_server=True)
    except TypeError:
        webview.start(debug=debug)


if __name__ == "__main__":
    run_app()
