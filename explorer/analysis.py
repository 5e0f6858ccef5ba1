from __future__ import annotations

import logging
from typing import Callable

from .catalog import EngineRequest, columns_request, describe_request, execute, histogram_request, info_request
from .decoder import Failure, StructuredResult
from .errors import BoundaryError, DecodeError, OperationInProgressError
from .lifecycle import EngineLifecycle
from .output import DATASET_REGION, DESCRIBE_REGION, HISTOGRAM_REGION, INFO_REGION, OutputSink
from .schemas import ColumnsResponse, DescribeResponse, HistogramResponse, InfoResponse
from .session import SessionState

logger = logging.getLogger(__name__)

NO_DATASET_MESSAGE = "No dataset loaded. Please process a CSV file first."


class AnalysisDispatcher:
    """On-demand requests against the resident dataset, each gated on `dataset_loaded`."""

    def __init__(self, state: SessionState, sink: OutputSink, lifecycle: EngineLifecycle) -> None:
        self._state = state
        self._sink = sink
        self._lifecycle = lifecycle

    async def _request(self, region: str, request: EngineRequest) -> StructuredResult | None:
        """Run one request; boundary and decode faults are reported and come back as None."""
        try:
            return await execute(self._lifecycle.handle, request)
        except DecodeError as exc:
            self._sink.write(region, f"Integration error: {exc}", "error")
        except BoundaryError as exc:
            self._sink.write(region, f"Engine call failed: {exc}", "error")
        return None

    async def _run(self, region: str, name: str, request: EngineRequest, render: Callable[[object], None]) -> bool:
        if not self._state.dataset_loaded:
            self._sink.write(region, NO_DATASET_MESSAGE, "error")
            return False

        try:
            with self._state.operation(name):
                self._sink.clear(region)
                result = await self._request(region, request)
        except OperationInProgressError as exc:
            self._sink.write(region, str(exc), "error")
            return False

        if result is None:
            return False
        if isinstance(result, Failure):
            self._sink.write(region, result.reason, "error")
            return False
        render(result.payload)
        return True

    async def show_info(self) -> bool:
        def _render(payload: InfoResponse) -> None:
            self._sink.write(INFO_REGION, payload.info_text or "", "pre")

        return await self._run(INFO_REGION, "info", info_request(), _render)

    async def show_describe(self) -> bool:
        def _render(payload: DescribeResponse) -> None:
            self._sink.write(DESCRIBE_REGION, payload.describe_html or "", "html")

        return await self._run(DESCRIBE_REGION, "describe", describe_request(), _render)

    async def show_histogram(self, column: str | None) -> bool:
        if not self._state.dataset_loaded:
            self._sink.write(HISTOGRAM_REGION, NO_DATASET_MESSAGE, "error")
            return False
        if not column:
            self._sink.clear(HISTOGRAM_REGION)
            self._sink.write(HISTOGRAM_REGION, "Please select a column first.", "error")
            return False

        def _render(payload: HistogramResponse) -> None:
            self._sink.write(HISTOGRAM_REGION, payload.message or f"Histogram for '{column}' generated.", "success")
            self._sink.write(HISTOGRAM_REGION, payload.image_base64 or "", "image")

        return await self._run(HISTOGRAM_REGION, "histogram", histogram_request(column), _render)

    async def enumerate_columns(self) -> list[str]:
        """Refresh numeric column names; runs inside the caller's operation."""
        result = await self._request(DATASET_REGION, columns_request())
        if result is None or isinstance(result, Failure):
            if isinstance(result, Failure):
                self._sink.write(DATASET_REGION, f"Could not list numeric columns: {result.reason}", "error")
            self._state.available_columns = []
            return []

        payload: ColumnsResponse = result.payload
        self._state.available_columns = list(payload.columns or [])
        if not self._state.available_columns:
            self._sink.write(DATASET_REGION, "No numeric columns found; histogram is unavailable.", "warning")
        logger.info("Numeric columns: %s", self._state.available_columns)
        return list(self._state.available_columns)

    async def refresh_columns(self) -> list[str]:
        if not self._state.dataset_loaded:
            self._sink.write(DATASET_REGION, NO_DATASET_MESSAGE, "error")
            return []
        try:
            with self._state.operation("columns"):
                return await self.enumerate_columns()
        except OperationInProgressError as exc:
            self._sink.write(DATASET_REGION, str(exc), "error")
            return []
