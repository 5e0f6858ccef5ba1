from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from .analysis import AnalysisDispatcher
from .catalog import execute, parse_csv_request
from .config import MB, ExplorerConfig
from .decoder import Failure
from .errors import BoundaryError, DecodeError, OperationInProgressError, ReadError, ValidationError
from .lifecycle import EngineLifecycle
from .output import ANALYSIS_REGIONS, DATASET_REGION, OutputSink
from .session import SessionState

logger = logging.getLogger(__name__)

TEXT_ENCODINGS = ("utf-8-sig", "utf-8", "cp949", "euc-kr")


def decode_bytes(data: bytes) -> str:
    errors: list[str] = []
    for enc in TEXT_ENCODINGS:
        try:
            return data.decode(enc)
        except UnicodeDecodeError as exc:
            errors.append(f"{enc}: {exc.reason}")
    raise ReadError(f"could not decode file as text ({' | '.join(errors)})")


@dataclass(frozen=True, slots=True)
class SelectedFile:
    path: Path
    name: str
    size: int
    stat_error: str | None = None

    @classmethod
    def from_path(cls, path: str | Path) -> SelectedFile:
        p = Path(path)
        try:
            size = p.stat().st_size
        except OSError as exc:
            return cls(path=p, name=p.name, size=0, stat_error=str(exc))
        return cls(path=p, name=p.name, size=size)

    def _read_text(self) -> str:
        try:
            data = self.path.read_bytes()
        except OSError as exc:
            raise ReadError(str(exc)) from exc
        return decode_bytes(data)

    async def read_text(self) -> str:
        return await asyncio.to_thread(self._read_text)


class IngestionPipeline:
    def __init__(
        self,
        state: SessionState,
        sink: OutputSink,
        lifecycle: EngineLifecycle,
        dispatcher: AnalysisDispatcher,
        config: ExplorerConfig,
    ) -> None:
        self._state = state
        self._sink = sink
        self._lifecycle = lifecycle
        self._dispatcher = dispatcher
        self._config = config

    def _error(self, message: str) -> None:
        self._sink.write(DATASET_REGION, message, "error")

    def _validate(self, selected: SelectedFile | None) -> SelectedFile:
        if not self._state.engine_ready:
            raise ValidationError("Analytic engine not yet loaded. Please wait.")
        if selected is None:
            raise ValidationError("Please select a CSV file first.")
        if selected.stat_error is not None:
            raise ReadError(selected.stat_error)
        if selected.size == 0:
            raise ValidationError("File is empty.")
        return selected

    async def ingest(self, selected: SelectedFile | None) -> bool:
        """Load one file into the engine; returns True when a dataset is resident afterwards."""
        if self._state.busy is not None:
            self._error(str(OperationInProgressError(self._state.busy)))
            return False

        self._sink.clear(DATASET_REGION, *ANALYSIS_REGIONS)
        with self._state.operation("ingest"):
            try:
                return await self._ingest(self._validate(selected))
            except ValidationError as exc:
                self._error(str(exc))
            except ReadError as exc:
                self._error(f"Error reading the file: {exc}")
            except DecodeError as exc:
                self._state.reset_dataset()
                self._error(f"Integration error: {exc}")
            except BoundaryError as exc:
                self._state.reset_dataset()
                self._error(f"Engine call failed: {exc}")
        return False

    async def _ingest(self, selected: SelectedFile) -> bool:
        if selected.size > self._config.large_file_bytes:
            self._sink.write(
                DATASET_REGION,
                f"{selected.name} is {selected.size / MB:.1f} MB; parsing may take a while.",
                "warning",
            )

        self._sink.write(DATASET_REGION, f"Processing {selected.name}...")
        text = await selected.read_text()
        if not text.strip():
            raise ValidationError("File contains no data.")
        self._sink.write(DATASET_REGION, "File read successfully. Sending to the engine for parsing...")

        result = await execute(self._lifecycle.handle, parse_csv_request(text))
        if isinstance(result, Failure):
            self._state.reset_dataset()
            self._error(result.message or "Error parsing CSV.")
            self._error(f"Engine error: {result.reason}")
            return False

        parsed = result.payload
        self._state.mark_dataset_loaded()
        self._sink.write(DATASET_REGION, parsed.message, "success")
        self._sink.write(DATASET_REGION, "First rows of the DataFrame:")
        self._sink.write(DATASET_REGION, parsed.head_html or "", "html")
        logger.info("Loaded %s shape=%s", selected.name, parsed.shape)

        await self._dispatcher.enumerate_columns()
        return True
