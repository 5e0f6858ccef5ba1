from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi.testclient import TestClient

from explorer.analysis import AnalysisDispatcher
from explorer.config import ExplorerConfig
from explorer.errors import BootError, BoundaryError
from explorer.ingest import IngestionPipeline, SelectedFile
from explorer.lifecycle import EngineLifecycle
from explorer.output import OutputSink
from explorer.session import SessionState
from sandboxd.app import create_app
from sandboxd.config import SandboxdConfig
from sandboxd.runtime import AnalyticRuntime
from sandboxd.security import get_or_create_token

EXTENSIONS = ["numpy", "pandas", "matplotlib"]


@pytest.fixture
def app_home(tmp_path, monkeypatch):
    monkeypatch.setenv("LOCALAPPDATA", str(tmp_path / "appdata"))
    return tmp_path / "appdata"


@pytest.fixture
def runtime():
    rt = AnalyticRuntime(SandboxdConfig())
    rt.load_packages(EXTENSIONS)
    return rt


@pytest.fixture
def token(app_home):
    return get_or_create_token()


@pytest.fixture
def client(app_home):
    with TestClient(create_app(AnalyticRuntime(SandboxdConfig()))) as c:
        yield c


@pytest.fixture
def write_csv(tmp_path):
    def _write(content: str | bytes, name: str = "data.csv") -> SelectedFile:
        path = tmp_path / name
        if isinstance(content, bytes):
            path.write_bytes(content)
        else:
            path.write_text(content, encoding="utf-8")
        return SelectedFile.from_path(path)

    return _write


class FakeValue:
    def __init__(self, handle: str, raw: Any, *, fail_fetch: Exception | None = None) -> None:
        self.handle = handle
        self.raw = raw
        self.fail_fetch = fail_fetch
        self.destroy_calls = 0

    async def to_py(self) -> Any:
        if self.fail_fetch is not None:
            raise self.fail_fetch
        return self.raw

    async def destroy(self) -> None:
        self.destroy_calls += 1


@dataclass
class FakeBoundary:
    """Stands in for EngineBoundary; responses are keyed by request name."""

    responses: dict[str, Any] = field(default_factory=dict)
    calls: list[tuple] = field(default_factory=list)
    values: list[FakeValue] = field(default_factory=list)
    base_url: str = "http://fake-engine"

    async def health(self) -> dict:
        self.calls.append(("health",))
        return {"status": "starting"}

    async def load_packages(self, names: list[str]) -> list[str]:
        self.calls.append(("load_packages", tuple(names)))
        outcome = self.responses.get("load_packages")
        if isinstance(outcome, Exception):
            raise outcome
        return list(names)

    async def set_global(self, name: str, value: Any) -> None:
        self.calls.append(("set_global", name, value))

    async def evaluate(self, request: str) -> FakeValue:
        self.calls.append(("evaluate", request))
        outcome = self.responses[request]
        if isinstance(outcome, BoundaryError):
            raise outcome
        value = FakeValue(f"h{len(self.values)}", outcome)
        self.values.append(value)
        return value

    def evaluated(self) -> list[str]:
        return [c[1] for c in self.calls if c[0] == "evaluate"]


class FakeLauncher:
    def __init__(self, error: str | None = None) -> None:
        self.error = error
        self.started = 0
        self.stopped = 0

    async def ensure_running(self, boundary: Any) -> None:
        self.started += 1
        if self.error:
            raise BootError(self.error)

    def shutdown(self) -> None:
        self.stopped += 1


@dataclass
class Stack:
    state: SessionState
    sink: OutputSink
    lifecycle: EngineLifecycle
    dispatcher: AnalysisDispatcher
    pipeline: IngestionPipeline
    boundary: Any
    launcher: FakeLauncher

    async def boot(self) -> None:
        await self.lifecycle.boot()


def build_stack(boundary: Any, *, config: ExplorerConfig | None = None, launcher: Any = None) -> Stack:
    config = config or ExplorerConfig()
    state = SessionState()
    sink = OutputSink()
    launcher = launcher or FakeLauncher()
    lifecycle = EngineLifecycle(state, sink, config, boundary=boundary, launcher=launcher)
    dispatcher = AnalysisDispatcher(state, sink, lifecycle)
    pipeline = IngestionPipeline(state, sink, lifecycle, dispatcher, config)
    return Stack(state, sink, lifecycle, dispatcher, pipeline, boundary, launcher)


PARSE_OK = {
    "message": "DataFrame created successfully. Shape: 3 rows, 2 columns.",
    "head_html": "<table><tr><td>1</td></tr></table>",
    "error": None,
    "success": True,
    "shape": [3, 2],
}
COLUMNS_OK = {"columns": ["a", "b"], "error": None}


@pytest.fixture
def fake_boundary():
    return FakeBoundary(responses={"parse_csv": PARSE_OK, "numeric_columns": COLUMNS_OK})


@pytest.fixture
def stack(fake_boundary):
    return build_stack(fake_boundary)
