"""End-to-end: the real boundary client talking to an in-process sandboxd through TestClient."""
import pytest

from explorer.analysis import AnalysisDispatcher
from explorer.boundary import EngineBoundary
from explorer.config import ExplorerConfig
from explorer.ingest import IngestionPipeline
from explorer.lifecycle import EngineLifecycle, SubprocessLauncher
from explorer.output import DATASET_REGION, DESCRIBE_REGION, HISTOGRAM_REGION, INFO_REGION, OutputSink
from explorer.session import SessionState


@pytest.fixture
def live(client, token):
    config = ExplorerConfig(engine_base_url="http://testserver", launch_engine=False)
    state = SessionState()
    sink = OutputSink()
    boundary = EngineBoundary(config.engine_base_url, http=client)
    lifecycle = EngineLifecycle(state, sink, config, boundary=boundary, launcher=SubprocessLauncher(spawn=False))
    dispatcher = AnalysisDispatcher(state, sink, lifecycle)
    pipeline = IngestionPipeline(state, sink, lifecycle, dispatcher, config)
    return state, sink, lifecycle, dispatcher, pipeline


def _live_proxies(client):
    return client.get("/health").json()["live_proxies"]


@pytest.mark.asyncio
async def test_full_session(live, client, write_csv):
    state, sink, lifecycle, dispatcher, pipeline = live

    await lifecycle.boot()
    assert state.engine_ready is True
    assert client.get("/health").json()["status"] == "ready"

    assert await pipeline.ingest(write_csv("a,b\n1,2\n3,4\n5,6\n")) is True
    assert "3 rows, 2 columns" in sink.region(DATASET_REGION).texts("success")[0]
    assert state.dataset_loaded is True
    assert state.available_columns == ["a", "b"]

    assert await dispatcher.show_info() is True
    assert "RangeIndex: 3 entries" in sink.region(INFO_REGION).texts("pre")[0]

    assert await dispatcher.show_describe() is True
    assert "<table" in sink.region(DESCRIBE_REGION).texts("html")[0]

    assert await dispatcher.show_histogram("b") is True
    assert sink.region(HISTOGRAM_REGION).texts("image")[0].startswith("iVBORw0KGgo")

    assert _live_proxies(client) == 0


@pytest.mark.asyncio
async def test_malformed_csv_clears_dataset(live, client, write_csv):
    state, sink, lifecycle, dispatcher, pipeline = live
    await lifecycle.boot()
    await pipeline.ingest(write_csv("a,b\n1,2\n"))

    ok = await pipeline.ingest(write_csv("a,b\n1,2\n3,4,5,6\n"))

    assert ok is False
    assert state.dataset_loaded is False
    assert any("Expected 2 fields" in text for text in sink.region(DATASET_REGION).texts("error"))
    assert client.get("/health").json()["dataset_loaded"] is False
    assert await dispatcher.show_info() is False
    assert _live_proxies(client) == 0


@pytest.mark.asyncio
async def test_histogram_on_text_column(live, client, write_csv):
    state, sink, lifecycle, dispatcher, pipeline = live
    await lifecycle.boot()
    await pipeline.ingest(write_csv("id,name\n1,x\n2,y\n"))

    assert state.available_columns == ["id"]
    assert await dispatcher.show_histogram("name") is False

    region = sink.region(HISTOGRAM_REGION)
    assert region.texts("error") == ["Column 'name' is not numeric."]
    assert region.texts("image") == []
    assert _live_proxies(client) == 0


@pytest.mark.asyncio
async def test_histogram_with_infinite_values(live, client, write_csv):
    state, sink, lifecycle, dispatcher, pipeline = live
    await lifecycle.boot()
    await pipeline.ingest(write_csv("x,name\n1,a\ninf,b\n3,c\n"))

    assert state.available_columns == ["x"]
    assert await dispatcher.show_histogram("x") is True

    region = sink.region(HISTOGRAM_REGION)
    assert region.texts("error") == []
    assert region.texts("image")[0].startswith("iVBORw0KGgo")
    assert _live_proxies(client) == 0


@pytest.mark.asyncio
async def test_histogram_with_no_finite_values_is_reported_as_data_error(live, client, write_csv):
    state, sink, lifecycle, dispatcher, pipeline = live
    await lifecycle.boot()
    await pipeline.ingest(write_csv("x,name\ninf,a\n-inf,b\n"))

    assert await dispatcher.show_histogram("x") is False

    assert sink.region(HISTOGRAM_REGION).texts("error") == ["Column 'x' has no values to plot."]
    assert state.dataset_loaded is True


@pytest.mark.asyncio
async def test_header_only_csv_is_rejected(live, client, write_csv):
    state, sink, lifecycle, _, pipeline = live
    await lifecycle.boot()

    assert await pipeline.ingest(write_csv("a,b\n")) is False

    assert state.dataset_loaded is False
    assert "no data rows" in " ".join(sink.region(DATASET_REGION).texts("error"))
