import pytest
import requests

from explorer.boundary import BoundaryValue, EngineBoundary
from explorer.decoder import Success, decode_result
from explorer.errors import BoundaryError, DecodeError
from explorer.schemas import ColumnsResponse


class _Response:
    def __init__(self, status_code, payload=None, *, text_only=False):
        self.status_code = status_code
        self._payload = payload
        self._text_only = text_only

    def json(self):
        if self._text_only:
            raise ValueError("not json")
        return self._payload


class _Http:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests = []

    def request(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        outcome = self.responses.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def boundary_with(token):
    def _make(*responses):
        http = _Http(*responses)
        return EngineBoundary("http://engine.local", http=http), http

    return _make


@pytest.mark.asyncio
async def test_token_header_and_url(boundary_with, token):
    boundary, http = boundary_with(_Response(200, {"ok": True}))

    await boundary.set_global("csv_data_js", "a\n1\n")

    method, url, kwargs = http.requests[0]
    assert (method, url) == ("POST", "http://engine.local/globals")
    assert kwargs["headers"]["X-Local-Token"] == token
    assert kwargs["json"] == {"name": "csv_data_js", "value": "a\n1\n"}


@pytest.mark.asyncio
async def test_engine_error_body_is_surfaced(boundary_with):
    boundary, _ = boundary_with(_Response(409, {"error": "extension_not_loaded", "detail": "pandas"}))

    with pytest.raises(BoundaryError) as exc_info:
        await boundary.evaluate("parse_csv")
    assert exc_info.value.status_code == 409
    assert str(exc_info.value) == "extension_not_loaded (pandas)"


@pytest.mark.asyncio
async def test_unreachable_and_timeout(boundary_with):
    boundary, _ = boundary_with(requests.ConnectionError("refused"), requests.Timeout("slow"))

    with pytest.raises(BoundaryError, match="unreachable"):
        await boundary.evaluate("describe")
    with pytest.raises(BoundaryError) as exc_info:
        await boundary.evaluate("describe")
    assert exc_info.value.status_code == 504


@pytest.mark.asyncio
async def test_non_json_body_is_decode_error(boundary_with):
    boundary, _ = boundary_with(_Response(200, text_only=True))

    with pytest.raises(DecodeError):
        await boundary.evaluate("describe")


@pytest.mark.asyncio
async def test_missing_handle_is_decode_error(boundary_with):
    boundary, _ = boundary_with(_Response(200, {"ok": True}))

    with pytest.raises(DecodeError, match="handle"):
        await boundary.evaluate("describe")


@pytest.mark.asyncio
async def test_value_destroy_sends_one_release(boundary_with):
    boundary, http = boundary_with(
        _Response(200, {"handle": "abc"}),
        _Response(200, {"value": {"columns": [], "error": None}}),
        _Response(200, {"ok": True, "live_proxies": 0}),
    )

    value = await boundary.evaluate("numeric_columns")
    assert isinstance(value, BoundaryValue)
    assert await value.to_py() == {"columns": [], "error": None}

    await value.destroy()
    await value.destroy()

    releases = [r for r in http.requests if r[0] == "DELETE"]
    assert [r[1] for r in releases] == ["http://engine.local/proxies/abc"]
    with pytest.raises(BoundaryError, match="already released"):
        await value.to_py()


@pytest.mark.asyncio
async def test_missing_token_file(app_home):
    boundary = EngineBoundary("http://engine.local", http=_Http())

    with pytest.raises(BoundaryError) as exc_info:
        await boundary.evaluate("describe")
    assert exc_info.value.status_code == 401


@pytest.mark.asyncio
async def test_non_json_release_reply_keeps_decoded_result(boundary_with):
    boundary, http = boundary_with(
        _Response(200, {"handle": "abc"}),
        _Response(200, {"value": {"columns": ["a"], "error": None}}),
        _Response(200, text_only=True),
    )

    value = await boundary.evaluate("numeric_columns")
    result = await decode_result(value, ColumnsResponse)

    assert isinstance(result, Success)
    assert result.payload.columns == ["a"]
    assert value.destroyed is True
    assert [r[0] for r in http.requests] == ["POST", "GET", "DELETE"]
