"""Fixed catalog of engine requests; each template binds typed parameters under well-known names."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sandboxd.templates import CSV_DATA_VAR, SELECTED_COLUMN_VAR

from .decoder import StructuredResult, decode_result
from .schemas import ColumnsResponse, DescribeResponse, EngineResponse, HistogramResponse, InfoResponse, ParseResponse


@dataclass(frozen=True, slots=True)
class EngineRequest:
    name: str
    schema: type[EngineResponse]
    bindings: dict[str, Any] = field(default_factory=dict)


def parse_csv_request(text: str) -> EngineRequest:
    return EngineRequest("parse_csv", ParseResponse, {CSV_DATA_VAR: text})


def info_request() -> EngineRequest:
    return EngineRequest("dataset_info", InfoResponse)


def describe_request() -> EngineRequest:
    return EngineRequest("describe", DescribeResponse)


def columns_request() -> EngineRequest:
    return EngineRequest("numeric_columns", ColumnsResponse)


def histogram_request(column: str) -> EngineRequest:
    return EngineRequest("histogram", HistogramResponse, {SELECTED_COLUMN_VAR: column})


async def execute(boundary: Any, request: EngineRequest) -> StructuredResult:
    for name, value in request.bindings.items():
        await boundary.set_global(name, value)
    value = await boundary.evaluate(request.name)
    return await decode_result(value, request.schema)
