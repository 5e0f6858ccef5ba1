"""Response shapes for each catalog request, validated right after the boundary decode."""
from __future__ import annotations

from typing import ClassVar

from pydantic import BaseModel, ConfigDict


class EngineResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # name of the field that must be present on a non-error response
    payload_field: ClassVar[str] = ""

    error: str | None

    @property
    def is_error(self) -> bool:
        return self.error is not None

    @property
    def payload(self) -> object:
        return getattr(self, self.payload_field)


class ParseResponse(EngineResponse):
    payload_field: ClassVar[str] = "head_html"

    message: str
    head_html: str | None
    success: bool | None = None
    shape: list[int] | None = None

    @property
    def is_error(self) -> bool:
        return self.error is not None or self.success is False


class InfoResponse(EngineResponse):
    payload_field: ClassVar[str] = "info_text"

    info_text: str | None


class DescribeResponse(EngineResponse):
    payload_field: ClassVar[str] = "describe_html"

    describe_html: str | None


class ColumnsResponse(EngineResponse):
    payload_field: ClassVar[str] = "columns"

    columns: list[str] | None


class HistogramResponse(EngineResponse):
    payload_field: ClassVar[str] = "image_base64"

    message: str | None
    image_base64: str | None
