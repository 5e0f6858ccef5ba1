from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Literal

logger = logging.getLogger(__name__)

MessageKind = Literal["log", "success", "warning", "error", "html", "pre", "image"]

ENGINE_REGION = "engine"
DATASET_REGION = "dataset"
INFO_REGION = "info"
DESCRIBE_REGION = "describe"
HISTOGRAM_REGION = "histogram"
ANALYSIS_REGIONS = (INFO_REGION, DESCRIBE_REGION, HISTOGRAM_REGION)
ALL_REGIONS = (ENGINE_REGION, DATASET_REGION, *ANALYSIS_REGIONS)

_LOG_LEVELS = {
    "error": logging.ERROR,
    "warning": logging.WARNING,
    "html": logging.DEBUG,
    "image": logging.DEBUG,
}


@dataclass(slots=True)
class OutputEntry:
    kind: MessageKind
    content: str

    def render(self) -> str:
        if self.kind == "html":
            return f'<div class="msg-html">{self.content}</div>'
        if self.kind == "pre":
            return f'<pre class="msg-pre">{html.escape(self.content)}</pre>'
        if self.kind == "image":
            src = self.content if self.content.startswith("data:") else f"data:image/png;base64,{self.content}"
            return f'<img class="msg-img" src="{html.escape(src, quote=True)}" alt="plot">'
        return f'<p class="msg msg-{self.kind}">{html.escape(self.content)}</p>'


@dataclass
class DisplayRegion:
    name: str
    entries: list[OutputEntry] = field(default_factory=list)

    def append(self, entry: OutputEntry) -> None:
        self.entries.append(entry)

    def clear(self) -> None:
        self.entries = []

    def kinds(self) -> list[str]:
        return [e.kind for e in self.entries]

    def texts(self, kind: str | None = None) -> list[str]:
        return [e.content for e in self.entries if kind is None or e.kind == kind]

    def render_html(self) -> str:
        return "".join(e.render() for e in self.entries)


class OutputSink:
    """Named append-only display regions; every message is mirrored to the log."""

    def __init__(self, names: tuple[str, ...] = ALL_REGIONS) -> None:
        self._regions: dict[str, DisplayRegion] = {name: DisplayRegion(name) for name in names}

    def region(self, name: str) -> DisplayRegion:
        return self._regions.setdefault(name, DisplayRegion(name))

    def write(self, region: str, message: str, kind: MessageKind = "log") -> None:
        self.region(region).append(OutputEntry(kind=kind, content=message))
        level = _LOG_LEVELS.get(kind, logging.INFO)
        if kind in {"html", "image"}:
            logger.log(level, "[%s] <%s, %d chars>", region, kind, len(message))
        else:
            logger.log(level, "[%s] %s", region, message)

    def clear(self, *regions: str) -> None:
        for name in regions:
            self.region(name).clear()

    def render(self) -> dict[str, str]:
        return {name: region.render_html() for name, region in self._regions.items()}
