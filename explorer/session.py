from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterator

from .errors import OperationInProgressError


@dataclass
class SessionState:
    """Single source of truth consulted by every handler before it touches the engine."""

    engine_ready: bool = False
    dataset_loaded: bool = False
    available_columns: list[str] = field(default_factory=list)
    busy: str | None = None

    def mark_dataset_loaded(self) -> None:
        self.dataset_loaded = True
        self.available_columns = []

    def reset_dataset(self) -> None:
        self.dataset_loaded = False
        self.available_columns = []

    @contextmanager
    def operation(self, name: str) -> Iterator[None]:
        if self.busy is not None:
            raise OperationInProgressError(self.busy)
        self.busy = name
        try:
            yield
        finally:
            self.busy = None

    def controls(self) -> dict[str, bool]:
        idle = self.busy is None
        has_dataset = self.engine_ready and self.dataset_loaded
        has_columns = has_dataset and bool(self.available_columns)
        return {
            "file_select": self.engine_ready,
            "process": self.engine_ready and idle,
            "info": has_dataset and idle,
            "describe": has_dataset and idle,
            "column_select": has_columns,
            "histogram": has_columns and idle,
        }

    def as_dict(self) -> dict:
        return {
            "engine_ready": self.engine_ready,
            "dataset_loaded": self.dataset_loaded,
            "available_columns": list(self.available_columns),
            "busy": self.busy,
            "controls": self.controls(),
        }
