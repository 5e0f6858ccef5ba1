from __future__ import annotations


class ExplorerError(RuntimeError):
    """Base for every failure the client reports to an output region."""


class BootError(ExplorerError):
    pass


class ValidationError(ExplorerError):
    pass


class ReadError(ExplorerError):
    pass


class DecodeError(ExplorerError):
    """The engine answered, but not in the shape the client expects."""


class OperationInProgressError(ExplorerError):
    def __init__(self, operation: str) -> None:
        super().__init__(f"Another operation is in progress ({operation}). Please wait for it to finish.")
        self.operation = operation


class BoundaryError(ExplorerError):
    def __init__(self, summary: str, *, detail: str = "", status_code: int = 0) -> None:
        super().__init__(f"{summary} ({detail})" if detail and detail not in summary else summary)
        self.summary = summary
        self.detail = detail
        self.status_code = status_code
