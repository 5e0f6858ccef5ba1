from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, Union

from pydantic import ValidationError as SchemaValidationError

from .errors import DecodeError, ExplorerError
from .schemas import EngineResponse

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=EngineResponse)


@dataclass(frozen=True, slots=True)
class Success(Generic[R]):
    payload: R


@dataclass(frozen=True, slots=True)
class Failure:
    reason: str
    message: str | None = None


StructuredResult = Union[Success[R], Failure]


def interpret(raw: Any, schema: type[R]) -> StructuredResult[R]:
    """Validate an already-decoded engine structure against its response schema."""
    if not isinstance(raw, dict):
        raise DecodeError(f"{schema.__name__}: expected an object, got {type(raw).__name__}")

    try:
        parsed = schema.model_validate(raw)
    except SchemaValidationError as exc:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) or "<root>" for err in exc.errors())
        raise DecodeError(f"{schema.__name__}: unexpected response shape ({fields})") from exc

    if parsed.is_error:
        return Failure(
            reason=parsed.error or "engine reported failure without a reason",
            message=getattr(parsed, "message", None),
        )
    if parsed.payload is None:
        raise DecodeError(f"{schema.__name__}: '{schema.payload_field}' missing from a successful response")
    return Success(parsed)


async def decode_result(value: Any, schema: type[R]) -> StructuredResult[R]:
    """Convert a boundary value to a structured result, releasing the handle on every path."""
    try:
        raw = await value.to_py()
        return interpret(raw, schema)
    finally:
        try:
            await value.destroy()
        except ExplorerError as exc:
            logger.warning("Could not release engine handle %s: %s", getattr(value, "handle", "?"), exc)
