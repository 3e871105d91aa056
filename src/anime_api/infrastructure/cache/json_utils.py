"""Lightweight JSON helpers built on orjson, with pydantic-aware encoding and validation."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, TypeVar, cast

import orjson
from pydantic import BaseModel, TypeAdapter


def _encode_default(value: Any) -> Any:
    """Serialize values orjson does not handle natively."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="python")
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    msg = f"Type is not JSON serializable: {type(value).__name__}"
    raise TypeError(msg)


def dumps_json(data: Any, *, indent: bool = False) -> bytes:
    """Serialize Python data (including pydantic models) to JSON bytes."""
    option = orjson.OPT_INDENT_2 if indent else 0
    return orjson.dumps(data, default=_encode_default, option=option)


def loads_json(data: bytes | str) -> Any:
    """Deserialize JSON bytes into Python data."""
    return orjson.loads(data)

T = TypeVar("T")


@lru_cache(maxsize=128)
def _adapter_for(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def validate_as(payload: Any, target: type[T] | TypeAdapter[T]) -> T:
    """Validate decoded JSON into ``target`` (a type, generic alias or TypeAdapter).

    Raises:
        pydantic.ValidationError: If the payload does not match the target shape.

    """
    adapter = target if isinstance(target, TypeAdapter) else _adapter_for(target)
    return cast(T, adapter.validate_python(payload))


def is_json_error(error: BaseException) -> bool:
    """Return True if ``error`` is an orjson decode/encode error."""
    return isinstance(error, (orjson.JSONDecodeError, orjson.JSONEncodeError))
