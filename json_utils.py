"""
JSON utilities backed by orjson
================================

Thin json-module-style interface used by the CLI and HTTP adapter to emit
reconciliation results. Pydantic models, paths and enums serialize directly.
"""

from enum import Enum
from pathlib import PurePath
from typing import Any, Callable, Optional

import orjson
from pydantic import BaseModel


def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    if isinstance(obj, PurePath):
        return obj.as_posix()
    if isinstance(obj, Enum):
        return obj.value
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def dumps(obj: Any, indent: Optional[int] = None, default: Optional[Callable[[Any], Any]] = None) -> str:
    """
    Serialize obj to a JSON string.

    Args:
        obj: Object to serialize
        indent: Any non-None value pretty-prints with two-space indentation
        default: Fallback for objects orjson and this module cannot serialize

    Returns:
        JSON string (orjson itself returns bytes)
    """
    option = orjson.OPT_SERIALIZE_UUID
    if indent is not None:
        option |= orjson.OPT_INDENT_2

    def _chained(value: Any) -> Any:
        try:
            return _default(value)
        except TypeError:
            if default is None:
                raise
            return default(value)

    return orjson.dumps(obj, default=_chained, option=option).decode("utf-8")


def loads(s: str) -> Any:
    return orjson.loads(s)


def dump(obj: Any, fp, indent: Optional[int] = None) -> None:
    fp.write(dumps(obj, indent=indent))


def load(fp) -> Any:
    return loads(fp.read())


JSONDecodeError = orjson.JSONDecodeError
