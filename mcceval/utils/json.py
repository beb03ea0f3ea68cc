from __future__ import annotations

from typing import Any

import orjson

__all__ = ["dumps", "dumps_bytes", "loads"]

_OPTIONS = orjson.OPT_SERIALIZE_NUMPY


def dumps(obj: Any) -> str:
    """Serialize *obj* to a ``str`` using orjson (bytes → str)."""
    return orjson.dumps(obj, option=_OPTIONS).decode()


def dumps_bytes(obj: Any) -> bytes:
    return orjson.dumps(obj, option=_OPTIONS)


loads = orjson.loads
