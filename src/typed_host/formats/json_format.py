"""JSON format. Objects decode to Dictionary and arrays to Array."""

from __future__ import annotations

import json
import math
from typing import TYPE_CHECKING, Any

from typed_host.errors import CyclicValueError, FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.types import (
    NIL,
    Array,
    Bool,
    Dictionary,
    Double,
    Intlike,
    NilType,
    Numberlike,
    String,
    Stringlike,
    Tuple,
    Value,
)

if TYPE_CHECKING:
    from typed_host.world import World

DEFAULT_INDENT = "\t"


def to_json(value: Value, _active: set[int] | None = None) -> Any:
    """Convert a domain value to plain JSON data."""
    if _active is None:
        _active = set()
    if isinstance(value, NilType):
        return None
    if isinstance(value, Bool):
        return value.value
    if isinstance(value, Intlike):
        return value.intlike()
    if isinstance(value, Numberlike):
        n = value.numberlike()
        if math.isnan(n) or math.isinf(n):
            raise FormatUnsupportedError(f"cannot encode {n} as JSON")
        return n
    if isinstance(value, Stringlike):
        return value.stringlike()
    if isinstance(value, (Dictionary, Array, Tuple)):
        if id(value) in _active:
            raise CyclicValueError(f"{value.type()} cannot be cyclic")
        _active.add(id(value))
        try:
            if isinstance(value, Dictionary):
                return {str(k): to_json(v, _active) for k, v in value.items()}
            return [to_json(v, _active) for v in value]
        finally:
            _active.discard(id(value))
    raise FormatUnsupportedError(f"cannot encode {value.type()} as JSON")


def from_json(data: Any) -> Value:
    """Convert plain JSON data to a domain value."""
    if data is None:
        return NIL
    if isinstance(data, bool):
        return Bool(data)
    if isinstance(data, (int, float)):
        try:
            return Double(float(data))
        except OverflowError as err:
            raise FormatUnsupportedError(f"decode json: number out of range: {err}") from err
    if isinstance(data, str):
        return String(data)
    if isinstance(data, list):
        return Array(from_json(v) for v in data)
    if isinstance(data, dict):
        return Dictionary((k, from_json(v)) for k, v in data.items())
    raise FormatUnsupportedError(f"unexpected JSON value {type(data).__name__}")


class JSONFormat(Format):
    name = "json"
    media_types = ("application/json", "text/plain")
    options = {"Indent": ["string"]}

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name in ("nil", "bool", "double", "string", "Array", "Dictionary")

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        indent = options.value_of("Indent")
        indent_str = indent.stringlike() if isinstance(indent, Stringlike) else DEFAULT_INDENT
        data = to_json(value)
        if indent_str:
            text = json.dumps(data, indent=indent_str, ensure_ascii=False)
        else:
            text = json.dumps(data, separators=(",", ":"), ensure_ascii=False)
        return text.encode("utf-8")

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        try:
            parsed = json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as err:
            raise FormatUnsupportedError(f"decode json: {err}") from err
        return from_json(parsed)
