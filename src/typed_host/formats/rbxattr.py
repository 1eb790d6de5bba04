"""Binary format of serialized instance attributes.

Layout, little-endian: u32 entry count, then per entry a u32-length-prefixed
key, a u8 type tag, and the value.
"""

from __future__ import annotations

import struct
from typing import TYPE_CHECKING

from typed_host.errors import FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.types import (
    BinaryString,
    Bool,
    Color3,
    Dictionary,
    Double,
    Float,
    Int,
    String,
    Stringlike,
    Value,
    Vector3,
)

if TYPE_CHECKING:
    from typed_host.world import World

TAG_STRING = 0x02
TAG_BOOL = 0x03
TAG_FLOAT = 0x05
TAG_DOUBLE = 0x06
TAG_COLOR3 = 0x0F
TAG_VECTOR3 = 0x11


class _Reader:
    def __init__(self, data: bytes) -> None:
        self.data = data
        self.pos = 0

    def unpack(self, fmt: str) -> tuple:
        size = struct.calcsize(fmt)
        if self.pos + size > len(self.data):
            raise FormatUnsupportedError("decode attributes: unexpected end of data")
        values = struct.unpack_from(fmt, self.data, self.pos)
        self.pos += size
        return values

    def string(self) -> bytes:
        (length,) = self.unpack("<I")
        if self.pos + length > len(self.data):
            raise FormatUnsupportedError("decode attributes: unexpected end of data")
        raw = self.data[self.pos : self.pos + length]
        self.pos += length
        return raw


def _pack_string(raw: bytes) -> bytes:
    return struct.pack("<I", len(raw)) + raw


def encode_value(value: Value) -> bytes:
    """Encode a single attribute value with its type tag."""
    try:
        return _pack_value(value)
    except (OverflowError, struct.error) as err:
        raise FormatUnsupportedError(f"cannot encode {value.type()} as attribute: {err}") from err


def _pack_value(value: Value) -> bytes:
    if isinstance(value, Bool):
        return struct.pack("<BB", TAG_BOOL, 1 if value.value else 0)
    if isinstance(value, Float):
        return struct.pack("<Bf", TAG_FLOAT, value.value)
    if isinstance(value, (Double, Int)):
        return struct.pack("<Bd", TAG_DOUBLE, float(value.value))
    if isinstance(value, (String, BinaryString)):
        return bytes([TAG_STRING]) + _pack_string(value.byteslike())
    if isinstance(value, Color3):
        return struct.pack("<Bfff", TAG_COLOR3, value.r, value.g, value.b)
    if isinstance(value, Vector3):
        return struct.pack("<Bfff", TAG_VECTOR3, value.x, value.y, value.z)
    raise FormatUnsupportedError(f"cannot encode {value.type()} as attribute")


def decode_value(r: _Reader) -> Value:
    (tag,) = r.unpack("<B")
    if tag == TAG_STRING:
        return String(r.string().decode("utf-8", "surrogateescape"))
    if tag == TAG_BOOL:
        return Bool(r.unpack("<B")[0] != 0)
    if tag == TAG_FLOAT:
        return Float(r.unpack("<f")[0])
    if tag == TAG_DOUBLE:
        return Double(r.unpack("<d")[0])
    if tag == TAG_COLOR3:
        return Color3(*r.unpack("<fff"))
    if tag == TAG_VECTOR3:
        return Vector3(*r.unpack("<fff"))
    raise FormatUnsupportedError(f"decode attributes: unknown type tag 0x{tag:02X}")


class RBXAttrFormat(Format):
    """Dictionary of attributes. Empty data decodes to an empty dictionary."""

    name = "rbxattr"

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name == "Dictionary"

    def encode(self, world: World | None, options: FormatOptions | None, value: Value) -> bytes:
        if not isinstance(value, Dictionary):
            raise FormatUnsupportedError(f"cannot encode {value.type()} with format {self.name}")
        parts = [struct.pack("<I", len(value))]
        for key, item in value.items():
            parts.append(_pack_string(str(key).encode("utf-8")))
            parts.append(encode_value(item))
        return b"".join(parts)

    def decode(self, world: World | None, options: FormatOptions | None, data: bytes) -> Value:
        result = Dictionary()
        if not data:
            return result
        r = _Reader(bytes(data))
        (count,) = r.unpack("<I")
        for _ in range(count):
            key = r.string().decode("utf-8", "surrogateescape")
            result[key] = decode_value(r)
        if r.pos != len(r.data):
            raise FormatUnsupportedError("decode attributes: trailing data")
        return result


def decode_attributes(data: bytes | Stringlike) -> Dictionary:
    raw = data.byteslike() if isinstance(data, Stringlike) else data
    return RBXAttrFormat().decode(None, None, raw)  # type: ignore[return-value]


def encode_attributes(attrs: Dictionary) -> bytes:
    return RBXAttrFormat().encode(None, None, attrs)
