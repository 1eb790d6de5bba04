"""Plain text and raw binary formats."""

from __future__ import annotations

from typing import TYPE_CHECKING

from typed_host.errors import FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.types import BinaryString, String, Stringlike, Value

if TYPE_CHECKING:
    from typed_host.world import World


def _stringlike_bytes(format: Format, value: Value) -> bytes:
    if not isinstance(value, Stringlike):
        raise FormatUnsupportedError(f"cannot encode {value.type()} with format {format.name}")
    return value.byteslike()


class TextFormat(Format):
    """UTF-8 text, decoded as a string."""

    name = "txt"
    media_types = ("text/plain",)

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name == "string"

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        return _stringlike_bytes(self, value)

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        return String(data.decode("utf-8", "surrogateescape"))


class BinaryFormat(Format):
    """Raw bytes, decoded as a binary string."""

    name = "bin"
    media_types = ("application/octet-stream",)

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name == "BinaryString"

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        return _stringlike_bytes(self, value)

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        return BinaryString(bytes(data))
