"""Built-in formats."""

from typed_host.format import Format
from typed_host.formats.desc_json import DescJSONFormat
from typed_host.formats.desc_patch import DescPatchFormat
from typed_host.formats.json_format import JSONFormat
from typed_host.formats.rbxattr import RBXAttrFormat
from typed_host.formats.text import BinaryFormat, TextFormat


def all_formats() -> list[Format]:
    """Return a new instance of every built-in format."""
    return [
        TextFormat(),
        BinaryFormat(),
        JSONFormat(),
        RBXAttrFormat(),
        DescJSONFormat(),
        DescPatchFormat(),
    ]


__all__ = [
    "BinaryFormat",
    "DescJSONFormat",
    "DescPatchFormat",
    "JSONFormat",
    "RBXAttrFormat",
    "TextFormat",
    "all_formats",
]
