"""JSON format of descriptor tables.

The layout follows the common API dump shape: top-level "Classes" and
"Enums" lists, with members tagged by "MemberType".
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from typed_host.descriptors import (
    RootDesc,
    class_from_json,
    class_to_json,
    enum_from_json,
    enum_to_json,
)
from typed_host.errors import FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.types import Value

if TYPE_CHECKING:
    from typed_host.world import World

VERSION = 1


def desc_to_json(root: RootDesc) -> dict[str, Any]:
    """Convert a descriptor table to plain JSON data."""
    return {
        "Version": VERSION,
        "Classes": [class_to_json(c) for c in root.classes.values()],
        "Enums": [enum_to_json(e) for e in root.enums.values()],
    }


def desc_from_json(data: dict[str, Any]) -> RootDesc:
    """Build a descriptor table from plain JSON data."""
    if not isinstance(data, dict):
        raise TypeError(f"expected object at top level, got {type(data).__name__}")
    root = RootDesc()
    for class_data in data.get("Classes", []):
        root.add_class(class_from_json(class_data))
    for enum_data in data.get("Enums", []):
        root.add_enum(enum_from_json(enum_data))
    return root


class DescJSONFormat(Format):
    name = "desc.json"

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name == "RootDesc"

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        if not isinstance(value, RootDesc):
            raise FormatUnsupportedError(f"cannot encode {value.type()} with format {self.name}")
        return json.dumps(desc_to_json(value), indent="\t").encode("utf-8")

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        try:
            parsed = json.loads(data.decode("utf-8"))
            return desc_from_json(parsed)
        except (
            UnicodeDecodeError,
            json.JSONDecodeError,
            AttributeError,
            KeyError,
            TypeError,
            ValueError,
        ) as err:
            raise FormatUnsupportedError(f"decode {self.name}: {err}") from err
