"""JSON format of descriptor actions, as produced by diffing descriptor tables."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING

from typed_host.descdiff import DescAction
from typed_host.errors import FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.types import Array, Value

if TYPE_CHECKING:
    from typed_host.world import World


class DescPatchFormat(Format):
    """Encodes an Array of DescAction values as a JSON list of actions."""

    name = "desc-patch.json"

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        return type_name == "Array"

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        if not isinstance(value, Array):
            raise FormatUnsupportedError(f"cannot encode {value.type()} with format {self.name}")
        actions = []
        for i, action in enumerate(value, 1):
            if not isinstance(action, DescAction):
                raise FormatUnsupportedError(
                    f"cannot encode {action.type()} at index {i} with format {self.name}"
                )
            actions.append(action.to_json())
        return json.dumps(actions, indent="\t").encode("utf-8")

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        try:
            parsed = json.loads(data.decode("utf-8"))
            if not isinstance(parsed, list):
                raise TypeError(f"expected list at top level, got {type(parsed).__name__}")
            return Array(DescAction.from_json(item) for item in parsed)
        except (
            UnicodeDecodeError,
            json.JSONDecodeError,
            AttributeError,
            KeyError,
            TypeError,
            ValueError,
        ) as err:
            raise FormatUnsupportedError(f"decode {self.name}: {err}") from err
