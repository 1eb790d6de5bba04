"""Runtime enum values generated from descriptor tables."""

from __future__ import annotations

from typing import Iterable

from typed_host.types import Value


class EnumItem(Value):
    """A single item of an Enum.

    Identity is the pair (enum name, value); two items compare equal when they
    belong to enums of the same name and carry the same value.
    """

    type_name = "EnumItem"

    def __init__(self, enum: Enum, name: str, value: int) -> None:
        self._enum = enum
        self._name = name
        self._value = value

    @property
    def enum(self) -> Enum:
        return self._enum

    @property
    def name(self) -> str:
        return self._name

    @property
    def value(self) -> int:
        return self._value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EnumItem):
            return NotImplemented
        return self._enum.name == other._enum.name and self._value == other._value

    def __hash__(self) -> int:
        return hash((self._enum.name, self._value))

    def __str__(self) -> str:
        return f"Enum.{self._enum.name}.{self._name}"

    def __repr__(self) -> str:
        return f"EnumItem({self._enum.name!r}, {self._name!r}, {self._value})"


class Enum(Value):
    """A fixed, named set of items indexed by name and by value."""

    type_name = "Enum"

    def __init__(self, name: str, items: Iterable[tuple[str, int]]) -> None:
        self._name = name
        self._items: list[EnumItem] = []
        self._by_name: dict[str, EnumItem] = {}
        self._by_value: dict[int, EnumItem] = {}
        for item_name, item_value in items:
            if item_name in self._by_name:
                raise ValueError(f"Enum '{name}' has duplicate item '{item_name}'")
            item = EnumItem(self, item_name, item_value)
            self._items.append(item)
            self._by_name[item_name] = item
            # The first item claiming a value is the one found by value.
            self._by_value.setdefault(item_value, item)

    @property
    def name(self) -> str:
        return self._name

    def items(self) -> list[EnumItem]:
        """Return the items in declaration order."""
        return list(self._items)

    def item(self, name: str) -> EnumItem | None:
        """Look up an item by name."""
        return self._by_name.get(name)

    def value(self, value: int) -> EnumItem | None:
        """Look up an item by its integer value."""
        return self._by_value.get(value)

    def __len__(self) -> int:
        return len(self._items)

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"Enum({self._name!r})"


class Enums(Value):
    """Collection of enums keyed by name."""

    type_name = "Enums"

    def __init__(self, enums: Iterable[Enum] = ()) -> None:
        self._enums: dict[str, Enum] = {}
        for enum in enums:
            if enum.name in self._enums:
                raise ValueError(f"Enum '{enum.name}' is already defined")
            self._enums[enum.name] = enum

    def enum(self, name: str) -> Enum | None:
        return self._enums.get(name)

    def enums(self) -> list[Enum]:
        return list(self._enums.values())

    def __contains__(self, name: str) -> bool:
        return name in self._enums

    def __len__(self) -> int:
        return len(self._enums)
