"""Descriptor tables: class, property, and enum definitions for instances.

A RootDesc is supplied from outside (parsed from the descriptor DSL or decoded
from the desc.json format) and is treated as immutable while scripts run. It
validates instance property access and generates the runtime enums.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from typed_host.enums import Enum, Enums
from typed_host.types import Value


class TypeCategory:
    """Value categories a property type may belong to."""

    CLASS = "Class"
    ENUM = "Enum"
    PRIMITIVE = "Primitive"
    DATA_TYPE = "DataType"
    GROUP = "Group"
    FUNCTION = "Function"


SERVICE_TAG = "Service"


@dataclass(frozen=True)
class TypeDesc(Value):
    """Reference to a type by category and name."""

    type_name = "TypeDesc"

    category: str
    name: str

    def __str__(self) -> str:
        if self.category in (TypeCategory.CLASS, TypeCategory.ENUM):
            return f"{self.category}.{self.name}"
        return self.name


@dataclass
class ParameterDesc(Value):
    """A function parameter. A parameter with a default is optional."""

    type_name = "ParameterDesc"

    param_type: TypeDesc
    name: str
    default: str | None = None

    @property
    def optional(self) -> bool:
        return self.default is not None


@dataclass
class PropertyDesc(Value):
    type_name = "PropertyDesc"

    name: str
    value_type: TypeDesc
    tags: set[str] = field(default_factory=set)


@dataclass
class FunctionDesc(Value):
    type_name = "FunctionDesc"

    name: str
    parameters: list[ParameterDesc] = field(default_factory=list)
    return_type: TypeDesc | None = None
    tags: set[str] = field(default_factory=set)

    def signature(self) -> TypeDesc:
        """Derive the structural type of the function from its parameters."""
        params = ", ".join(
            f"{p.param_type}?" if p.optional else str(p.param_type) for p in self.parameters
        )
        returns = str(self.return_type) if self.return_type is not None else "()"
        return TypeDesc(category=TypeCategory.FUNCTION, name=f"({params}) -> {returns}")


MemberDesc = PropertyDesc | FunctionDesc


@dataclass
class ClassDesc(Value):
    type_name = "ClassDesc"

    name: str
    superclass: str = ""
    members: dict[str, MemberDesc] = field(default_factory=dict)
    tags: set[str] = field(default_factory=set)

    def add_member(self, member: MemberDesc) -> None:
        if member.name in self.members:
            raise ValueError(f"Member '{member.name}' is already defined on class '{self.name}'")
        self.members[member.name] = member

    def get_member(self, name: str) -> MemberDesc | None:
        return self.members.get(name)

    def has_tag(self, tag: str) -> bool:
        return tag in self.tags


@dataclass
class EnumItemDesc(Value):
    type_name = "EnumItemDesc"

    name: str
    value: int
    index: int = 0
    tags: set[str] = field(default_factory=set)


@dataclass
class EnumDesc(Value):
    type_name = "EnumDesc"

    name: str
    items: dict[str, EnumItemDesc] = field(default_factory=dict)
    tags: set[str] = field(default_factory=set)

    def add_item(self, item: EnumItemDesc) -> None:
        if item.name in self.items:
            raise ValueError(f"Item '{item.name}' is already defined on enum '{self.name}'")
        self.items[item.name] = item


@dataclass
class RootDesc(Value):
    """The full descriptor table: all classes and enums."""

    type_name = "RootDesc"

    classes: dict[str, ClassDesc] = field(default_factory=dict)
    enums: dict[str, EnumDesc] = field(default_factory=dict)
    _enum_types: Enums | None = field(default=None, init=False, repr=False, compare=False)

    def add_class(self, class_desc: ClassDesc) -> None:
        """Add a class descriptor."""
        if class_desc.name in self.classes:
            raise ValueError(f"Class '{class_desc.name}' is already defined")
        self.classes[class_desc.name] = class_desc

    def add_enum(self, enum_desc: EnumDesc) -> None:
        """Add an enum descriptor.

        Enum values are not regenerated; call ``generate_enum_types`` after
        adding enums to an already-used table.
        """
        if enum_desc.name in self.enums:
            raise ValueError(f"Enum '{enum_desc.name}' is already defined")
        self.enums[enum_desc.name] = enum_desc

    def get_class(self, name: str) -> ClassDesc | None:
        return self.classes.get(name)

    def get_enum(self, name: str) -> EnumDesc | None:
        return self.enums.get(name)

    def superclasses(self, class_name: str) -> list[ClassDesc]:
        """Return the class and its ancestors, nearest first.

        Stops at an unknown superclass or at the first repeated class.
        """
        chain: list[ClassDesc] = []
        seen: set[str] = set()
        class_desc = self.classes.get(class_name)
        while class_desc is not None and class_desc.name not in seen:
            seen.add(class_desc.name)
            chain.append(class_desc)
            class_desc = self.classes.get(class_desc.superclass)
        return chain

    def member(self, class_name: str, name: str) -> MemberDesc | None:
        """Get a member from a class, or any class it inherits from."""
        for class_desc in self.superclasses(class_name):
            member = class_desc.members.get(name)
            if member is not None:
                return member
        return None

    def get_property(self, class_name: str, name: str) -> PropertyDesc | None:
        """Get a property from a class, or any class it inherits from."""
        member = self.member(class_name, name)
        if isinstance(member, PropertyDesc):
            return member
        return None

    def is_a(self, class_name: str, target: str) -> bool:
        """Check whether class_name is target or inherits from it."""
        return any(c.name == target for c in self.superclasses(class_name))

    @property
    def enum_types(self) -> Enums:
        """Runtime enums generated from the enum descriptors."""
        if self._enum_types is None:
            self.generate_enum_types()
        return self._enum_types  # type: ignore[return-value]

    def generate_enum_types(self) -> Enums:
        """(Re)build the runtime enums from the enum descriptors."""
        enums = []
        for enum_desc in self.enums.values():
            items = sorted(enum_desc.items.values(), key=lambda i: (i.index, i.value))
            enums.append(Enum(enum_desc.name, [(i.name, i.value) for i in items]))
        self._enum_types = Enums(enums)
        return self._enum_types


# ---- Plain data ----
# The JSON shape of descriptors, shared by the desc.json format and descriptor diffs.

ROOT_SUPERCLASS = "<<<ROOT>>>"


def type_to_json(t: TypeDesc) -> dict[str, str]:
    return {"Category": t.category, "Name": t.name}


def type_from_json(data: dict[str, Any]) -> TypeDesc:
    return TypeDesc(category=data["Category"], name=data["Name"])


def _tags(data: dict[str, Any]) -> set[str]:
    return set(data.get("Tags") or [])


# ---- Members ----


def member_to_json(member: MemberDesc) -> dict[str, Any]:
    if isinstance(member, PropertyDesc):
        return {
            "MemberType": "Property",
            "Name": member.name,
            "ValueType": type_to_json(member.value_type),
            "Tags": sorted(member.tags),
        }
    entry: dict[str, Any] = {
        "MemberType": "Function",
        "Name": member.name,
        "Parameters": [
            {
                "Name": p.name,
                "Type": type_to_json(p.param_type),
                **({"Default": p.default} if p.default is not None else {}),
            }
            for p in member.parameters
        ],
        "Tags": sorted(member.tags),
    }
    if member.return_type is not None:
        entry["ReturnType"] = type_to_json(member.return_type)
    return entry


def member_from_json(data: dict[str, Any]) -> MemberDesc | None:
    """Build a member, or return None for member kinds that are not described."""
    member_type = data.get("MemberType")
    if member_type == "Property":
        return PropertyDesc(
            name=data["Name"],
            value_type=type_from_json(data["ValueType"]),
            tags=_tags(data),
        )
    if member_type == "Function":
        return_type = data.get("ReturnType")
        return FunctionDesc(
            name=data["Name"],
            parameters=[
                ParameterDesc(
                    param_type=type_from_json(p["Type"]),
                    name=p["Name"],
                    default=p.get("Default"),
                )
                for p in data.get("Parameters", [])
            ],
            return_type=type_from_json(return_type) if return_type else None,
            tags=_tags(data),
        )
    # Other member kinds (events, callbacks) are not described.
    return None


# ---- Classes and enums ----


def class_to_json(class_desc: ClassDesc, members: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {
        "Name": class_desc.name,
        "Superclass": class_desc.superclass or ROOT_SUPERCLASS,
    }
    if members:
        data["Members"] = [member_to_json(m) for m in class_desc.members.values()]
    data["Tags"] = sorted(class_desc.tags)
    return data


def class_from_json(data: dict[str, Any]) -> ClassDesc:
    superclass = data.get("Superclass", "")
    class_desc = ClassDesc(
        name=data["Name"],
        superclass="" if superclass == ROOT_SUPERCLASS else superclass,
        tags=_tags(data),
    )
    for member_data in data.get("Members", []):
        member = member_from_json(member_data)
        if member is not None:
            class_desc.add_member(member)
    return class_desc


def enum_item_to_json(item: EnumItemDesc) -> dict[str, Any]:
    return {"Name": item.name, "Value": item.value, "Index": item.index, "Tags": sorted(item.tags)}


def enum_item_from_json(data: dict[str, Any], index: int = 0) -> EnumItemDesc:
    return EnumItemDesc(
        name=data["Name"],
        value=data["Value"],
        index=data.get("Index", index),
        tags=_tags(data),
    )


def enum_to_json(enum_desc: EnumDesc, items: bool = True) -> dict[str, Any]:
    data: dict[str, Any] = {"Name": enum_desc.name}
    if items:
        data["Items"] = [enum_item_to_json(item) for item in enum_desc.items.values()]
    data["Tags"] = sorted(enum_desc.tags)
    return data


def enum_from_json(data: dict[str, Any]) -> EnumDesc:
    enum_desc = EnumDesc(name=data["Name"], tags=_tags(data))
    for i, item_data in enumerate(data.get("Items", [])):
        enum_desc.add_item(enum_item_from_json(item_data, i))
    return enum_desc
