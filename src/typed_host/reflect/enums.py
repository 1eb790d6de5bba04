"""Reflectors of Enums, Enum and EnumItem."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host.dump import Function, Parameter, Property as PropertyDump, TypeDef
from typed_host.enums import Enum, EnumItem, Enums
from typed_host.errors import ValidationError
from typed_host.reflect.base import pull_userdata, push_userdata, value_metatable
from typed_host.reflector import Method, Property, Reflector
from typed_host.types import Int, String

if TYPE_CHECKING:
    from typed_host.state import State


def enum_item() -> Reflector:
    return Reflector(
        name="EnumItem",
        push=push_userdata("EnumItem"),
        pull=pull_userdata("EnumItem", EnumItem),
        properties={
            "Name": Property(
                get=lambda s, v: s.push(String(v.name)),
                dump=lambda: PropertyDump(value_type="string", read_only=True),
            ),
            "Value": Property(
                get=lambda s, v: s.push(Int(v.value)),
                dump=lambda: PropertyDump(value_type="int", read_only=True),
            ),
            "EnumType": Property(
                get=lambda s, v: s.push(v.enum),
                dump=lambda: PropertyDump(value_type="Enum", read_only=True),
            ),
        },
        metatable=value_metatable(),
        dump=lambda: TypeDef(summary="One item of an enum."),
    )


def _enum_index(s: State, v: Enum, key: Any) -> Any:
    item = v.item(key) if isinstance(key, str) else None
    if item is None:
        raise ValidationError(f"{key} is not a valid EnumItem of {v.name}")
    return s.push(item)


def enum() -> Reflector:
    return Reflector(
        name="Enum",
        push=push_userdata("Enum"),
        pull=pull_userdata("Enum", Enum),
        methods={
            "GetEnumItems": Method(
                lambda s, v, *args: [s.push(item) for item in v.items()],
                dump=lambda: Function(returns=[Parameter("", "{EnumItem}")]),
            ),
        },
        metatable={
            "__tostring": lambda s, v: v.name,
            "__index": _enum_index,
        },
        types=[enum_item],
        dump=lambda: TypeDef(summary="A named set of items. Items are indexed by name."),
    )


def _enums_index(s: State, v: Enums, key: Any) -> Any:
    found = v.enum(key) if isinstance(key, str) else None
    if found is None:
        raise ValidationError(f"{key} is not a valid Enum")
    return s.push(found)


def _install_enums(s: State, env: dict[str, Any]) -> None:
    desc = s.world.global_desc
    env["Enum"] = s.push(desc.enum_types) if desc is not None else None


def enums() -> Reflector:
    return Reflector(
        name="Enums",
        push=push_userdata("Enums"),
        pull=pull_userdata("Enums", Enums),
        methods={
            "GetEnums": Method(
                lambda s, v, *args: [s.push(e) for e in v.enums()],
                dump=lambda: Function(returns=[Parameter("", "{Enum}")]),
            ),
        },
        metatable={
            "__tostring": lambda s, v: "Enums",
            "__index": _enums_index,
        },
        environment=_install_enums,
        types=[enum],
        dump=lambda: TypeDef(summary="The enums generated from a descriptor table."),
    )
