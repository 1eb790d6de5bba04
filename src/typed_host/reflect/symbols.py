"""Reflectors of Symbol and AttrConfig."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host.dump import Function, MultiFunction, Parameter, Property as PropertyDump, TypeDef
from typed_host.reflect.base import pull_arg_opt, pull_userdata, push_userdata, value_metatable
from typed_host.reflector import Constructor, Property, Reflector, set_attribute_to
from typed_host.types import AttrConfig, String, Symbol

if TYPE_CHECKING:
    from typed_host.state import State


# Structural members of instances, reached with symbols rather than names.
REFERENCE = Symbol("Reference")
IS_SERVICE = Symbol("IsService")
DESC = Symbol("Desc")
RAW_DESC = Symbol("RawDesc")
ATTR_CONFIG = Symbol("AttrConfig")
RAW_ATTR_CONFIG = Symbol("RawAttrConfig")
METADATA = Symbol("Metadata")

SYMBOLS = [REFERENCE, IS_SERVICE, DESC, RAW_DESC, ATTR_CONFIG, RAW_ATTR_CONFIG, METADATA]


def _install_symbols(s: State, env: dict[str, Any]) -> None:
    env["sym"] = {symbol.name: s.push(symbol) for symbol in SYMBOLS}


def symbol() -> Reflector:
    return Reflector(
        name="Symbol",
        push=push_userdata("Symbol"),
        pull=pull_userdata("Symbol", Symbol),
        properties={
            "Name": Property(
                get=lambda s, v: s.push(String(v.name)),
                dump=lambda: PropertyDump(value_type="string", read_only=True),
            ),
        },
        metatable=value_metatable(),
        environment=_install_symbols,
        dump=lambda: TypeDef(summary="A unique key for structural members of a value."),
    )


def _set_property(s: State, v: AttrConfig, lv: Any) -> None:
    v.property = s.pull(lv, "string").value


def _attr_config_new(s: State, *args: Any) -> Any:
    prop = pull_arg_opt(s, args, 0, "string", String(""))
    return s.push(AttrConfig(prop.value))


def attr_config() -> Reflector:
    return Reflector(
        name="AttrConfig",
        push=push_userdata("AttrConfig"),
        pull=pull_userdata("AttrConfig", AttrConfig),
        set_to=set_attribute_to(AttrConfig),
        properties={
            "Property": Property(
                get=lambda s, v: s.push(String(v.property)),
                set=_set_property,
                dump=lambda: PropertyDump(
                    value_type="string",
                    summary="The property that stores attributes. Empty selects the default.",
                ),
            ),
        },
        constructors={
            "new": Constructor(
                _attr_config_new,
                dump=lambda: MultiFunction(
                    signatures=[
                        Function(
                            parameters=[Parameter("property", "string", '""')],
                            returns=[Parameter("", "AttrConfig")],
                        )
                    ]
                ),
            ),
        },
        metatable={"__tostring": lambda s, v: f"AttrConfig({v.property})"},
        dump=lambda: TypeDef(summary="Configures where the attributes of instances are stored."),
    )
