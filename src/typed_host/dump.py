"""Documentation descriptors of the types, enums and formats of a World.

Reflectors may attach dump callbacks that describe themselves. ``dump_world``
collects these into plain JSON-ready data.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

from typed_host.reflector import MemberKind

if TYPE_CHECKING:
    from typed_host.reflector import Reflector
    from typed_host.world import World


@dataclass
class Parameter:
    name: str
    type: str
    default: str | None = None


@dataclass
class Function:
    parameters: list[Parameter] = field(default_factory=list)
    returns: list[Parameter] = field(default_factory=list)
    can_error: bool = False
    summary: str = ""


@dataclass
class MultiFunction:
    """A function with several alternative signatures."""

    signatures: list[Function] = field(default_factory=list)
    summary: str = ""


@dataclass
class Property:
    value_type: str
    read_only: bool = False
    summary: str = ""


@dataclass
class TypeDef:
    """Description of one type."""

    underlying: str | None = None
    summary: str = ""
    operators: list[str] = field(default_factory=list)
    properties: dict[str, Property] = field(default_factory=dict)
    methods: dict[str, Function] = field(default_factory=dict)
    constructors: dict[str, MultiFunction] = field(default_factory=dict)


def dump_type(reflector: Reflector) -> TypeDef:
    """Describe a reflector, filling in members that lack their own description."""
    typedef = reflector.dump() if reflector.dump is not None else TypeDef()
    typedef.operators = sorted(reflector.metatable.keys())
    for name, prop in reflector.properties.items():
        if prop.dump is not None:
            typedef.properties[name] = prop.dump()
        elif name not in typedef.properties:
            typedef.properties[name] = Property(value_type="any", read_only=prop.read_only)
    for name, method in reflector.methods.items():
        if method.dump is not None:
            typedef.methods[name] = method.dump()
        else:
            typedef.methods.setdefault(name, Function())
    for name, ctor in reflector.constructors.items():
        if ctor.dump is not None:
            typedef.constructors[name] = ctor.dump()
        else:
            typedef.constructors.setdefault(name, MultiFunction())
    return typedef


def dump_world(world: World) -> dict[str, Any]:
    """Describe every registered type, format, and global enum of a world."""
    types: dict[str, Any] = {}
    for name in world.registry.list_types():
        reflector = world.registry.get_or_raise(name)
        types[name] = asdict(dump_type(reflector))
        members = world.registry.members(name)
        if members is not None:
            kinds = {member: kind.value for member, (kind, _) in members.members.items()}
            kinds.update((ctor, MemberKind.CONSTRUCTOR.value) for ctor in members.constructors)
            types[name]["member_kinds"] = kinds

    formats: dict[str, Any] = {}
    for name in world.formats.list_formats():
        format = world.formats.get_or_raise(name)
        formats[name] = {
            "media_types": list(format.media_types),
            "options": {option: list(accepted) for option, accepted in format.options.items()},
            "can_encode": format.can_encode(),
            "can_decode": format.can_decode_any(),
        }

    enums: dict[str, list[dict[str, Any]]] = {}
    if world.global_desc is not None:
        for enum in world.global_desc.enum_types.enums():
            enums[enum.name] = [{"name": item.name, "value": item.value} for item in enum.items()]

    return {"types": types, "formats": formats, "enums": enums}
