"""Reflectors describe how a domain type is converted, validated, and exposed.

A Reflector is registered once per type name in a Registry. The registry is
filled during World initialization and frozen before any conversions run.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from typed_host.errors import TypeMismatchError, UnknownTypeError
from typed_host.types import Value

if TYPE_CHECKING:
    from typed_host.dump import Function, MultiFunction, Property as PropertyDump, TypeDef
    from typed_host.state import State


PushFunc = Callable[["State", Value], Any]
PullFunc = Callable[["State", Any], Value]
ConvertFunc = Callable[[Value], "Value | None"]
SetToFunc = Callable[[object, str, Value], None]


class Flags(enum.Flag):
    """Capability flags of a reflector."""

    NONE = 0
    # Primitive-like on the wire, but boxed as userdata when pushed as an
    # unvalidated property so that methods remain dispatchable.
    EXPRIM = enum.auto()


class MemberKind(enum.Enum):
    """Kinds of members a type may expose."""

    PROPERTY = "property"
    METHOD = "method"
    CONSTRUCTOR = "constructor"


@dataclass
class Property:
    """A readable, and optionally writable, member of a value."""

    get: Callable[["State", Value], Any]
    set: Callable[["State", Value, Any], None] | None = None
    dump: Callable[[], PropertyDump] | None = None

    @property
    def read_only(self) -> bool:
        return self.set is None


@dataclass
class Method:
    """A callable member. ``func`` receives the state, the value, and arguments."""

    func: Callable[..., Any]
    dump: Callable[[], Function] | None = None


@dataclass
class Constructor:
    """A function that creates a new value of the type."""

    func: Callable[..., Any]
    dump: Callable[[], MultiFunction] | None = None


@dataclass
class Reflector:
    """Conversion and introspection entry for one domain type."""

    name: str
    push: PushFunc | None = None
    pull: PullFunc | None = None
    convert_from: ConvertFunc | None = None
    set_to: SetToFunc | None = None
    flags: Flags = Flags.NONE
    properties: dict[str, Property] = field(default_factory=dict)
    methods: dict[str, Method] = field(default_factory=dict)
    constructors: dict[str, Constructor] = field(default_factory=dict)
    metatable: dict[str, Callable[..., Any]] = field(default_factory=dict)
    # Installs globals into a script environment.
    environment: Callable[["State", dict[str, Any]], None] | None = None
    # Reflectors this one depends on; registered alongside it.
    types: list[Callable[[], Reflector]] = field(default_factory=list)
    dump: Callable[[], TypeDef] | None = None

    def has_flag(self, flag: Flags) -> bool:
        return bool(self.flags & flag)


def set_attribute_to(value_cls: type) -> SetToFunc:
    """Return a set_to function that assigns instances of value_cls."""

    def set_to(target: object, attr: str, value: Value) -> None:
        if not isinstance(value, value_cls):
            raise TypeMismatchError.expected(value_cls.type_name, value.type())
        setattr(target, attr, value)

    return set_to


@dataclass
class MemberIndex:
    """Index of the members of one type, keyed by member name."""

    members: dict[str, tuple[MemberKind, Property | Method]] = field(default_factory=dict)
    constructors: dict[str, Constructor] = field(default_factory=dict)

    def get(self, name: str) -> tuple[MemberKind, Property | Method] | None:
        return self.members.get(name)

    def kind(self, name: str) -> MemberKind | None:
        entry = self.members.get(name)
        if entry is not None:
            return entry[0]
        if name in self.constructors:
            return MemberKind.CONSTRUCTOR
        return None


class Registry:
    """Registry of all reflectors, keyed by type name."""

    def __init__(self) -> None:
        self._reflectors: dict[str, Reflector] = {}
        self._members: dict[str, MemberIndex] = {}
        self._frozen = False

    def register(self, reflector: Reflector) -> None:
        """Register a reflector under its type name."""
        if self._frozen:
            raise RuntimeError(f"Cannot register type '{reflector.name}': registry is frozen")
        if not reflector.name:
            raise ValueError("Reflector has no name")
        if reflector.name in self._reflectors:
            raise ValueError(f"Type '{reflector.name}' is already registered")
        self._reflectors[reflector.name] = reflector
        self._members[reflector.name] = self._index_members(reflector)

    def _index_members(self, reflector: Reflector) -> MemberIndex:
        index = MemberIndex(constructors=dict(reflector.constructors))
        for name, prop in reflector.properties.items():
            index.members[name] = (MemberKind.PROPERTY, prop)
        for name, method in reflector.methods.items():
            if name in index.members:
                raise ValueError(
                    f"Type '{reflector.name}' defines '{name}' as both property and method"
                )
            index.members[name] = (MemberKind.METHOD, method)
        return index

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> Reflector | None:
        """Get a reflector by type name, or None if it is not registered."""
        return self._reflectors.get(name)

    def get_or_raise(self, name: str) -> Reflector:
        """Get a reflector by type name, raising if not found."""
        reflector = self._reflectors.get(name)
        if reflector is None:
            raise UnknownTypeError(f"unknown type {name!r}")
        return reflector

    def members(self, name: str) -> MemberIndex | None:
        """Get the member index of a type."""
        return self._members.get(name)

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return list(self._reflectors.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._reflectors

    def __len__(self) -> int:
        return len(self._reflectors)
