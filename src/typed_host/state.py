"""The marshaling protocol between script values and domain values.

A State is created for each top-level script call. It pushes domain values to
script values, pulls script values into domain values of an expected type, and
dispatches member access and operators on userdata through reflectors. Each
State owns the cycle guard used while converting compound values, so
independent top-level conversions never share one.
"""

from __future__ import annotations

import functools
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Iterator

from typed_host.errors import (
    HostError,
    TypeMismatchError,
    UnknownTypeError,
    ValidationError,
    field_error,
)
from typed_host.reflector import Flags, MemberKind, Reflector
from typed_host.script import UserData, script_type
from typed_host.types import (
    NIL,
    BinaryString,
    Bool,
    Double,
    Int,
    String,
    Value,
)

if TYPE_CHECKING:
    from typed_host.descriptors import RootDesc
    from typed_host.format import Format
    from typed_host.instance import Instance
    from typed_host.world import World


class State:
    """Conversion and dispatch context for a single top-level script call."""

    def __init__(self, world: World) -> None:
        self.world = world
        self._cycle: set[int] | None = None

    @property
    def registry(self):
        return self.world.registry

    # ---- Cycle guard ----

    @contextmanager
    def cycle_guard(self) -> Iterator[None]:
        """Scope a cycle guard around the outermost compound conversion.

        Nested uses share the outer guard; the guard is cleared when the
        outermost scope exits, whether or not the conversion succeeded.
        """
        if self._cycle is not None:
            yield
            return
        self._cycle = set()
        try:
            yield
        finally:
            self._cycle = None

    def cycle_mark(self, obj: object) -> bool:
        """Mark obj as in progress. Returns True if it was already marked."""
        if self._cycle is None:
            raise RuntimeError("cycle_mark used outside of cycle_guard")
        key = id(obj)
        if key in self._cycle:
            return True
        self._cycle.add(key)
        return False

    # ---- Lookup ----

    def reflector(self, type_name: str) -> Reflector:
        return self.registry.get_or_raise(type_name)

    def format(self, name: str) -> Format:
        return self.world.formats.get_or_raise(name)

    def desc(self, inst: Instance | None) -> RootDesc | None:
        return self.world.desc(inst)

    # ---- Push / Pull ----

    def push(self, value: Value) -> Any:
        """Convert a domain value to a script value using its own type."""
        return self._push_with(self.reflector(value.type()), value)

    def push_as(self, type_name: str, value: Value) -> Any:
        """Convert a domain value to a script value using the named type."""
        return self._push_with(self.reflector(type_name), value)

    def _push_with(self, rfl: Reflector, value: Value) -> Any:
        if rfl.push is None:
            raise TypeMismatchError(f"unable to cast {rfl.name} to Variant")
        return rfl.push(self, value)

    push_variant = push

    def push_property(self, value: Value) -> Any:
        """Push a property value; exprim types are boxed as userdata."""
        rfl = self.registry.lookup(value.type())
        if rfl is None:
            raise UnknownTypeError(f"unknown type {value.type()!r}")
        if rfl.push is None:
            raise TypeMismatchError(f"unable to cast {rfl.name} to Variant")
        if not rfl.has_flag(Flags.EXPRIM):
            return rfl.push(self, value)
        return self.userdata_of(value, rfl.name)

    def pull(self, lv: Any, type_name: str) -> Value:
        """Convert a script value to a domain value of the named type."""
        rfl = self.reflector(type_name)
        if rfl.pull is None:
            raise TypeMismatchError(f"unable to cast Variant to {rfl.name}")
        return rfl.pull(self, lv)

    def pull_opt(self, lv: Any, type_name: str, default: Value | None) -> Value | None:
        """Like pull, but returns default when lv is nil."""
        if lv is None:
            return default
        return self.pull(lv, type_name)

    def pull_any_of(self, lv: Any, *type_names: str) -> Value:
        """Pull lv as the first of type_names that accepts it.

        Candidates are tried in order, so earlier names take precedence.
        """
        for type_name in type_names:
            try:
                return self.pull(lv, type_name)
            except TypeMismatchError:
                continue
        raise TypeMismatchError.expected(" or ".join(type_names), script_type(lv))

    def pull_variant(self, lv: Any) -> Value:
        """Pull a script value as whichever domain type matches its shape."""
        if lv is None:
            return NIL
        if isinstance(lv, bool):
            return Bool(lv)
        if isinstance(lv, int):
            return Int(lv)
        if isinstance(lv, float):
            return Double(lv)
        if isinstance(lv, str):
            return String(lv)
        if isinstance(lv, bytes):
            return BinaryString(lv)
        if isinstance(lv, UserData):
            return lv.value
        if isinstance(lv, dict):
            return self.pull(lv, "Dictionary")
        if isinstance(lv, tuple):
            return self.pull(lv, "Tuple")
        if isinstance(lv, list):
            return self.pull(lv, "Array")
        raise TypeMismatchError.expected("Variant", script_type(lv))

    def convert(self, value: Value, type_name: str) -> Value | None:
        """Convert value to the named type. Returns None when no coercion applies."""
        if value.type() == type_name:
            return value
        rfl = self.registry.lookup(type_name)
        if rfl is None or rfl.convert_from is None:
            return None
        return rfl.convert_from(value)

    def set_typed(self, target: object, attr: str, type_name: str, value: Value) -> None:
        """Assign value to a typed attribute of target through its reflector."""
        rfl = self.reflector(type_name)
        if rfl.set_to is None:
            raise TypeMismatchError(f"cannot assign to {rfl.name}")
        rfl.set_to(target, attr, value)

    def userdata_of(self, value: Value, type_name: str) -> UserData:
        return UserData(value, type_name, self.world)

    # ---- Table helpers ----

    def push_to_table(self, table: dict[Any, Any], key: Any, value: Value) -> None:
        try:
            table[key] = self.push(value)
        except HostError as err:
            raise field_error(str(key), err) from err

    def pull_from_table(self, table: dict[Any, Any], key: Any, type_name: str) -> Value:
        try:
            return self.pull(table.get(key), type_name)
        except HostError as err:
            raise field_error(str(key), err) from err

    def pull_from_table_opt(
        self, table: dict[Any, Any], key: Any, type_name: str, default: Value | None
    ) -> Value | None:
        try:
            return self.pull_opt(table.get(key), type_name, default)
        except HostError as err:
            raise field_error(str(key), err) from err

    def pull_any_from_table_opt(
        self, table: dict[Any, Any], key: Any, default: Value | None, *type_names: str
    ) -> Value | None:
        lv = table.get(key)
        if lv is None:
            return default
        try:
            return self.pull_any_of(lv, *type_names)
        except HostError as err:
            raise field_error(str(key), err) from err

    # ---- Dispatch ----

    def index(self, u: UserData, key: Any) -> Any:
        """Get a member of a userdata value."""
        rfl = self.reflector(u.type_name)
        if isinstance(key, str):
            members = self.registry.members(rfl.name)
            entry = members.get(key) if members is not None else None
            if entry is not None:
                kind, member = entry
                if kind is MemberKind.PROPERTY:
                    return member.get(self, u.value)
                return functools.partial(self.call_method, u, key)
        handler = rfl.metatable.get("__index")
        if handler is not None:
            return handler(self, u.value, key)
        raise ValidationError(f"{key} is not a valid member of {rfl.name}")

    def newindex(self, u: UserData, key: Any, lv: Any) -> None:
        """Set a member of a userdata value."""
        rfl = self.reflector(u.type_name)
        if isinstance(key, str):
            members = self.registry.members(rfl.name)
            entry = members.get(key) if members is not None else None
            if entry is not None:
                kind, member = entry
                if kind is not MemberKind.PROPERTY or member.set is None:
                    raise ValidationError(f"{key} cannot be assigned to")
                member.set(self, u.value, lv)
                return
        handler = rfl.metatable.get("__newindex")
        if handler is not None:
            handler(self, u.value, key, lv)
            return
        raise ValidationError(f"{key} is not a valid member of {rfl.name}")

    def call_method(self, u: UserData, name: str, *args: Any) -> Any:
        """Call a method of a userdata value."""
        rfl = self.reflector(u.type_name)
        members = self.registry.members(rfl.name)
        entry = members.get(name) if members is not None else None
        if entry is not None and entry[0] is MemberKind.METHOD:
            return entry[1].func(self, u.value, *args)
        fn = self.index(u, name)
        if not callable(fn):
            raise TypeMismatchError(f"attempt to call a {script_type(fn)} value ({name})")
        return fn(*args)

    def construct(self, type_name: str, constructor: str = "new", *args: Any) -> Any:
        """Call a constructor of a type."""
        rfl = self.reflector(type_name)
        ctor = rfl.constructors.get(constructor)
        if ctor is None:
            raise ValidationError(f"{constructor} is not a valid constructor of {type_name}")
        return ctor.func(self, *args)

    def tostring(self, u: UserData) -> str:
        rfl = self.reflector(u.type_name)
        handler = rfl.metatable.get("__tostring")
        if handler is not None:
            return handler(self, u.value)
        return f"{rfl.name}: {id(u.value):#x}"

    def equal(self, a: UserData, b: UserData) -> bool:
        if a.type_name != b.type_name:
            return False
        handler = self.reflector(a.type_name).metatable.get("__eq")
        if handler is not None:
            return handler(self, a.value, b.value)
        return a.value is b.value

    def arith(self, op: str, a: UserData, b: Any = None) -> Any:
        """Apply an operator metamethod such as "add", "mul", or "unm"."""
        handler = self.reflector(a.type_name).metatable.get(f"__{op}")
        if handler is None:
            raise TypeMismatchError(f"attempt to perform arithmetic ({op}) on {a.type_name}")
        if op == "unm":
            return handler(self, a.value)
        return handler(self, a.value, b)

    # ---- Environment ----

    def environment(self) -> dict[str, Any]:
        """Build the global table exposing constructors and library values."""
        env: dict[str, Any] = {}
        for type_name in self.registry.list_types():
            rfl = self.reflector(type_name)
            if rfl.constructors:
                env[type_name] = {
                    name: functools.partial(self.construct, type_name, name)
                    for name in rfl.constructors
                }
            if rfl.environment is not None:
                rfl.environment(self, env)
        return env
