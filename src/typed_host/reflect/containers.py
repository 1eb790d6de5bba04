"""Reflectors of compound values: Dictionary, Array and Tuple.

Conversions of compound values recurse into their elements under the state's
cycle guard. A value reached a second time within one conversion fails with
CyclicValueError.

Elements are pushed by their own type and pulled back as Variant, from the
shape of the script value alone. Element types that share a script shape with
a base type come back as that base type: int64 and token as int, float as
double, ProtectedString and Content as string, SharedString as BinaryString.
Userdata elements keep their type.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host.dump import TypeDef
from typed_host.errors import CyclicValueError, HostError, TypeMismatchError, field_error
from typed_host.reflect.base import describe
from typed_host.reflector import Reflector, set_attribute_to
from typed_host.types import Array, Dictionary, Tuple

if TYPE_CHECKING:
    from typed_host.state import State


def _enter(s: State, obj: object, type_name: str) -> None:
    if s.cycle_mark(obj):
        raise CyclicValueError(f"{type_name} is cyclic")


def push_dictionary(s: State, v: Dictionary) -> dict[str, Any]:
    with s.cycle_guard():
        _enter(s, v, "Dictionary")
        table: dict[str, Any] = {}
        for key, value in v.items():
            s.push_to_table(table, key, value)
        return table


def pull_dictionary(s: State, lv: Any) -> Dictionary:
    if not isinstance(lv, dict):
        raise TypeMismatchError.expected("Dictionary", describe(lv))
    with s.cycle_guard():
        _enter(s, lv, "table")
        result = Dictionary()
        for key, value in lv.items():
            if not isinstance(key, str):
                raise TypeMismatchError(f"string expected for key, got {describe(key)}")
            try:
                result[key] = s.pull_variant(value)
            except HostError as err:
                raise field_error(key, err) from err
        return result


def _push_sequence(s: State, v: list, type_name: str) -> list[Any]:
    with s.cycle_guard():
        _enter(s, v, type_name)
        items = []
        for i, value in enumerate(v, 1):
            try:
                items.append(s.push(value))
            except HostError as err:
                raise field_error(str(i), err) from err
        return items


def _pull_sequence(s: State, lv: Any, cls: type) -> list:
    if not isinstance(lv, (list, tuple)):
        raise TypeMismatchError.expected(cls.type_name, describe(lv))
    with s.cycle_guard():
        _enter(s, lv, "table")
        result = cls()
        for i, value in enumerate(lv, 1):
            try:
                result.append(s.pull_variant(value))
            except HostError as err:
                raise field_error(str(i), err) from err
        return result


def dictionary() -> Reflector:
    return Reflector(
        name="Dictionary",
        push=push_dictionary,
        pull=pull_dictionary,
        set_to=set_attribute_to(Dictionary),
        dump=lambda: TypeDef(
            underlying="table",
            summary=(
                "A table mapping string keys to values of any type. Elements of type "
                "int64, token, float, ProtectedString, Content or SharedString come "
                "back as their base type."
            ),
        ),
    )


def array() -> Reflector:
    return Reflector(
        name="Array",
        push=lambda s, v: _push_sequence(s, v, "Array"),
        pull=lambda s, lv: _pull_sequence(s, lv, Array),
        set_to=set_attribute_to(Array),
        dump=lambda: TypeDef(
            underlying="table",
            summary=(
                "A sequence of values of any type. Elements of type int64, token, float, "
                "ProtectedString, Content or SharedString come back as their base type."
            ),
        ),
    )


def tuple_() -> Reflector:
    return Reflector(
        name="Tuple",
        push=lambda s, v: tuple(_push_sequence(s, v, "Tuple")),
        pull=lambda s, lv: _pull_sequence(s, lv, Tuple),
        dump=lambda: TypeDef(summary="Several values passed or returned together."),
    )
