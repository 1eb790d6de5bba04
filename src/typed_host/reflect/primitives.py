"""Reflectors of primitive values: nil, booleans, numbers and strings."""

from __future__ import annotations

import math
from typing import Any, Callable

from typed_host.dump import TypeDef
from typed_host.errors import TypeMismatchError
from typed_host.reflect.base import describe, value_metatable
from typed_host.reflector import Flags, Reflector, set_attribute_to
from typed_host.script import UserData
from typed_host.types import (
    NIL,
    BinaryString,
    Bool,
    Content,
    Double,
    Float,
    Int,
    Int64,
    Intlike,
    Numberlike,
    ProtectedString,
    SharedString,
    String,
    Stringlike,
    Token,
    Value,
)


def _is_number(lv: Any) -> bool:
    return isinstance(lv, (int, float)) and not isinstance(lv, bool)


def _integral(x: float) -> bool:
    if isinstance(x, int):
        return True
    return math.isfinite(x) and x.is_integer()


def _boxed(lv: Any, type_name: str) -> Value | None:
    """Return the value of userdata carrying exactly type_name."""
    if isinstance(lv, UserData) and lv.type_name == type_name:
        return lv.value
    return None


def _primitive(
    name: str,
    cls: type,
    push: Callable[[Any], Any],
    pull: Callable[[Any], Value | None],
    convert_from: Callable[[Value], Value | None] | None = None,
    flags: Flags = Flags.NONE,
    summary: str = "",
) -> Reflector:
    """Build a reflector whose push and pull do not need the state."""

    def pull_value(s, lv: Any) -> Value:
        boxed = _boxed(lv, name)
        if boxed is not None:
            return boxed
        value = pull(lv)
        if value is None:
            raise TypeMismatchError.expected(name, describe(lv))
        return value

    return Reflector(
        name=name,
        push=lambda s, v: push(v),
        pull=pull_value,
        convert_from=convert_from,
        set_to=set_attribute_to(cls),
        flags=flags,
        metatable=value_metatable() if flags & Flags.EXPRIM else {},
        dump=lambda: TypeDef(underlying=cls.__name__, summary=summary),
    )


# ---- Coercions ----


def _to_int(cls: type) -> Callable[[Value], Value | None]:
    def convert(v: Value) -> Value | None:
        if isinstance(v, Intlike):
            return cls(v.intlike())
        if isinstance(v, Numberlike) and _integral(float(v.numberlike())):
            return cls(int(v.numberlike()))
        return None

    return convert


def _to_float(cls: type) -> Callable[[Value], Value | None]:
    def convert(v: Value) -> Value | None:
        if isinstance(v, Numberlike):
            return cls(v.numberlike())
        return None

    return convert


def _to_token(v: Value) -> Value | None:
    if isinstance(v, Intlike):
        return Token(v.intlike())
    return None


def _to_text(cls: type) -> Callable[[Value], Value | None]:
    def convert(v: Value) -> Value | None:
        if isinstance(v, Stringlike):
            return cls(v.stringlike())
        return None

    return convert


def _to_bytes(cls: type) -> Callable[[Value], Value | None]:
    def convert(v: Value) -> Value | None:
        if isinstance(v, Stringlike):
            return cls(v.byteslike())
        return None

    return convert


# ---- Pulls ----


def _pull_integer(cls: type) -> Callable[[Any], Value | None]:
    def pull(lv: Any) -> Value | None:
        if _is_number(lv) and _integral(lv):
            return cls(int(lv))
        return None

    return pull


def _pull_number(cls: type) -> Callable[[Any], Value | None]:
    def pull(lv: Any) -> Value | None:
        if _is_number(lv):
            return cls(float(lv))
        return None

    return pull


def _pull_text(cls: type) -> Callable[[Any], Value | None]:
    def pull(lv: Any) -> Value | None:
        if isinstance(lv, str):
            return cls(lv)
        if isinstance(lv, bytes):
            return cls(lv.decode("utf-8", "surrogateescape"))
        return None

    return pull


def _pull_bytes(cls: type) -> Callable[[Any], Value | None]:
    def pull(lv: Any) -> Value | None:
        if isinstance(lv, bytes):
            return cls(lv)
        if isinstance(lv, str):
            return cls(lv.encode("utf-8", "surrogateescape"))
        return None

    return pull


# ---- Reflectors ----


def nil() -> Reflector:
    return Reflector(
        name="nil",
        push=lambda s, v: None,
        pull=_pull_nil,
        dump=lambda: TypeDef(summary="The absence of a value."),
    )


def _pull_nil(s, lv: Any) -> Value:
    if lv is not None:
        raise TypeMismatchError.expected("nil", describe(lv))
    return NIL


def bool_() -> Reflector:
    return _primitive(
        "bool",
        Bool,
        push=lambda v: v.value,
        pull=lambda lv: Bool(lv) if isinstance(lv, bool) else None,
    )


def number() -> Reflector:
    return _primitive(
        "number",
        Double,
        push=lambda v: float(v.numberlike()),
        pull=_pull_number(Double),
        convert_from=_to_float(Double),
        summary="A script number, stored as a 64-bit float.",
    )


def double() -> Reflector:
    return _primitive(
        "double",
        Double,
        push=lambda v: float(v.value),
        pull=_pull_number(Double),
        convert_from=_to_float(Double),
    )


def float_() -> Reflector:
    return _primitive(
        "float",
        Float,
        push=lambda v: float(v.value),
        pull=_pull_number(Float),
        convert_from=_to_float(Float),
        flags=Flags.EXPRIM,
        summary="A 32-bit float. Pulling a number rounds it to single precision.",
    )


def int_() -> Reflector:
    return _primitive(
        "int",
        Int,
        push=lambda v: v.value,
        pull=_pull_integer(Int),
        convert_from=_to_int(Int),
        flags=Flags.EXPRIM,
        summary="An integer. Only integral numbers are accepted.",
    )


def int64() -> Reflector:
    return _primitive(
        "int64",
        Int64,
        push=lambda v: v.value,
        pull=_pull_integer(Int64),
        convert_from=_to_int(Int64),
        flags=Flags.EXPRIM,
    )


def token() -> Reflector:
    return _primitive(
        "token",
        Token,
        push=lambda v: v.value,
        pull=_pull_integer(Token),
        convert_from=_to_token,
        flags=Flags.EXPRIM,
        summary="The integer value of an enum item as stored in a property.",
    )


def string() -> Reflector:
    return _primitive(
        "string",
        String,
        push=lambda v: v.value,
        pull=_pull_text(String),
        convert_from=_to_text(String),
    )


def protected_string() -> Reflector:
    return _primitive(
        "ProtectedString",
        ProtectedString,
        push=lambda v: v.value,
        pull=_pull_text(ProtectedString),
        convert_from=_to_text(ProtectedString),
        flags=Flags.EXPRIM,
    )


def content() -> Reflector:
    return _primitive(
        "Content",
        Content,
        push=lambda v: v.value,
        pull=_pull_text(Content),
        convert_from=_to_text(Content),
        flags=Flags.EXPRIM,
        summary="A URI referring to external content.",
    )


def binary_string() -> Reflector:
    return _primitive(
        "BinaryString",
        BinaryString,
        push=lambda v: v.value,
        pull=_pull_bytes(BinaryString),
        convert_from=_to_bytes(BinaryString),
        flags=Flags.EXPRIM,
    )


def shared_string() -> Reflector:
    return _primitive(
        "SharedString",
        SharedString,
        push=lambda v: v.value,
        pull=_pull_bytes(SharedString),
        convert_from=_to_bytes(SharedString),
        flags=Flags.EXPRIM,
    )


def variant() -> Reflector:
    """Any value, converted according to its own type."""
    return Reflector(
        name="Variant",
        push=lambda s, v: s.push_variant(v),
        pull=lambda s, lv: s.pull_variant(lv),
        dump=lambda: TypeDef(summary="Any value, converted according to its own type."),
    )


def all_primitives() -> list[Callable[[], Reflector]]:
    return [
        nil,
        bool_,
        number,
        double,
        float_,
        int_,
        int64,
        token,
        string,
        protected_string,
        content,
        binary_string,
        shared_string,
        variant,
    ]
