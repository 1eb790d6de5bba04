"""Helpers shared by reflectors."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from typed_host.errors import HostError, TypeMismatchError, prefixed_error
from typed_host.script import UserData, script_type
from typed_host.types import Value

if TYPE_CHECKING:
    from typed_host.state import State


def describe(lv: Any) -> str:
    """Name the type of a script value for error messages."""
    if isinstance(lv, UserData):
        return lv.type_name
    return script_type(lv)


def push_userdata(type_name: str) -> Callable[[State, Value], Any]:
    """Return a push function that boxes values as userdata of type_name."""

    def push(s: State, v: Value) -> Any:
        return s.userdata_of(v, type_name)

    return push


def pull_userdata(type_name: str, cls: type) -> Callable[[State, Any], Value]:
    """Return a pull function that unboxes userdata holding a cls value."""

    def pull(s: State, lv: Any) -> Value:
        if isinstance(lv, UserData) and isinstance(lv.value, cls):
            return lv.value
        raise TypeMismatchError.expected(type_name, describe(lv))

    return pull


def value_metatable() -> dict[str, Callable[..., Any]]:
    """Metatable entries for immutable values compared by value."""
    return {
        "__tostring": lambda s, v: str(v),
        "__eq": lambda s, v, op: v == op,
    }


def arg(args: tuple[Any, ...], index: int) -> Any:
    """Return a positional script argument, or nil when it is absent."""
    return args[index] if index < len(args) else None


def expect_args(name: str, args: tuple[Any, ...], *counts: int) -> None:
    if len(args) not in counts:
        choices = " or ".join(str(c) for c in counts)
        raise TypeMismatchError(f"{name}: expected {choices} arguments, got {len(args)}")


def pull_arg(s: State, args: tuple[Any, ...], index: int, type_name: str) -> Value:
    """Pull a positional argument, naming its position on failure."""
    try:
        return s.pull(arg(args, index), type_name)
    except HostError as err:
        raise prefixed_error(f"bad argument #{index + 1}", err) from err


def pull_arg_opt(
    s: State, args: tuple[Any, ...], index: int, type_name: str, default: Value | None
) -> Value | None:
    if arg(args, index) is None:
        return default
    return pull_arg(s, args, index, type_name)
