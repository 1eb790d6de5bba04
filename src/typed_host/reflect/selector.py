"""Reflector of FormatSelector, and the fs and clipboard libraries built on it.

A selector is written in scripts either as a format name, or as a table with a
"Format" field and one field per option::

    "json"
    {Format = "json", Indent = "  "}
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host import dispatch
from typed_host.dump import TypeDef
from typed_host.errors import (
    CyclicValueError,
    FormatUnsupportedError,
    SourceFailureError,
    TypeMismatchError,
)
from typed_host.reflect.base import arg, describe, pull_arg
from typed_host.reflector import Reflector
from typed_host.sources.base import MultiSource
from typed_host.types import Dictionary, FormatSelector, String

if TYPE_CHECKING:
    from typed_host.state import State


def push_format_selector(s: State, v: FormatSelector) -> dict[str, Any]:
    format = s.format(v.format)
    with s.cycle_guard():
        if s.cycle_mark(v):
            raise CyclicValueError("FormatSelector is cyclic")
        table: dict[str, Any] = {"Format": v.format}
        for name, accepted in format.options.items():
            value = v.options.get(name)
            if value is None:
                continue
            if value.type() not in accepted:
                raise TypeMismatchError(
                    f"field {name}: {' or '.join(accepted)} expected, got {value.type()}"
                )
            s.push_to_table(table, name, value)
        return table


def pull_format_selector(s: State, lv: Any) -> FormatSelector:
    if isinstance(lv, str):
        return FormatSelector(s.format(lv).name)
    if not isinstance(lv, dict):
        raise TypeMismatchError.expected("string or table", describe(lv))
    with s.cycle_guard():
        if s.cycle_mark(lv):
            raise CyclicValueError("FormatSelector is cyclic")
        name = s.pull_from_table(lv, "Format", "string").value
        format = s.format(name)
        options = Dictionary()
        for option, accepted in format.options.items():
            value = s.pull_any_from_table_opt(lv, option, None, *accepted)
            if value is not None:
                options[option] = value
        return FormatSelector(format.name, options)


def format_selector() -> Reflector:
    return Reflector(
        name="FormatSelector",
        push=push_format_selector,
        pull=pull_format_selector,
        environment=_install_libraries,
        dump=lambda: TypeDef(
            underlying="string | table",
            summary="Names a format and carries options for configuring it.",
        ),
    )


# ---- Libraries ----


def _selector_for_path(s: State, path: str, lv: Any) -> FormatSelector:
    if lv is not None:
        return s.pull(lv, "FormatSelector")
    name = dispatch.format_for_path(s.world, path)
    if name is None:
        raise FormatUnsupportedError(f"unknown format from {path!r}")
    return FormatSelector(name)


def _fs_read(s: State, *args: Any) -> Any:
    path = pull_arg(s, args, 0, "string").value
    selector = _selector_for_path(s, path, arg(args, 1))
    value = dispatch.decode_from(s.world, s.world.source("file"), path, selector)
    return s.push(value)


def _fs_write(s: State, *args: Any) -> None:
    path = pull_arg(s, args, 0, "string").value
    value = s.pull_variant(arg(args, 1))
    selector = _selector_for_path(s, path, arg(args, 2))
    dispatch.encode_to(s.world, s.world.source("file"), path, selector, value)


def _clipboard(s: State) -> MultiSource:
    source = s.world.source("clipboard")
    if not isinstance(source, MultiSource):
        raise SourceFailureError(f"source {source.name} cannot hold several representations")
    return source


def _clipboard_read(s: State, *args: Any) -> Any:
    selectors = [pull_arg(s, args, i, "FormatSelector") for i in range(len(args))]
    return s.push(dispatch.read_any(s.world, _clipboard(s), selectors))


def _clipboard_write(s: State, *args: Any) -> None:
    value = s.pull_variant(arg(args, 0))
    selectors = [pull_arg(s, args, i, "FormatSelector") for i in range(1, len(args))]
    dispatch.write_all(s.world, _clipboard(s), selectors, value)


def _install_libraries(s: State, env: dict[str, Any]) -> None:
    env["fs"] = {
        "read": lambda *args: _fs_read(s.world.state(), *args),
        "write": lambda *args: _fs_write(s.world.state(), *args),
    }
    env["clipboard"] = {
        "read": lambda *args: _clipboard_read(s.world.state(), *args),
        "write": lambda *args: _clipboard_write(s.world.state(), *args),
    }
    env["format"] = {
        "fromPath": lambda path: _format_name(s.world.state(), path),
    }


def _format_name(s: State, path: Any) -> Any:
    name = dispatch.format_for_path(s.world, s.pull(path, "string").value)
    return s.push(String(name)) if name is not None else None
