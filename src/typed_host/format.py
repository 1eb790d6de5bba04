"""Formats convert between bytes and domain values."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterator

from typed_host.errors import FormatUnsupportedError, TypeMismatchError, ValidationError
from typed_host.types import Dictionary, FormatSelector, Value

if TYPE_CHECKING:
    from typed_host.world import World

logger = logging.getLogger(__name__)


class FormatOptions:
    """Options passed to a format, restricted to the names it declares."""

    def __init__(self, format: Format, values: Dictionary | None = None) -> None:
        self._format = format
        self._values: dict[str, Value] = {}
        for name, value in (values or {}).items():
            accepted = format.options.get(name)
            if accepted is None:
                raise ValidationError(f"unknown option {name!r} for format {format.name}")
            if value.type() not in accepted:
                raise TypeMismatchError(
                    f"expected type {' or '.join(accepted)} for option {name} "
                    f"of format {format.name}, got {value.type()}"
                )
            self._values[name] = value

    @classmethod
    def from_selector(cls, format: Format, selector: FormatSelector) -> FormatOptions:
        return cls(format, selector.options)

    def value_of(self, name: str) -> Value | None:
        """Return the value of an option, or None if it is not set."""
        return self._values.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._values

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)


class Format:
    """Base class for formats.

    Subclasses set ``name``, ``media_types`` and ``options`` (option name to
    the accepted type names), and override ``encode`` and/or ``decode``.
    """

    name: str = ""
    media_types: tuple[str, ...] = ()
    options: dict[str, list[str]] = {}

    def can_decode(self, options: FormatOptions, type_name: str) -> bool:
        """Whether the format decodes into values of the given type."""
        return False

    def can_encode(self) -> bool:
        return type(self).encode is not Format.encode

    def can_decode_any(self) -> bool:
        return type(self).decode is not Format.decode

    def encode(self, world: World, options: FormatOptions, value: Value) -> bytes:
        raise FormatUnsupportedError(f"cannot encode with format {self.name}")

    def decode(self, world: World, options: FormatOptions, data: bytes) -> Value:
        raise FormatUnsupportedError(f"cannot decode with format {self.name}")

    def __repr__(self) -> str:
        return f"<Format {self.name}>"


class FormatRegistry:
    """Registry of formats, keyed by name."""

    def __init__(self) -> None:
        self._formats: dict[str, Format] = {}
        self._frozen = False

    def register(self, format: Format) -> None:
        if self._frozen:
            raise RuntimeError(f"Cannot register format '{format.name}': registry is frozen")
        if not format.name:
            raise ValueError("Format has no name")
        if format.name in self._formats:
            raise ValueError(f"Format '{format.name}' is already registered")
        self._formats[format.name] = format
        logger.debug("registered format %s %s", format.name, list(format.media_types))

    def freeze(self) -> None:
        self._frozen = True

    def get(self, name: str) -> Format | None:
        return self._formats.get(name)

    def get_or_raise(self, name: str) -> Format:
        format = self._formats.get(name)
        if format is None:
            raise FormatUnsupportedError(f"unknown format {name!r}")
        return format

    def list_formats(self) -> list[str]:
        return list(self._formats.keys())

    def __contains__(self, name: str) -> bool:
        return name in self._formats

    def __len__(self) -> int:
        return len(self._formats)
