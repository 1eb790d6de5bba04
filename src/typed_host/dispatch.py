"""Format and source dispatch.

Decoding reads bytes from a source and decodes them with a format; encoding
runs the other way. Multi-representation sources such as the clipboard are
read and written through several formats at once.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Sequence

from typed_host.errors import FormatUnsupportedError
from typed_host.format import Format, FormatOptions
from typed_host.sources.base import MultiSource, Source
from typed_host.types import FormatSelector, Value

if TYPE_CHECKING:
    from typed_host.world import World

logger = logging.getLogger(__name__)


def _select(world: World, selector: FormatSelector, decode: bool) -> tuple[Format, FormatOptions]:
    format = world.formats.get_or_raise(selector.format)
    if decode and not format.can_decode_any():
        raise FormatUnsupportedError(f"cannot decode with format {format.name}")
    if not decode and not format.can_encode():
        raise FormatUnsupportedError(f"cannot encode with format {format.name}")
    return format, FormatOptions.from_selector(format, selector)


def select_formats(
    world: World, selectors: Sequence[FormatSelector], decode: bool
) -> list[tuple[Format, FormatOptions]]:
    """Resolve selectors to formats, keeping only the first selector of each format."""
    selected: list[tuple[Format, FormatOptions]] = []
    seen: set[str] = set()
    for selector in selectors:
        format, options = _select(world, selector, decode)
        if format.name in seen:
            continue
        seen.add(format.name)
        selected.append((format, options))
    return selected


def decode_from(world: World, source: Source, reference: str, selector: FormatSelector) -> Value:
    """Read bytes from a source and decode them with the selected format."""
    format, options = _select(world, selector, decode=True)
    data = source.read(reference)
    logger.debug("decoding %d bytes from %s:%s as %s", len(data), source.name, reference, format.name)
    return format.decode(world, options, data)


def encode_to(
    world: World, source: Source, reference: str, selector: FormatSelector, value: Value
) -> None:
    """Encode a value with the selected format and write it to a source."""
    format, options = _select(world, selector, decode=False)
    data = format.encode(world, options, value)
    logger.debug("encoded %s as %s; writing to %s:%s", value.type(), format.name, source.name, reference)
    source.write(reference, data)


def read_any(world: World, source: MultiSource, selectors: Sequence[FormatSelector]) -> Value:
    """Decode whichever representation the source picks among the selected formats.

    Each media type is claimed by the first format declaring it. The source
    picks one of the claimed media types, and the value is decoded with the
    format that claimed it.
    """
    media_types: list[str] = []
    owners: list[tuple[Format, FormatOptions]] = []
    claimed: set[str] = set()
    for format, options in select_formats(world, selectors, decode=True):
        for media_type in format.media_types:
            if media_type in claimed:
                continue
            claimed.add(media_type)
            media_types.append(media_type)
            owners.append((format, options))
    index, data = source.read_any(media_types)
    format, options = owners[index]
    logger.debug("decoding %s from %s as %s", media_types[index], source.name, format.name)
    return format.decode(world, options, data)


def write_all(
    world: World, source: MultiSource, selectors: Sequence[FormatSelector], value: Value
) -> None:
    """Write a value in every selected format.

    A format is encoded at most once, and only if it claims at least one
    media type not already claimed by an earlier format. The same bytes are
    written for each media type the format claims.
    """
    contents: list[tuple[str, bytes]] = []
    claimed: set[str] = set()
    for format, options in select_formats(world, selectors, decode=False):
        data: bytes | None = None
        for media_type in format.media_types:
            if media_type in claimed:
                continue
            if data is None:
                data = format.encode(world, options, value)
            claimed.add(media_type)
            contents.append((media_type, data))
    source.write_all(contents)


def format_for_path(world: World, path: str) -> str | None:
    """Return the name of the registered format matching the path's extension.

    The longest matching extension wins, so "a.desc.json" selects "desc.json"
    over "json".
    """
    name = path.replace("\\", "/").rsplit("/", 1)[-1]
    best: str | None = None
    for format_name in world.formats.list_formats():
        if name.endswith("." + format_name) and (best is None or len(format_name) > len(best)):
            best = format_name
    return best
