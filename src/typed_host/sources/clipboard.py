"""Clipboard source.

The clipboard holds one piece of content in several representations, each
tagged with a media type. Access to the system clipboard goes through a
ClipboardBackend; MemoryClipboard keeps the content in memory.
"""

from __future__ import annotations

import logging
from typing import Sequence

from typed_host.errors import SourceFailureError
from typed_host.sources.base import MultiSource

logger = logging.getLogger(__name__)


class ClipboardBackend:
    """Interface to a clipboard."""

    def read(self, media_types: Sequence[str]) -> tuple[int, bytes]:
        """Return the index of the first available media type and its content.

        Raises SourceFailureError if none of the media types are available.
        """
        raise NotImplementedError

    def write(self, contents: Sequence[tuple[str, bytes]]) -> None:
        """Replace the clipboard content with the given representations."""
        raise NotImplementedError


class MemoryClipboard(ClipboardBackend):
    """A clipboard held in memory."""

    def __init__(self) -> None:
        self._contents: dict[str, bytes] = {}

    def read(self, media_types: Sequence[str]) -> tuple[int, bytes]:
        for i, media_type in enumerate(media_types):
            content = self._contents.get(media_type)
            if content is not None:
                return i, content
        raise SourceFailureError(
            f"clipboard has no content of type {', '.join(media_types) or '(none)'}"
        )

    def write(self, contents: Sequence[tuple[str, bytes]]) -> None:
        self._contents = {media_type: bytes(data) for media_type, data in contents}

    def media_types(self) -> list[str]:
        return list(self._contents.keys())

    def clear(self) -> None:
        self._contents.clear()


class ClipboardSource(MultiSource):
    name = "clipboard"

    def __init__(self, backend: ClipboardBackend) -> None:
        self.backend = backend

    def read_any(self, media_types: Sequence[str]) -> tuple[int, bytes]:
        if not media_types:
            raise SourceFailureError("no media types to read from clipboard")
        try:
            index, data = self.backend.read(media_types)
        except SourceFailureError:
            raise
        except OSError as err:
            raise SourceFailureError(f"read clipboard: {err}") from err
        logger.debug("read %d bytes of %s from clipboard", len(data), media_types[index])
        return index, data

    def write_all(self, contents: Sequence[tuple[str, bytes]]) -> None:
        try:
            self.backend.write(contents)
        except SourceFailureError:
            raise
        except OSError as err:
            raise SourceFailureError(f"write clipboard: {err}") from err
        logger.debug("wrote %s to clipboard", [media_type for media_type, _ in contents])
