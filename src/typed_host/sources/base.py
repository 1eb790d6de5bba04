"""Sources resolve references to bytes and accept bytes for references."""

from __future__ import annotations

from typing import Sequence

from typed_host.errors import SourceFailureError


class Source:
    """Base class for sources.

    A source reads the bytes behind a reference, or writes bytes to it,
    independent of any format.
    """

    name: str = ""

    def read(self, reference: str) -> bytes:
        raise SourceFailureError(f"source {self.name} cannot be read")

    def write(self, reference: str, data: bytes) -> None:
        raise SourceFailureError(f"source {self.name} cannot be written")

    def __repr__(self) -> str:
        return f"<Source {self.name}>"


class MultiSource(Source):
    """A source that holds several representations of the same content.

    Each representation is keyed by media type.
    """

    def read_any(self, media_types: Sequence[str]) -> tuple[int, bytes]:
        """Pick one of the offered media types and return its index and content."""
        raise NotImplementedError

    def write_all(self, contents: Sequence[tuple[str, bytes]]) -> None:
        """Replace the content with the given (media type, bytes) pairs."""
        raise NotImplementedError

    def read(self, reference: str) -> bytes:
        """Read the representation whose media type is the reference."""
        return self.read_any([reference])[1]

    def write(self, reference: str, data: bytes) -> None:
        """Write a single representation whose media type is the reference."""
        self.write_all([(reference, data)])
