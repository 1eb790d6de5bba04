"""Sources that resolve references to bytes."""

from typed_host.sources.base import MultiSource, Source
from typed_host.sources.clipboard import ClipboardBackend, ClipboardSource, MemoryClipboard
from typed_host.sources.file import FileSource
from typed_host.sources.http import HTTPSource

__all__ = [
    "ClipboardBackend",
    "ClipboardSource",
    "FileSource",
    "HTTPSource",
    "MemoryClipboard",
    "MultiSource",
    "Source",
]
