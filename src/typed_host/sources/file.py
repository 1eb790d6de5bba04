"""Filesystem source."""

from __future__ import annotations

import logging
from pathlib import Path

from typed_host.errors import SourceFailureError
from typed_host.sources.base import Source

logger = logging.getLogger(__name__)


class FileSource(Source):
    """Reads and writes files. References are filesystem paths."""

    name = "file"

    def read(self, reference: str) -> bytes:
        path = Path(reference)
        try:
            data = path.read_bytes()
        except OSError as err:
            raise SourceFailureError(f"read {reference}: {err.strerror or err}") from err
        logger.debug("read %d bytes from %s", len(data), path)
        return data

    def write(self, reference: str, data: bytes) -> None:
        path = Path(reference)
        try:
            path.write_bytes(data)
        except OSError as err:
            raise SourceFailureError(f"write {reference}: {err.strerror or err}") from err
        logger.debug("wrote %d bytes to %s", len(data), path)
