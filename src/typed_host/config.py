"""Host configuration."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import httpx

    from typed_host.sources.clipboard import ClipboardBackend


DEFAULT_ATTRIBUTE_PROPERTY = "AttributesSerialize"


@dataclass
class HostConfig:
    """Settings shared by every State created from a World."""

    # Property that stores serialized attributes when no AttrConfig applies.
    attribute_property: str = DEFAULT_ATTRIBUTE_PROPERTY
    http_timeout: float = 30.0
    http_user_agent: str = "typed_host/0.1.0"
    # Transport for the HTTP client; None uses the default network transport.
    http_transport: httpx.BaseTransport | None = field(default=None, repr=False)
    # Clipboard backend; None keeps clipboard content in memory.
    clipboard: ClipboardBackend | None = field(default=None, repr=False)
