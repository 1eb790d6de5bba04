"""The World holds everything shared by the script calls of one host.

Reflectors, formats and sources are registered during an explicit
initialization phase, after which the registries are frozen. Each top-level
script call then works through its own State created by ``World.state``.
"""

from __future__ import annotations

import logging
from typing import Callable

import httpx

from typed_host.config import HostConfig
from typed_host.descriptors import RootDesc
from typed_host.errors import SourceFailureError
from typed_host.format import Format, FormatRegistry
from typed_host.instance import Instance
from typed_host.reflector import Reflector, Registry
from typed_host.sources.base import Source
from typed_host.sources.clipboard import ClipboardSource, MemoryClipboard
from typed_host.sources.file import FileSource
from typed_host.sources.http import HTTPSource
from typed_host.state import State
from typed_host.types import AttrConfig

logger = logging.getLogger(__name__)


class World:
    """Registries and global settings shared by all States."""

    def __init__(self, config: HostConfig | None = None) -> None:
        self.config = config or HostConfig()
        self.registry = Registry()
        self.formats = FormatRegistry()
        self.sources: dict[str, Source] = {}
        # Descriptor used by instances that neither have nor block one.
        self.global_desc: RootDesc | None = None
        self.global_attr_config: AttrConfig | None = None
        self._http_client: httpx.Client | None = None

    @classmethod
    def default(cls, config: HostConfig | None = None) -> World:
        """Create a world with every built-in type, format and source, then freeze it."""
        from typed_host.formats import all_formats
        from typed_host.reflect import all_reflectors

        world = cls(config)
        for reflector in all_reflectors():
            world.register_type(reflector)
        for format in all_formats():
            world.register_format(format)
        world.register_source(FileSource())
        world.register_source(ClipboardSource(world.config.clipboard or MemoryClipboard()))
        world.register_source(HTTPSource(world.http_client))
        world.freeze()
        logger.debug(
            "world initialized: %d types, %d formats, %d sources",
            len(world.registry),
            len(world.formats),
            len(world.sources),
        )
        return world

    # ---- Initialization ----

    def register_type(self, factory: Callable[[], Reflector]) -> None:
        """Register the reflector made by factory, and any it depends on.

        Dependencies that are already registered are skipped; registering the
        reflector itself a second time is an error.
        """
        reflector = factory()
        for dependency in reflector.types:
            self._register_dependency(dependency, set())
        self.registry.register(reflector)

    def _register_dependency(self, factory: Callable[[], Reflector], seen: set[str]) -> None:
        reflector = factory()
        if reflector.name in self.registry or reflector.name in seen:
            return
        seen.add(reflector.name)
        for dependency in reflector.types:
            self._register_dependency(dependency, seen)
        if reflector.name not in self.registry:
            self.registry.register(reflector)

    def register_format(self, format: Format) -> None:
        self.formats.register(format)

    def register_source(self, source: Source) -> None:
        if self.registry.frozen:
            raise RuntimeError(f"Cannot register source '{source.name}': world is frozen")
        if source.name in self.sources:
            raise ValueError(f"Source '{source.name}' is already registered")
        self.sources[source.name] = source

    def freeze(self) -> None:
        self.registry.freeze()
        self.formats.freeze()

    # ---- Access ----

    def state(self) -> State:
        """Create the State for a new top-level script call."""
        return State(self)

    def source(self, name: str) -> Source:
        source = self.sources.get(name)
        if source is None:
            raise SourceFailureError(f"unknown source {name!r}")
        return source

    @property
    def http_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(
                timeout=self.config.http_timeout,
                headers={"User-Agent": self.config.http_user_agent},
                transport=self.config.http_transport,
            )
        return self._http_client

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def desc(self, inst: Instance | None) -> RootDesc | None:
        """Return the descriptor that applies to inst.

        An instance's own or inherited descriptor applies first. If none is
        found and no block was reached, the global descriptor applies.
        """
        if inst is None:
            return self.global_desc
        desc, blocked = inst.desc()
        if blocked:
            return None
        return desc if desc is not None else self.global_desc

    def attr_config(self, inst: Instance | None) -> AttrConfig | None:
        """Return the attribute configuration that applies to inst."""
        if inst is None:
            return self.global_attr_config
        config, blocked = inst.attr_config()
        if blocked:
            return None
        return config if config is not None else self.global_attr_config

    def attribute_property(self, inst: Instance) -> str:
        """Name of the property that stores the attributes of inst."""
        config = self.attr_config(inst)
        if config is not None and config.property:
            return config.property
        return self.config.attribute_property
