"""Typed Host - A reflection engine between a script runtime and a typed instance tree."""

from typed_host.config import HostConfig
from typed_host.descriptors import RootDesc
from typed_host.errors import (
    CyclicValueError,
    FormatUnsupportedError,
    HostError,
    SourceFailureError,
    TypeMismatchError,
    UnknownTypeError,
    UnresolvedReferenceError,
    ValidationError,
)
from typed_host.format import Format, FormatOptions
from typed_host.instance import Instance, new_data_model
from typed_host.parsing import parse_desc
from typed_host.reflector import Flags, Reflector, Registry
from typed_host.script import UserData
from typed_host.sources import Source
from typed_host.state import State
from typed_host.types import FormatSelector
from typed_host.world import World

__all__ = [
    # Main API
    "World",
    "HostConfig",
    "State",
    "UserData",
    # Reflection
    "Reflector",
    "Registry",
    "Flags",
    # Instances
    "Instance",
    "new_data_model",
    "RootDesc",
    "parse_desc",
    # Formats and sources
    "Format",
    "FormatOptions",
    "FormatSelector",
    "Source",
    # Errors
    "HostError",
    "UnknownTypeError",
    "TypeMismatchError",
    "CyclicValueError",
    "ValidationError",
    "UnresolvedReferenceError",
    "FormatUnsupportedError",
    "SourceFailureError",
]

__version__ = "0.1.0"
