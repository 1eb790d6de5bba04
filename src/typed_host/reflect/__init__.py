"""Built-in reflectors.

Each reflector is made by a factory function. Factories listed by
``all_reflectors`` are registered in order; the reflectors a type depends on
are registered with it, so dependencies listed here precede their users.
"""

from __future__ import annotations

from typing import Callable

from typed_host.reflect import containers, datatypes, descriptors, enums, http, instance, symbols
from typed_host.reflect.primitives import all_primitives
from typed_host.reflect.selector import format_selector
from typed_host.reflector import Reflector


def all_reflectors() -> list[Callable[[], Reflector]]:
    return [
        *all_primitives(),
        containers.dictionary,
        containers.array,
        containers.tuple_,
        symbols.symbol,
        symbols.attr_config,
        format_selector,
        # Registers Enum and EnumItem.
        enums.enums,
        # Registers every descriptor type.
        descriptors.root_desc,
        # Registers Color3uint8.
        datatypes.color3,
        datatypes.vector3,
        datatypes.number_sequence_keypoint,
        datatypes.physical_properties,
        instance.instance,
        # Registers HTTPHeaders, HTTPOptions and HTTPResponse.
        http.http_request,
    ]


__all__ = ["all_reflectors"]
