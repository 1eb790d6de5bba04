"""Script-side values.

Scripts see plain Python values (None, bool, int, float, str, bytes, dict,
list, tuple, callables) plus UserData, which boxes a domain value together
with the name of the type whose reflector defines its behavior.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from typed_host.types import Value
    from typed_host.world import World


class UserData:
    """A domain value exposed to scripts as an opaque, typed object.

    Item access, item assignment, and ``call`` dispatch through the type's
    reflector, each as its own top-level script call.
    """

    __slots__ = ("value", "type_name", "world")

    def __init__(self, value: Value, type_name: str, world: World) -> None:
        self.value = value
        self.type_name = type_name
        self.world = world

    def __getitem__(self, key: Any) -> Any:
        return self.world.state().index(self, key)

    def __setitem__(self, key: Any, value: Any) -> None:
        self.world.state().newindex(self, key, value)

    def call(self, method: str, *args: Any) -> Any:
        """Call a method with this value as the receiver."""
        return self.world.state().call_method(self, method, *args)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, UserData):
            return NotImplemented
        return self.world.state().equal(self, other)

    def __hash__(self) -> int:
        try:
            return hash((self.type_name, self.value))
        except TypeError:
            return hash((self.type_name, id(self.value)))

    def __str__(self) -> str:
        return self.world.state().tostring(self)

    def __repr__(self) -> str:
        return f"<{self.type_name} userdata: {self.value!r}>"


def script_type(v: Any) -> str:
    """Return the script-level type name of a script value."""
    if v is None:
        return "nil"
    if isinstance(v, bool):
        return "boolean"
    if isinstance(v, (int, float)):
        return "number"
    if isinstance(v, (str, bytes)):
        return "string"
    if isinstance(v, (dict, list, tuple)):
        return "table"
    if isinstance(v, UserData):
        return "userdata"
    if callable(v):
        return "function"
    return type(v).__name__
