"""Domain value types for the typed_host library.

Every domain value reports its type name through ``type()``. The name is the
key used to find the value's Reflector in the registry.
"""

from __future__ import annotations

import math
import struct
from dataclasses import dataclass, field
from typing import Any, ClassVar


def float32(x: float) -> float:
    """Round a Python float to the nearest 32-bit float."""
    try:
        return struct.unpack("<f", struct.pack("<f", x))[0]
    except OverflowError:
        return math.copysign(math.inf, x)


class Value:
    """Base class for all domain values."""

    type_name: ClassVar[str] = ""

    # Whether the value may be stored directly as an instance property.
    is_property_value: ClassVar[bool] = False

    def type(self) -> str:
        """Return the name of the value's type."""
        return self.type_name


class Intlike:
    """Capability of values that have an exact integer representation."""

    def intlike(self) -> int:
        raise NotImplementedError


class Numberlike:
    """Capability of values that have a floating-point representation."""

    def numberlike(self) -> float:
        raise NotImplementedError


class Stringlike:
    """Capability of values that have a string representation.

    ``stringlike`` returns text and ``byteslike`` returns raw bytes. Binary
    values decode with ``surrogateescape`` so that the two views convert
    into each other without loss.
    """

    def stringlike(self) -> str:
        raise NotImplementedError

    def byteslike(self) -> bytes:
        return self.stringlike().encode("utf-8", "surrogateescape")


class NilType(Value):
    """The nil value. Use the ``NIL`` singleton."""

    type_name = "nil"

    _instance: ClassVar[NilType | None] = None

    def __new__(cls) -> NilType:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NIL"

    def __bool__(self) -> bool:
        return False


NIL = NilType()


# ---- Primitives ----


@dataclass(frozen=True)
class Bool(Value):
    type_name = "bool"
    is_property_value = True

    value: bool

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Double(Value, Numberlike):
    """64-bit float. This is also the value behind the script "number" type."""

    type_name = "double"
    is_property_value = True

    value: float

    def numberlike(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return repr(float(self.value))


@dataclass(frozen=True)
class Float(Value, Numberlike):
    """32-bit float; the stored value is rounded on construction."""

    type_name = "float"
    is_property_value = True

    value: float

    def __post_init__(self) -> None:
        object.__setattr__(self, "value", float32(float(self.value)))

    def numberlike(self) -> float:
        return self.value

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class Int(Value, Intlike, Numberlike):
    type_name = "int"
    is_property_value = True

    value: int

    def intlike(self) -> int:
        return self.value

    def numberlike(self) -> float:
        return float(self.value)

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Int64(Int):
    type_name = "int64"


@dataclass(frozen=True)
class Token(Value, Intlike):
    """Integer value of an enum item as stored in a property."""

    type_name = "token"
    is_property_value = True

    value: int

    def intlike(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class String(Value, Stringlike):
    type_name = "string"
    is_property_value = True

    value: str

    def stringlike(self) -> str:
        return self.value

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ProtectedString(String):
    type_name = "ProtectedString"


@dataclass(frozen=True)
class Content(String):
    type_name = "Content"


@dataclass(frozen=True)
class BinaryString(Value, Stringlike):
    type_name = "BinaryString"
    is_property_value = True

    value: bytes

    def stringlike(self) -> str:
        return self.value.decode("utf-8", "surrogateescape")

    def byteslike(self) -> bytes:
        return self.value


@dataclass(frozen=True)
class SharedString(BinaryString):
    type_name = "SharedString"


# ---- Structured data types ----


@dataclass(frozen=True)
class Color3(Value):
    """Color with float components, nominally in [0, 1]."""

    type_name = "Color3"
    is_property_value = True

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0

    def __str__(self) -> str:
        return f"{self.r:g}, {self.g:g}, {self.b:g}"


@dataclass(frozen=True)
class Color3uint8(Value):
    """Color with byte components."""

    type_name = "Color3uint8"
    is_property_value = True

    r: int = 0
    g: int = 0
    b: int = 0

    def __post_init__(self) -> None:
        for name in ("r", "g", "b"):
            component = getattr(self, name)
            if not 0 <= component <= 255:
                raise ValueError(f"component {name} out of range: {component}")

    @classmethod
    def from_color3(cls, c: Color3) -> Color3uint8:
        def clamp(x: float) -> int:
            return int(round(min(max(x, 0.0), 1.0) * 255))

        return cls(clamp(c.r), clamp(c.g), clamp(c.b))

    def to_color3(self) -> Color3:
        return Color3(self.r / 255, self.g / 255, self.b / 255)

    def __str__(self) -> str:
        return f"{self.r}, {self.g}, {self.b}"


@dataclass(frozen=True)
class Vector3(Value):
    type_name = "Vector3"
    is_property_value = True

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "x", float32(float(self.x)))
        object.__setattr__(self, "y", float32(float(self.y)))
        object.__setattr__(self, "z", float32(float(self.z)))

    @property
    def magnitude(self) -> float:
        return math.sqrt(self.x * self.x + self.y * self.y + self.z * self.z)

    @property
    def unit(self) -> Vector3:
        m = self.magnitude
        if m == 0:
            return Vector3(math.nan, math.nan, math.nan)
        return Vector3(self.x / m, self.y / m, self.z / m)

    def dot(self, op: Vector3) -> float:
        return self.x * op.x + self.y * op.y + self.z * op.z

    def cross(self, op: Vector3) -> Vector3:
        return Vector3(
            self.y * op.z - self.z * op.y,
            self.z * op.x - self.x * op.z,
            self.x * op.y - self.y * op.x,
        )

    def lerp(self, goal: Vector3, alpha: float) -> Vector3:
        return Vector3(
            self.x + (goal.x - self.x) * alpha,
            self.y + (goal.y - self.y) * alpha,
            self.z + (goal.z - self.z) * alpha,
        )

    def __add__(self, op: Vector3) -> Vector3:
        return Vector3(self.x + op.x, self.y + op.y, self.z + op.z)

    def __sub__(self, op: Vector3) -> Vector3:
        return Vector3(self.x - op.x, self.y - op.y, self.z - op.z)

    def __mul__(self, op: Vector3 | float) -> Vector3:
        if isinstance(op, Vector3):
            return Vector3(self.x * op.x, self.y * op.y, self.z * op.z)
        return Vector3(self.x * op, self.y * op, self.z * op)

    def __truediv__(self, op: Vector3 | float) -> Vector3:
        if isinstance(op, Vector3):
            return Vector3(self.x / op.x, self.y / op.y, self.z / op.z)
        return Vector3(self.x / op, self.y / op, self.z / op)

    def __neg__(self) -> Vector3:
        return Vector3(-self.x, -self.y, -self.z)

    def __str__(self) -> str:
        return f"{self.x:g}, {self.y:g}, {self.z:g}"


@dataclass(frozen=True)
class NumberSequenceKeypoint(Value):
    type_name = "NumberSequenceKeypoint"

    time: float
    value: float
    envelope: float = 0.0

    def __post_init__(self) -> None:
        for name in ("time", "value", "envelope"):
            object.__setattr__(self, name, float32(float(getattr(self, name))))

    def __str__(self) -> str:
        return f"{self.time:g} {self.value:g} {self.envelope:g}"


@dataclass(frozen=True)
class PhysicalProperties(Value):
    """Physical material settings; ``custom_physics`` False means defaults."""

    type_name = "PhysicalProperties"
    is_property_value = True

    custom_physics: bool = False
    density: float = 0.0
    friction: float = 0.0
    elasticity: float = 0.0
    friction_weight: float = 0.0
    elasticity_weight: float = 0.0

    def __str__(self) -> str:
        if not self.custom_physics:
            return "nil"
        return (
            f"{self.density:g}, {self.friction:g}, {self.elasticity:g}, "
            f"{self.friction_weight:g}, {self.elasticity_weight:g}"
        )


@dataclass(frozen=True)
class Symbol(Value):
    """A unique key used to reach structural members of a value."""

    type_name = "Symbol"

    name: str

    def __str__(self) -> str:
        return f"Symbol({self.name})"


@dataclass
class AttrConfig(Value):
    """Configures which property stores an instance's attributes."""

    type_name = "AttrConfig"

    property: str = ""


# ---- Containers ----


class Dictionary(dict, Value):
    """Mapping of string keys to domain values."""

    type_name = "Dictionary"

    def __repr__(self) -> str:
        return f"Dictionary({dict.__repr__(self)})"


class Array(list, Value):
    """Sequence of domain values."""

    type_name = "Array"

    def __repr__(self) -> str:
        return f"Array({list.__repr__(self)})"


class Tuple(list, Value):
    """Multiple values passed or returned together."""

    type_name = "Tuple"

    def __repr__(self) -> str:
        return f"Tuple({list.__repr__(self)})"


@dataclass
class FormatSelector(Value):
    """Names a format and carries options for configuring it."""

    type_name = "FormatSelector"

    format: str
    options: Dictionary = field(default_factory=Dictionary)

    def value_of(self, option: str) -> Value | None:
        """Return the value of an option, or None if it is not set."""
        return self.options.get(option)


def is_property_value(v: Any) -> bool:
    """Check if a value may be stored as an instance property."""
    return isinstance(v, Value) and v.is_property_value
