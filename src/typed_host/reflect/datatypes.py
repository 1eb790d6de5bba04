"""Reflectors of structured data types."""

from __future__ import annotations

import colorsys
from typing import TYPE_CHECKING, Any

from typed_host.dump import Function, MultiFunction, Parameter, Property as PropertyDump, TypeDef
from typed_host.errors import TypeMismatchError
from typed_host.reflect.base import (
    expect_args,
    pull_arg,
    pull_arg_opt,
    pull_userdata,
    push_userdata,
    value_metatable,
)
from typed_host.reflector import Constructor, Flags, Method, Property, Reflector, set_attribute_to
from typed_host.types import (
    NIL,
    Bool,
    Color3,
    Color3uint8,
    Double,
    Float,
    Int,
    NumberSequenceKeypoint,
    PhysicalProperties,
    Value,
    Vector3,
)

if TYPE_CHECKING:
    from typed_host.state import State


def _number(s: State, args: tuple[Any, ...], index: int, default: float = 0.0) -> float:
    return pull_arg_opt(s, args, index, "double", Double(default)).value


def _float_property(attr: str) -> Property:
    return Property(
        get=lambda s, v: s.push(Float(getattr(v, attr))),
        dump=lambda: PropertyDump(value_type="float", read_only=True),
    )


# ---- Color3 ----


def _color3_from_rgb(s: State, *args: Any) -> Any:
    r, g, b = (int(_number(s, args, i)) for i in range(3))
    return s.push(Color3(r / 255, g / 255, b / 255))


def _color3_from_hsv(s: State, *args: Any) -> Any:
    h, sat, v = (_number(s, args, i) for i in range(3))
    return s.push(Color3(*colorsys.hsv_to_rgb(h, sat, v)))


def _color3_convert(v: Value) -> Value | None:
    if isinstance(v, Color3uint8):
        return v.to_color3()
    return None


def _color3_lerp(s: State, v: Color3, *args: Any) -> Any:
    goal: Color3 = pull_arg(s, args, 0, "Color3")
    alpha = pull_arg(s, args, 1, "double").value
    return s.push(
        Color3(
            v.r + (goal.r - v.r) * alpha,
            v.g + (goal.g - v.g) * alpha,
            v.b + (goal.b - v.b) * alpha,
        )
    )


def _color3_to_hsv(s: State, v: Color3, *args: Any) -> Any:
    return tuple(s.push(Double(c)) for c in colorsys.rgb_to_hsv(v.r, v.g, v.b))


def color3() -> Reflector:
    return Reflector(
        name="Color3",
        push=push_userdata("Color3"),
        pull=pull_userdata("Color3", Color3),
        convert_from=_color3_convert,
        set_to=set_attribute_to(Color3),
        properties={
            "R": _float_property("r"),
            "G": _float_property("g"),
            "B": _float_property("b"),
        },
        methods={
            "Lerp": Method(
                _color3_lerp,
                dump=lambda: Function(
                    parameters=[Parameter("goal", "Color3"), Parameter("alpha", "float")],
                    returns=[Parameter("", "Color3")],
                ),
            ),
            "ToHSV": Method(
                _color3_to_hsv,
                dump=lambda: Function(
                    returns=[Parameter("h", "float"), Parameter("s", "float"), Parameter("v", "float")],
                ),
            ),
        },
        constructors={
            "new": Constructor(
                lambda s, *args: s.push(Color3(*(_number(s, args, i) for i in range(3)))),
                dump=lambda: MultiFunction(
                    signatures=[
                        Function(returns=[Parameter("", "Color3")]),
                        Function(
                            parameters=[
                                Parameter("r", "float"),
                                Parameter("g", "float"),
                                Parameter("b", "float"),
                            ],
                            returns=[Parameter("", "Color3")],
                        ),
                    ]
                ),
            ),
            "fromRGB": Constructor(_color3_from_rgb),
            "fromHSV": Constructor(_color3_from_hsv),
        },
        metatable=value_metatable(),
        types=[color3uint8],
        dump=lambda: TypeDef(summary="A color with components nominally between 0 and 1."),
    )


# ---- Color3uint8 ----


def _color3uint8_convert(v: Value) -> Value | None:
    if isinstance(v, Color3):
        return Color3uint8.from_color3(v)
    return None


def _int_property(attr: str) -> Property:
    return Property(
        get=lambda s, v: s.push(Int(getattr(v, attr))),
        dump=lambda: PropertyDump(value_type="int", read_only=True),
    )


def color3uint8() -> Reflector:
    return Reflector(
        name="Color3uint8",
        push=push_userdata("Color3uint8"),
        pull=pull_userdata("Color3uint8", Color3uint8),
        convert_from=_color3uint8_convert,
        set_to=set_attribute_to(Color3uint8),
        flags=Flags.EXPRIM,
        properties={
            "R": _int_property("r"),
            "G": _int_property("g"),
            "B": _int_property("b"),
        },
        metatable=value_metatable(),
        dump=lambda: TypeDef(underlying="Color3", summary="A color with byte components."),
    )


# ---- Vector3 ----


def _vector3_op(op: str):
    def handler(s: State, v: Vector3, lv: Any) -> Any:
        other = s.pull_any_of(lv, "number", "Vector3")
        operand = other.value if isinstance(other, Double) else other
        if op == "mul":
            return s.push(v * operand)
        return s.push(v / operand)

    return handler


def _vector3_fuzzy_eq(s: State, v: Vector3, *args: Any) -> Any:
    op: Vector3 = pull_arg(s, args, 0, "Vector3")
    epsilon = pull_arg_opt(s, args, 1, "float", Float(1e-5)).value
    equal = (
        abs(v.x - op.x) <= epsilon and abs(v.y - op.y) <= epsilon and abs(v.z - op.z) <= epsilon
    )
    return s.push(Bool(equal))


def vector3() -> Reflector:
    vector_param = [Parameter("op", "Vector3")]
    return Reflector(
        name="Vector3",
        push=push_userdata("Vector3"),
        pull=pull_userdata("Vector3", Vector3),
        set_to=set_attribute_to(Vector3),
        properties={
            "X": _float_property("x"),
            "Y": _float_property("y"),
            "Z": _float_property("z"),
            "Magnitude": _float_property("magnitude"),
            "Unit": Property(
                get=lambda s, v: s.push(v.unit),
                dump=lambda: PropertyDump(value_type="Vector3", read_only=True),
            ),
        },
        methods={
            "Lerp": Method(
                lambda s, v, *args: s.push(
                    v.lerp(pull_arg(s, args, 0, "Vector3"), pull_arg(s, args, 1, "float").value)
                ),
                dump=lambda: Function(
                    parameters=[Parameter("goal", "Vector3"), Parameter("alpha", "float")],
                    returns=[Parameter("", "Vector3")],
                ),
            ),
            "Dot": Method(
                lambda s, v, *args: s.push(Float(v.dot(pull_arg(s, args, 0, "Vector3")))),
                dump=lambda: Function(parameters=vector_param, returns=[Parameter("", "float")]),
            ),
            "Cross": Method(
                lambda s, v, *args: s.push(v.cross(pull_arg(s, args, 0, "Vector3"))),
                dump=lambda: Function(parameters=vector_param, returns=[Parameter("", "Vector3")]),
            ),
            "FuzzyEq": Method(
                _vector3_fuzzy_eq,
                dump=lambda: Function(
                    parameters=[Parameter("op", "Vector3"), Parameter("epsilon", "float", "1e-5")],
                    returns=[Parameter("", "bool")],
                ),
            ),
        },
        constructors={
            "new": Constructor(
                lambda s, *args: s.push(Vector3(*(_number(s, args, i) for i in range(3)))),
                dump=lambda: MultiFunction(
                    signatures=[
                        Function(
                            parameters=[
                                Parameter("x", "float", "0"),
                                Parameter("y", "float", "0"),
                                Parameter("z", "float", "0"),
                            ],
                            returns=[Parameter("", "Vector3")],
                        )
                    ]
                ),
            ),
        },
        metatable={
            **value_metatable(),
            "__add": lambda s, v, lv: s.push(v + s.pull(lv, "Vector3")),
            "__sub": lambda s, v, lv: s.push(v - s.pull(lv, "Vector3")),
            "__mul": _vector3_op("mul"),
            "__div": _vector3_op("div"),
            "__unm": lambda s, v: s.push(-v),
        },
        dump=lambda: TypeDef(summary="A vector with three 32-bit float components."),
    )


# ---- NumberSequenceKeypoint ----


def _keypoint_new(s: State, *args: Any) -> Any:
    if len(args) not in (2, 3):
        raise TypeMismatchError("expected 2 or 3 arguments")
    time = pull_arg(s, args, 0, "float").value
    value = pull_arg(s, args, 1, "float").value
    envelope = pull_arg_opt(s, args, 2, "float", Float(0)).value
    return s.push(NumberSequenceKeypoint(time, value, envelope))


def number_sequence_keypoint() -> Reflector:
    return Reflector(
        name="NumberSequenceKeypoint",
        push=push_userdata("NumberSequenceKeypoint"),
        pull=pull_userdata("NumberSequenceKeypoint", NumberSequenceKeypoint),
        properties={
            "Time": _float_property("time"),
            "Value": _float_property("value"),
            "Envelope": _float_property("envelope"),
        },
        constructors={
            "new": Constructor(
                _keypoint_new,
                dump=lambda: MultiFunction(
                    signatures=[
                        Function(
                            parameters=[Parameter("time", "float"), Parameter("value", "float")],
                            returns=[Parameter("", "NumberSequenceKeypoint")],
                        ),
                        Function(
                            parameters=[
                                Parameter("time", "float"),
                                Parameter("value", "float"),
                                Parameter("envelope", "float"),
                            ],
                            returns=[Parameter("", "NumberSequenceKeypoint")],
                        ),
                    ]
                ),
            ),
        },
        metatable=value_metatable(),
    )


# ---- PhysicalProperties ----


def _push_physical(s: State, v: PhysicalProperties) -> Any:
    if not v.custom_physics:
        return None
    return s.userdata_of(v, "PhysicalProperties")


def _pull_physical(s: State, lv: Any) -> PhysicalProperties:
    if lv is None:
        return PhysicalProperties()
    return pull_userdata("PhysicalProperties", PhysicalProperties)(s, lv)


def _physical_convert(v: Value) -> Value | None:
    if v is NIL:
        return PhysicalProperties()
    return None


def _physical_new(s: State, *args: Any) -> Any:
    expect_args("PhysicalProperties.new", args, 3, 5)
    values = [pull_arg(s, args, i, "float").value for i in range(len(args))]
    if len(values) == 3:
        values += [1.0, 1.0]
    return s.push(PhysicalProperties(True, *values))


def physical_properties() -> Reflector:
    return Reflector(
        name="PhysicalProperties",
        push=_push_physical,
        pull=_pull_physical,
        convert_from=_physical_convert,
        set_to=set_attribute_to(PhysicalProperties),
        properties={
            "Density": _float_property("density"),
            "Friction": _float_property("friction"),
            "Elasticity": _float_property("elasticity"),
            "FrictionWeight": _float_property("friction_weight"),
            "ElasticityWeight": _float_property("elasticity_weight"),
        },
        constructors={"new": Constructor(_physical_new)},
        metatable=value_metatable(),
        dump=lambda: TypeDef(
            summary="Physical material settings. Pushed as nil when default physics apply."
        ),
    )
