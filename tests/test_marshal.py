"""Tests for pushing, pulling and converting values through a State."""

from __future__ import annotations

import pytest

from typed_host import HostConfig, Reflector, World
from typed_host.descdiff import DescAction
from typed_host.descriptors import (
    ClassDesc,
    EnumDesc,
    EnumItemDesc,
    FunctionDesc,
    ParameterDesc,
    PropertyDesc,
    RootDesc,
    TypeDesc,
)
from typed_host.enums import Enum, Enums
from typed_host.errors import (
    CyclicValueError,
    TypeMismatchError,
    UnknownTypeError,
    ValidationError,
    field_error,
)
from typed_host.http import HTTPHeaders, HTTPOptions, HTTPRequest, HTTPResponse
from typed_host.instance import Instance
from typed_host.reflect.base import pull_arg
from typed_host.script import UserData
from typed_host.types import (
    NIL,
    Array,
    AttrConfig,
    BinaryString,
    Bool,
    Color3,
    Color3uint8,
    Content,
    Dictionary,
    Double,
    Float,
    FormatSelector,
    Int,
    Int64,
    NumberSequenceKeypoint,
    PhysicalProperties,
    ProtectedString,
    SharedString,
    String,
    Symbol,
    Token,
    Tuple,
    Vector3,
    float32,
)


class TestPrimitives:
    """Tests for pushing and pulling primitive values."""

    def test_push_primitives(self, state):
        """Test primitives push as plain script values."""
        assert state.push(NIL) is None
        assert state.push(Bool(True)) is True
        assert state.push(Int(5)) == 5
        assert state.push(Double(2.5)) == 2.5
        assert state.push(String("hi")) == "hi"
        assert state.push(BinaryString(b"\x00\x01")) == b"\x00\x01"

    def test_pull_primitives(self, state):
        """Test script values pull into the requested type."""
        assert state.pull(None, "nil") is NIL
        assert state.pull(False, "bool") == Bool(False)
        assert state.pull(2.5, "double") == Double(2.5)
        assert state.pull(7, "number") == Double(7.0)
        assert state.pull("hi", "string") == String("hi")
        assert state.pull("hi", "BinaryString") == BinaryString(b"hi")

    def test_pull_nil_rejects_values(self, state):
        """Test only nil pulls as nil."""
        with pytest.raises(TypeMismatchError, match="nil expected, got number"):
            state.pull(0, "nil")

    def test_bool_is_not_a_number(self, state):
        """Test booleans are not accepted as numbers."""
        with pytest.raises(TypeMismatchError, match="int expected, got boolean"):
            state.pull(True, "int")
        with pytest.raises(TypeMismatchError):
            state.pull(True, "double")

    def test_float_is_lossy(self, state):
        """Test pulling a float rounds to single precision."""
        value = state.pull(0.1, "float")
        assert value == Float(0.1)
        assert value.value == float32(0.1)
        assert value.value != 0.1
        assert state.push(value) == float32(0.1)

    def test_float_overflow_is_infinite(self, state):
        """Test numbers too large for a float become infinity."""
        assert state.pull(1e300, "float").value == float("inf")

    def test_int_accepts_integral_numbers(self, state):
        """Test integral floats pull as int."""
        assert state.pull(3, "int") == Int(3)
        assert state.pull(3.0, "int") == Int(3)
        assert state.pull(2**40, "int64").value == 2**40

    def test_int_rejects_fractions(self, state):
        """Test fractional numbers do not pull as int."""
        with pytest.raises(TypeMismatchError, match="int expected, got number"):
            state.pull(3.5, "int")
        with pytest.raises(TypeMismatchError):
            state.pull(float("nan"), "int")

    def test_string_from_bytes(self, state):
        """Test bytes pull as string without losing invalid sequences."""
        value = state.pull(b"a\xff", "string")
        assert value.value == "a\udcff"
        assert state.convert(value, "BinaryString") == BinaryString(b"a\xff")

    def test_pull_opt(self, state):
        """Test pull_opt returns the default for nil."""
        assert state.pull_opt(None, "int", Int(7)) == Int(7)
        assert state.pull_opt(None, "int", None) is None
        assert state.pull_opt(4, "int", Int(7)) == Int(4)

    def test_unknown_type(self, state):
        """Test pulling into an unregistered type fails."""
        with pytest.raises(UnknownTypeError):
            state.pull(1, "NotAType")
        with pytest.raises(UnknownTypeError):
            state.push_as("NotAType", Int(1))

    def test_push_as_variant(self, state):
        """Test pushing as Variant uses the value's own type."""
        assert state.push_as("Variant", Int(3)) == 3
        assert state.push_as("Variant", String("x")) == "x"


class TestPullAnyOf:
    """Tests for pulling one of several types."""

    def test_first_match_wins(self, state):
        """Test candidates are tried in order."""
        assert state.pull_any_of(5, "int", "double") == Int(5)
        assert state.pull_any_of(5, "double", "int") == Double(5.0)

    def test_skips_mismatches(self, state):
        """Test candidates that reject the value are skipped."""
        assert state.pull_any_of(5, "string", "int") == Int(5)
        assert state.pull_any_of("5", "int", "string") == String("5")

    def test_no_match(self, state):
        """Test the error names every candidate."""
        with pytest.raises(TypeMismatchError, match="int or string expected, got boolean"):
            state.pull_any_of(True, "int", "string")

    def test_other_errors_propagate(self, state):
        """Test only type mismatches move on to the next candidate."""
        t: dict = {}
        t["self"] = t
        with pytest.raises(CyclicValueError):
            state.pull_any_of(t, "Dictionary", "nil")


class TestVariant:
    """Tests for pulling values by their shape."""

    def test_pull_variant_shapes(self, state):
        """Test each script shape maps to a domain type."""
        assert state.pull_variant(None) is NIL
        assert state.pull_variant(True) == Bool(True)
        assert state.pull_variant(1) == Int(1)
        assert state.pull_variant(1.5) == Double(1.5)
        assert state.pull_variant("a") == String("a")
        assert state.pull_variant(b"a") == BinaryString(b"a")

    def test_pull_variant_tables(self, state):
        """Test tables pull as Dictionary, Array or Tuple."""
        d = state.pull_variant({"a": 1, "b": [2.5, "x"]})
        assert isinstance(d, Dictionary)
        assert d["a"] == Int(1)
        assert isinstance(d["b"], Array)
        assert list(d["b"]) == [Double(2.5), String("x")]
        t = state.pull_variant((1, None))
        assert isinstance(t, Tuple)
        assert list(t) == [Int(1), NIL]

    def test_pull_variant_userdata(self, state):
        """Test userdata pulls as the value it carries."""
        color = Color3(1, 0, 0)
        assert state.pull_variant(state.push(color)) is color

    def test_pull_variant_rejects_objects(self, state):
        """Test values with no script shape are rejected."""
        with pytest.raises(TypeMismatchError, match="Variant expected, got object"):
            state.pull_variant(object())

    def test_push_compound(self, state):
        """Test compound values push as tables."""
        d = Dictionary({"n": Int(1), "list": Array([String("a"), Bool(False)])})
        assert state.push(d) == {"n": 1, "list": ["a", False]}
        assert state.push(Tuple([Int(1), Int(2)])) == (1, 2)


class TestCycles:
    """Tests for the cycle guard."""

    def test_cyclic_pull(self, state):
        """Test a table containing itself fails to pull."""
        t: dict = {"a": 1}
        t["self"] = t
        with pytest.raises(CyclicValueError, match="field self: table is cyclic"):
            state.pull(t, "Dictionary")

    def test_cyclic_array_pull(self, state):
        """Test a list containing itself fails to pull."""
        items: list = [1]
        items.append(items)
        with pytest.raises(CyclicValueError, match="field 2"):
            state.pull(items, "Array")

    def test_cyclic_push(self, state):
        """Test a dictionary containing itself fails to push."""
        d = Dictionary()
        d["self"] = d
        with pytest.raises(CyclicValueError, match="Dictionary is cyclic"):
            state.push(d)

    def test_shared_table_rejected(self, state):
        """Test a table reached twice in one conversion is treated as a cycle."""
        shared = {"x": 1}
        with pytest.raises(CyclicValueError):
            state.pull({"a": shared, "b": shared}, "Dictionary")

    def test_guard_cleared_after_failure(self, state):
        """Test a failed conversion does not affect the next one."""
        t: dict = {}
        t["self"] = t
        with pytest.raises(CyclicValueError):
            state.pull(t, "Dictionary")
        shared = {"x": 1}
        assert state.pull(shared, "Dictionary") == Dictionary({"x": Int(1)})
        assert state.pull(shared, "Dictionary") == Dictionary({"x": Int(1)})

    def test_independent_states(self, world):
        """Test each state owns its guard."""
        shared = {"x": 1}
        assert world.state().pull(shared, "Dictionary") == world.state().pull(
            shared, "Dictionary"
        )

    def test_mark_outside_guard(self, state):
        """Test marking requires an active guard."""
        with pytest.raises(RuntimeError):
            state.cycle_mark({})


class TestFieldErrors:
    """Tests for errors naming the field that failed."""

    def test_dictionary_field(self, state):
        """Test a bad dictionary value names its key."""
        with pytest.raises(TypeMismatchError, match="field bad: Variant expected, got object"):
            state.pull({"ok": 1, "bad": object()}, "Dictionary")

    def test_array_index(self, state):
        """Test a bad array element names its 1-based index."""
        with pytest.raises(TypeMismatchError, match="field 2: "):
            state.pull([1, object()], "Array")

    def test_non_string_key(self, state):
        """Test dictionary keys must be strings."""
        with pytest.raises(TypeMismatchError, match="string expected for key, got number"):
            state.pull({1: 2}, "Dictionary")

    def test_table_helpers(self, state):
        """Test the table helpers wrap errors with the field name."""
        with pytest.raises(TypeMismatchError, match="field URL: string expected, got number"):
            state.pull_from_table({"URL": 5}, "URL", "string")
        assert state.pull_from_table_opt({}, "URL", "string", None) is None
        assert state.pull_any_from_table_opt({"N": 2}, "N", None, "string", "int") == Int(2)

    def test_field_error_keeps_attributes(self):
        """Test wrapping keeps the error kind and its extra attributes."""
        err = ValidationError("bad value", class_name="Part", property_name="Size")
        wrapped = field_error("Size", err)
        assert isinstance(wrapped, ValidationError)
        assert str(wrapped) == "field Size: bad value"
        assert wrapped.class_name == "Part"
        assert wrapped.property_name == "Size"

    def test_argument_error_keeps_attributes(self):
        """Test argument errors name the position and keep extra attributes."""

        def pull_size(s, lv):
            raise ValidationError("size out of range", class_name="Part", property_name="Size")

        world = World(HostConfig())
        world.register_type(lambda: Reflector(name="Size", pull=pull_size))
        world.freeze()
        with pytest.raises(ValidationError, match="bad argument #2: size out of range") as info:
            pull_arg(world.state(), ("a", 5), 1, "Size")
        assert info.value.class_name == "Part"
        assert info.value.property_name == "Size"


class TestConvert:
    """Tests for coercions between types."""

    def test_same_type(self, state):
        """Test converting to the value's own type returns it."""
        value = Int(1)
        assert state.convert(value, "int") is value

    def test_numeric(self, state):
        """Test numeric coercions."""
        assert state.convert(Int(3), "float") == Float(3.0)
        assert state.convert(Double(2.0), "int") == Int(2)
        assert state.convert(Double(2.5), "int") is None
        assert state.convert(Int(4), "token") == Token(4)
        assert state.convert(Token(4), "int") == Int(4)
        assert state.convert(Float(1.5), "double") == Double(1.5)

    def test_strings(self, state):
        """Test string coercions."""
        assert state.convert(String("x"), "BinaryString") == BinaryString(b"x")
        assert state.convert(BinaryString(b"y"), "string") == String("y")
        assert state.convert(String("z"), "Content").value == "z"
        assert state.convert(Int(1), "string") is None

    def test_colors(self, state):
        """Test colors convert between float and byte components."""
        assert state.convert(Color3uint8(255, 0, 51), "Color3") == Color3(1.0, 0.0, 0.2)
        assert state.convert(Color3(1.0, 0.5, 0.0), "Color3uint8") == Color3uint8(255, 128, 0)

    def test_nil_physical_properties(self, state):
        """Test nil converts to default physical properties."""
        assert state.convert(NIL, "PhysicalProperties") == PhysicalProperties()

    def test_no_coercion(self, state):
        """Test unrelated or unknown types do not convert."""
        assert state.convert(Bool(True), "int") is None
        assert state.convert(Int(1), "NotAType") is None


class TestProperties:
    """Tests for pushing property values and typed assignment."""

    def test_exprim_boxed(self, state):
        """Test exprim types are boxed as userdata."""
        u = state.push_property(Int(5))
        assert isinstance(u, UserData)
        assert u.type_name == "int"
        assert u.value == Int(5)
        assert str(u) == "5"

    def test_plain_types_not_boxed(self, state):
        """Test other types push as usual."""
        assert state.push_property(String("a")) == "a"
        assert state.push_property(Double(1.5)) == 1.5

    def test_boxed_values_pull_back(self, state):
        """Test boxed exprims pull as their value."""
        u = state.push_property(Float(1.5))
        assert state.pull(u, "float") == Float(1.5)
        assert state.pull_variant(u) == Float(1.5)
        with pytest.raises(TypeMismatchError):
            state.pull(u, "int")

    def test_boxed_equality(self, state):
        """Test boxed exprims compare by value."""
        assert state.push_property(Int(5)) == state.push_property(Int(5))
        assert state.push_property(Int(5)) != state.push_property(Int(6))

    def test_set_typed(self, state):
        """Test typed assignment checks the value type."""

        class Target:
            count = None

        target = Target()
        state.set_typed(target, "count", "int", Int(1))
        assert target.count == Int(1)
        with pytest.raises(TypeMismatchError, match="int expected, got string"):
            state.set_typed(target, "count", "int", String("1"))

    def test_set_typed_unsupported(self, state):
        """Test types without typed assignment are rejected."""
        with pytest.raises(TypeMismatchError, match="cannot assign to Tuple"):
            state.set_typed(object(), "x", "Tuple", Tuple())


MATERIAL = Enum("Material", [("Plastic", 256), ("Wood", 512)])
PARAMETER = ParameterDesc(param_type=TypeDesc("Primitive", "int"), name="count", default="1")

ROUND_TRIP_SAMPLES = {
    "nil": lambda world: NIL,
    "bool": lambda world: Bool(True),
    "number": lambda world: Double(1.5),
    "double": lambda world: Double(-0.25),
    "float": lambda world: Float(0.5),
    "int": lambda world: Int(42),
    "int64": lambda world: Int64(2**40),
    "token": lambda world: Token(7),
    "string": lambda world: String("text"),
    "ProtectedString": lambda world: ProtectedString("print(1)"),
    "Content": lambda world: Content("rbxassetid://1"),
    "BinaryString": lambda world: BinaryString(b"\x00\xff"),
    "SharedString": lambda world: SharedString(b"shared"),
    "Variant": lambda world: Double(2.5),
    "Dictionary": lambda world: Dictionary({"a": Int(1), "b": Array([String("x")])}),
    "Array": lambda world: Array([Bool(False), Double(0.5), NIL]),
    "Tuple": lambda world: Tuple([Int(1), String("a")]),
    "Symbol": lambda world: Symbol("Desc"),
    "AttrConfig": lambda world: AttrConfig("Attributes"),
    "FormatSelector": lambda world: FormatSelector("json", Dictionary({"Indent": String("")})),
    "Enums": lambda world: Enums([MATERIAL]),
    "Enum": lambda world: MATERIAL,
    "EnumItem": lambda world: MATERIAL.item("Wood"),
    "RootDesc": lambda world: RootDesc(),
    "ClassDesc": lambda world: ClassDesc(name="Part", superclass="BasePart"),
    "PropertyDesc": lambda world: PropertyDesc(
        name="Size", value_type=TypeDesc("DataType", "Vector3")
    ),
    "FunctionDesc": lambda world: FunctionDesc(name="Resize", parameters=[PARAMETER]),
    "EnumDesc": lambda world: EnumDesc(name="Material"),
    "EnumItemDesc": lambda world: EnumItemDesc(name="Wood", value=512, index=1),
    "TypeDesc": lambda world: TypeDesc("Class", "Part"),
    "ParameterDesc": lambda world: PARAMETER,
    "DescAction": lambda world: DescAction("Change", "Property", "Part", "Size", {"Tags": []}),
    "Color3": lambda world: Color3(1, 0.5, 0),
    "Color3uint8": lambda world: Color3uint8(255, 128, 0),
    "Vector3": lambda world: Vector3(1, 2, 3),
    "NumberSequenceKeypoint": lambda world: NumberSequenceKeypoint(0.5, 1.0, 0.25),
    "PhysicalProperties": lambda world: PhysicalProperties(True, 0.7, 0.3, 0.5, 1.0, 1.0),
    "Instance": lambda world: Instance("Part"),
    "HTTPHeaders": lambda world: HTTPHeaders({"accept": ["a", "b"]}),
    "HTTPOptions": lambda world: HTTPOptions(
        url="https://example.test",
        method="POST",
        response_format=FormatSelector("txt"),
        body=String("x"),
    ),
    "HTTPResponse": lambda world: HTTPResponse(True, 200, "200 OK", body=Double(1.0)),
    "HTTPRequest": lambda world: HTTPRequest(world, HTTPOptions(url="https://example.test")),
}


class TestRoundTrip:
    """Tests that pulling a pushed value gives it back."""

    def test_every_type_has_a_sample(self, world):
        """Test the samples cover every registered type."""
        assert set(ROUND_TRIP_SAMPLES) == set(world.registry.list_types())

    @pytest.mark.parametrize("type_name", sorted(ROUND_TRIP_SAMPLES))
    def test_round_trip(self, world, type_name):
        """Test pull(push(v), T) == v for a sample of each type."""
        state = world.state()
        value = ROUND_TRIP_SAMPLES[type_name](world)
        pulled = state.pull(state.push_as(type_name, value), type_name)
        assert pulled == value
        assert type(pulled) is type(value)

    def test_default_physical_properties(self, state):
        """Test default physical properties travel as nil."""
        assert state.push(PhysicalProperties()) is None
        assert state.pull(None, "PhysicalProperties") == PhysicalProperties()

    @pytest.mark.parametrize(
        "element, expected",
        [
            (Int64(5), Int(5)),
            (Token(5), Int(5)),
            (Float(0.5), Double(0.5)),
            (ProtectedString("p"), String("p")),
            (Content("c"), String("c")),
            (SharedString(b"s"), BinaryString(b"s")),
        ],
    )
    def test_lossy_container_elements(self, state, element, expected):
        """Test elements of these types come back as their base type."""
        pulled = state.pull(state.push(Dictionary({"k": element})), "Dictionary")
        assert pulled["k"] == expected
        assert type(pulled["k"]) is type(expected)
        pulled = state.pull(state.push(Array([element])), "Array")
        assert pulled[0] == expected
        assert type(pulled[0]) is type(expected)

    @pytest.mark.parametrize(
        "element",
        [NIL, Bool(True), Int(3), Double(0.25), String("s"), BinaryString(b"b"), Vector3(1, 2, 3)],
    )
    def test_exact_container_elements(self, state, element):
        """Test elements of these types keep their type inside containers."""
        pulled = state.pull(state.push(Array([element])), "Array")
        assert pulled == Array([element])
        assert type(pulled[0]) is type(element)
