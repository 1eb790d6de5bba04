"""Tests for descriptor tables, the descriptor DSL, and descriptor reflectors."""

from __future__ import annotations

import json

import pytest

from typed_host import parse_desc
from typed_host.descriptors import (
    ClassDesc,
    EnumDesc,
    EnumItemDesc,
    FunctionDesc,
    ParameterDesc,
    PropertyDesc,
    RootDesc,
    TypeCategory,
    TypeDesc,
)
from typed_host.errors import TypeMismatchError, ValidationError
from typed_host.formats.desc_json import desc_from_json, desc_to_json
from typed_host.parsing.desc_lexer import DescLexer


class TestDescLexer:
    """Tests for the descriptor DSL lexer."""

    @pytest.fixture
    def lexer(self):
        lexer = DescLexer()
        lexer.build()
        return lexer

    def test_keywords(self, lexer):
        """Test keywords are distinguished from identifiers."""
        tokens = lexer.tokenize("class enum function Class")
        assert [t.type for t in tokens] == ["CLASS", "ENUM", "FUNCTION", "IDENTIFIER"]

    def test_arrow_and_negative_integer(self, lexer):
        """Test "->" and negative integers are lexed separately."""
        tokens = lexer.tokenize("-> -12")
        assert [(t.type, t.value) for t in tokens] == [("ARROW", "->"), ("INTEGER", -12)]

    def test_comments_ignored(self, lexer):
        """Test comments run to the end of the line."""
        tokens = lexer.tokenize("a # comment\nb")
        assert [t.value for t in tokens] == ["a", "b"]
        assert tokens[1].lineno == 2

    def test_string(self, lexer):
        """Test quoted strings."""
        tokens = lexer.tokenize('"a\\"b"')
        assert tokens[0].type == "STRING"
        assert tokens[0].value == 'a"b'

    def test_illegal_character(self, lexer):
        """Test unknown characters are rejected."""
        with pytest.raises(SyntaxError, match="Illegal character '@'"):
            lexer.tokenize("@")


class TestDescParser:
    """Tests for parsing the descriptor DSL."""

    def test_classes(self, desc):
        """Test classes, superclasses and tags."""
        part = desc.get_class("Part")
        assert part.superclass == "BasePart"
        assert desc.get_class("Workspace").has_tag("Service")
        assert not desc.get_class("Folder").tags

    def test_property_types(self, desc):
        """Test property type categories."""
        assert desc.get_property("Part", "Size").value_type == TypeDesc(
            TypeCategory.DATA_TYPE, "Vector3"
        )
        assert desc.get_property("Part", "Anchored").value_type == TypeDesc(
            TypeCategory.PRIMITIVE, "bool"
        )
        assert desc.get_property("Part", "Material").value_type == TypeDesc(
            TypeCategory.ENUM, "Material"
        )
        assert desc.get_property("Part", "Target").value_type == TypeDesc(
            TypeCategory.CLASS, "BasePart"
        )

    def test_inherited_members(self, desc):
        """Test members are found on superclasses."""
        assert desc.get_property("Part", "Transparency") is not None
        assert desc.get_property("Model", "Size") is None
        assert desc.get_property("Part", "Resize") is None
        assert isinstance(desc.member("Part", "Resize"), FunctionDesc)

    def test_function(self, desc):
        """Test functions with default parameters and a return type."""
        resize = desc.member("Part", "Resize")
        assert [p.name for p in resize.parameters] == ["normal", "deltaAmount"]
        assert resize.parameters[1].default == "1"
        assert resize.parameters[1].optional
        assert not resize.parameters[0].optional
        assert resize.return_type == TypeDesc(TypeCategory.PRIMITIVE, "bool")

    def test_signature(self, desc):
        """Test the structural type derived from a function."""
        resize = desc.member("Part", "Resize")
        assert resize.signature() == TypeDesc(
            TypeCategory.FUNCTION, "(Enum.NormalId, int?) -> bool"
        )
        assert FunctionDesc(name="F").signature().name == "() -> ()"

    def test_enum_values(self, desc):
        """Test explicit and implicit enum item values."""
        material = desc.get_enum("Material")
        assert [(i.name, i.value) for i in material.items.values()] == [
            ("Plastic", 256),
            ("Wood", 512),
            ("Slate", 800),
        ]
        part_type = desc.get_enum("PartType")
        assert [i.value for i in part_type.items.values()] == [0, 1, 2]

    def test_implicit_value_follows_previous(self):
        """Test an item without a value follows the one before it."""
        root = parse_desc("enum E { A = 5, B, C = 1, D }")
        assert [i.value for i in root.get_enum("E").items.values()] == [5, 6, 1, 2]

    def test_is_a(self, desc):
        """Test class inheritance checks."""
        assert desc.is_a("Part", "Instance")
        assert desc.is_a("Workspace", "Model")
        assert not desc.is_a("Model", "BasePart")
        assert not desc.is_a("Unknown", "Instance")

    def test_empty(self):
        """Test empty input gives an empty table."""
        assert parse_desc("") == RootDesc()

    def test_undefined_superclass(self):
        """Test inheriting from an undefined class fails."""
        with pytest.raises(ValueError, match="undefined class 'Missing'"):
            parse_desc("class A : Missing {}")

    def test_unknown_category(self):
        """Test a qualified type with an unknown category fails."""
        with pytest.raises(ValueError, match="Unknown type category 'Thing'"):
            parse_desc("class A { X: Thing.Y }")

    def test_syntax_error(self):
        """Test malformed input fails."""
        with pytest.raises(SyntaxError):
            parse_desc("class A {")

    def test_duplicate_member(self):
        """Test a member defined twice fails."""
        with pytest.raises(ValueError, match="already defined"):
            parse_desc("class A { X: int, X: bool }")


class TestDescJSON:
    """Tests for the desc.json representation."""

    def test_matches_dsl(self, desc):
        """Test the JSON representation decodes to the same table."""
        data = json.loads(json.dumps(desc_to_json(desc)))
        assert desc_from_json(data) == desc

    def test_root_superclass(self):
        """Test classes without a superclass use the root marker."""
        root = RootDesc()
        root.add_class(ClassDesc(name="Instance"))
        data = desc_to_json(root)
        assert data["Classes"][0]["Superclass"] == "<<<ROOT>>>"
        assert desc_from_json(data).get_class("Instance").superclass == ""

    def test_unknown_member_types_skipped(self):
        """Test member kinds other than properties and functions are ignored."""
        data = {
            "Classes": [
                {
                    "Name": "Part",
                    "Superclass": "<<<ROOT>>>",
                    "Members": [
                        {"MemberType": "Event", "Name": "Touched"},
                        {
                            "MemberType": "Property",
                            "Name": "Size",
                            "ValueType": {"Category": "DataType", "Name": "Vector3"},
                        },
                    ],
                }
            ],
            "Enums": [],
        }
        part = desc_from_json(data).get_class("Part")
        assert list(part.members) == ["Size"]


class TestEnumGeneration:
    """Tests for runtime enums generated from descriptors."""

    def test_lookup(self, desc):
        """Test items are found by name and by value."""
        material = desc.enum_types.enum("Material")
        assert material.item("Wood").value == 512
        assert material.value(800).name == "Slate"
        assert material.value(1) is None

    def test_items_in_index_order(self):
        """Test items are ordered by their index."""
        root = RootDesc()
        enum_desc = EnumDesc(name="E")
        enum_desc.add_item(EnumItemDesc(name="B", value=2, index=1))
        enum_desc.add_item(EnumItemDesc(name="A", value=1, index=0))
        root.add_enum(enum_desc)
        assert [i.name for i in root.enum_types.enum("E").items()] == ["A", "B"]

    def test_regenerate(self, desc):
        """Test enums added later appear after regeneration."""
        assert desc.enum_types.enum("Extra") is None
        desc.add_enum(EnumDesc(name="Extra"))
        assert desc.enum_types.enum("Extra") is None
        desc.generate_enum_types()
        assert desc.enum_types.enum("Extra") is not None

    def test_item_identity(self, desc):
        """Test items compare by enum name and value."""
        a = desc.enum_types.enum("Material").item("Wood")
        b = parse_desc("enum Material { Wood = 512 }").enum_types.enum("Material").item("Wood")
        assert a == b
        assert str(a) == "Enum.Material.Wood"


class TestDescriptorReflectors:
    """Tests for descriptors as seen from scripts."""

    def test_root_lookup(self, state, desc):
        """Test looking up classes and enums."""
        root = state.push(desc)
        part = root.call("Class", "Part")
        assert part.type_name == "ClassDesc"
        assert part["Name"] == "Part"
        assert part["Superclass"] == "BasePart"
        assert root.call("Class", "Missing") is None
        assert [c["Name"] for c in root.call("Classes")][:2] == ["Instance", "DataModel"]

    def test_tags(self, state, desc):
        """Test reading and changing tags."""
        workspace = state.push(desc).call("Class", "Workspace")
        assert workspace.call("Tag", "Service") is True
        assert workspace.call("Tags") == ["Service"]
        workspace.call("SetTag", "NotCreatable", "Hidden")
        assert workspace.call("Tags") == ["Hidden", "NotCreatable", "Service"]
        workspace.call("UnsetTag", "Hidden")
        assert not desc.get_class("Workspace").has_tag("Hidden")

    def test_build_class(self, state):
        """Test building a descriptor table from scripts."""
        root = state.construct("RootDesc")
        cls = state.construct("ClassDesc")
        cls["Name"] = "Thing"
        prop = state.construct("PropertyDesc")
        prop["Name"] = "Count"
        prop["ValueType"] = state.construct("TypeDesc", "new", "Primitive", "int")
        assert cls.call("AddMember", prop) is True
        assert cls.call("AddMember", prop) is False
        assert root.call("AddClass", cls) is True
        built = root.value
        assert built.get_property("Thing", "Count").value_type == TypeDesc("Primitive", "int")
        assert cls.call("RemoveMember", "Count") is True
        assert built.get_property("Thing", "Count") is None

    def test_add_member_rejects_other_types(self, state):
        """Test only property and function descriptors can be added."""
        cls = state.construct("ClassDesc")
        with pytest.raises(TypeMismatchError, match="PropertyDesc or FunctionDesc expected"):
            cls.call("AddMember", 5)

    def test_function_parameters(self, state, desc):
        """Test parameters are exchanged as tables."""
        resize = state.push(desc).call("Class", "Part").call("Member", "Resize")
        params = resize["Parameters"]
        assert params[0]["Name"] == "normal"
        assert params[0]["Type"]["Category"] == "Enum"
        assert "Default" not in params[0]
        assert params[1]["Default"] == "1"
        assert resize["ReturnType"]["Name"] == "bool"
        assert resize.call("Signature")["Name"] == "(Enum.NormalId, int?) -> bool"

    def test_set_parameters(self, state):
        """Test assigning parameters from tables."""
        func = state.construct("FunctionDesc")
        int_type = state.construct("TypeDesc", "new", "Primitive", "int")
        func["Parameters"] = [{"Name": "n", "Type": int_type, "Default": "0"}]
        assert func.value.parameters == [ParameterDesc(TypeDesc("Primitive", "int"), "n", "0")]
        func["ReturnType"] = None
        assert func.value.return_type is None

    def test_parameter_type_checked(self, state):
        """Test a parameter without a type descriptor fails."""
        func = state.construct("FunctionDesc")
        with pytest.raises(TypeMismatchError, match="field Type: TypeDesc expected, got string"):
            func["Parameters"] = [{"Name": "n", "Type": "int"}]

    def test_type_desc_is_immutable(self, state):
        """Test TypeDesc fields cannot be assigned."""
        t = state.construct("TypeDesc", "new", "Primitive", "int")
        with pytest.raises(ValidationError, match="cannot be assigned to"):
            t["Name"] = "bool"
        assert t == state.construct("TypeDesc", "new", "Primitive", "int")

    def test_enum_desc(self, state, desc):
        """Test enum descriptors and their items."""
        material = state.push(desc).call("Enum", "Material")
        wood = material.call("Item", "Wood")
        assert wood["Value"] == 512
        assert wood["Index"] == 1
        item = state.construct("EnumItemDesc")
        item["Name"] = "Metal"
        item["Value"] = 1088
        assert material.call("AddItem", item) is True
        assert "Metal" in desc.get_enum("Material").items
        assert material.call("RemoveItem", "Metal") is True

    def test_enum_types(self, state, desc):
        """Test runtime enums are reachable from the table."""
        enums = state.push(desc).call("EnumTypes")
        material = enums["Material"]
        assert material["Wood"]["Value"] == 512
        names = [item["Name"] for item in material.call("GetEnumItems")]
        assert names == ["Plastic", "Wood", "Slate"]

    def test_tostring(self, state, desc):
        """Test descriptors print their name."""
        assert str(state.push(desc.get_class("Part"))) == "ClassDesc(Part)"


class TestDescriptorValues:
    """Tests for descriptor value objects."""

    def test_add_duplicate_class(self):
        """Test a class name can only be added once."""
        root = RootDesc()
        root.add_class(ClassDesc(name="A"))
        with pytest.raises(ValueError, match="already defined"):
            root.add_class(ClassDesc(name="A"))

    def test_superclass_loop(self):
        """Test a loop of superclasses terminates."""
        root = RootDesc()
        root.add_class(ClassDesc(name="A", superclass="B"))
        root.add_class(ClassDesc(name="B", superclass="A"))
        assert [c.name for c in root.superclasses("A")] == ["A", "B"]
        assert not root.is_a("A", "C")

    def test_type_desc_str(self):
        """Test type references print with their category where needed."""
        assert str(TypeDesc(TypeCategory.CLASS, "Part")) == "Class.Part"
        assert str(TypeDesc(TypeCategory.PRIMITIVE, "int")) == "int"

    def test_property_desc_defaults(self):
        """Test property descriptors start without tags."""
        assert PropertyDesc(name="X", value_type=TypeDesc("Primitive", "int")).tags == set()
