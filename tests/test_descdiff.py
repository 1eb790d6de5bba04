"""Tests for descriptor diffs, patches and the DescAction type."""

from __future__ import annotations

import copy
import json

import pytest

from typed_host import parse_desc
from typed_host.descdiff import (
    ADD,
    CHANGE,
    CLASS,
    ENUM,
    ENUM_ITEM,
    FUNCTION,
    PROPERTY,
    REMOVE,
    DescAction,
    diff_desc,
    patch_desc,
)
from typed_host.errors import FormatUnsupportedError, TypeMismatchError, ValidationError
from typed_host.formats import DescPatchFormat
from typed_host.types import Array, String

MODIFIED = """
class Instance {}
class DataModel : Instance {}
class BasePart : Instance {
    Size: Vector3,
    Transparency: double,
    Anchored: bool,
    Material: Enum.Material,
}
class Part : BasePart [NotCreatable] {
    Target: Class.BasePart,
    Owner: Class.Model,
    Shape: Enum.PartType,
    Ghost: Class.Unknown,
    Broken: Enum.Unknown,
    function Resize(normal: Enum.NormalId) -> bool,
}
class Model : Instance {
    PrimaryPart: Class.BasePart,
}
class Workspace : Model [Service] {}
class Lighting : Instance [Service] {}
class Tool : Instance {
    Enabled: bool,
}
enum Material { Plastic = 256, Wood = 512, Granite = 832 }
enum PartType { Ball, Block }
enum NormalId { Right, Top, Back }
"""


@pytest.fixture
def modified():
    """Parse a changed copy of the test schema."""
    return parse_desc(MODIFIED)


class TestDescAction:
    """Tests for DescAction values."""

    def test_str(self):
        """Test actions describe their target."""
        assert str(DescAction(ADD, CLASS, "Tool")) == "Add Class Tool"
        assert str(DescAction(REMOVE, PROPERTY, "Part", "Size")) == "Remove Property Part.Size"
        action = DescAction(CHANGE, FUNCTION, "Part", "Resize", {"Tags": [], "Parameters": []})
        assert str(action) == "Change Function Part.Resize: Parameters, Tags"

    @pytest.mark.parametrize(
        "args, message",
        [
            (("Rename", CLASS, "A"), "unknown action type"),
            ((ADD, "Event", "A", "E"), "unknown element"),
            ((ADD, CLASS, "A", "B"), "cannot name a secondary element"),
            ((ADD, PROPERTY, "A"), "requires a secondary element"),
        ],
    )
    def test_invalid(self, args, message):
        """Test malformed actions are rejected."""
        with pytest.raises(ValueError, match=message):
            DescAction(*args)

    def test_json(self):
        """Test the JSON shape of an action."""
        action = DescAction(ADD, ENUM_ITEM, "Material", "Granite", {"Value": 832})
        assert action.to_json() == {
            "Type": "Add",
            "Element": "EnumItem",
            "Primary": "Material",
            "Secondary": "Granite",
            "Fields": {"Value": 832},
        }
        assert DescAction.from_json(action.to_json()) == action
        assert DescAction(REMOVE, CLASS, "A").to_json() == {
            "Type": "Remove",
            "Element": "Class",
            "Primary": "A",
        }


class TestDiff:
    """Tests for diff_desc."""

    def test_identical(self, desc):
        """Test equal tables have no differences."""
        assert diff_desc(desc, copy.deepcopy(desc)) == []

    def test_from_nothing(self):
        """Test diffing from no table adds every element."""
        next_desc = parse_desc("class B {}\nclass A : B [Service] { X: int }\nenum E { Y }")
        actions = diff_desc(None, next_desc)
        assert actions == [
            DescAction(ADD, CLASS, "B", fields={"Superclass": "<<<ROOT>>>", "Tags": []}),
            DescAction(ADD, CLASS, "A", fields={"Superclass": "B", "Tags": ["Service"]}),
            DescAction(
                ADD,
                PROPERTY,
                "A",
                "X",
                {"ValueType": {"Category": "Primitive", "Name": "int"}, "Tags": []},
            ),
            DescAction(ADD, ENUM, "E", fields={"Tags": []}),
            DescAction(ADD, ENUM_ITEM, "E", "Y", {"Value": 0, "Index": 0, "Tags": []}),
        ]

    def test_to_nothing(self):
        """Test removing a class or enum does not list its members."""
        actions = diff_desc(parse_desc("class A { X: int }\nenum E { Y }"), None)
        assert actions == [DescAction(REMOVE, CLASS, "A"), DescAction(REMOVE, ENUM, "E")]

    def test_changes(self, desc, modified):
        """Test only the changed fields of an element are listed."""
        actions = {(a.action, a.element, a.target): a.fields for a in diff_desc(desc, modified)}
        assert actions == {
            (REMOVE, CLASS, "Folder"): {},
            (CHANGE, PROPERTY, "BasePart.Transparency"): {
                "ValueType": {"Category": "Primitive", "Name": "double"}
            },
            (CHANGE, CLASS, "Part"): {"Tags": ["NotCreatable"]},
            (CHANGE, FUNCTION, "Part.Resize"): {
                "Parameters": [
                    {"Name": "normal", "Type": {"Category": "Enum", "Name": "NormalId"}}
                ]
            },
            (ADD, CLASS, "Tool"): {"Superclass": "Instance", "Tags": []},
            (ADD, PROPERTY, "Tool.Enabled"): {
                "ValueType": {"Category": "Primitive", "Name": "bool"},
                "Tags": [],
            },
            (REMOVE, ENUM_ITEM, "Material.Slate"): {},
            (ADD, ENUM_ITEM, "Material.Granite"): {"Value": 832, "Index": 2, "Tags": []},
            (REMOVE, ENUM_ITEM, "PartType.Cylinder"): {},
        }

    def test_member_kind_change(self):
        """Test a member that changes kind is removed and added again."""
        actions = diff_desc(parse_desc("class A { X: int }"), parse_desc("class A { function X() }"))
        assert [(a.action, a.element) for a in actions] == [(REMOVE, PROPERTY), (ADD, FUNCTION)]

    def test_removed_field(self):
        """Test a field that is no longer set is changed to null."""
        actions = diff_desc(
            parse_desc("class A { function F() -> int }"), parse_desc("class A { function F() }")
        )
        assert actions == [DescAction(CHANGE, FUNCTION, "A", "F", {"ReturnType": None})]


class TestPatch:
    """Tests for patch_desc."""

    def test_patch_applies_diff(self, desc, modified):
        """Test patching with a diff turns the first table into the second."""
        actions = diff_desc(desc, modified)
        assert patch_desc(desc, actions) == len(actions)
        assert desc == modified

    def test_patch_from_nothing(self, desc):
        """Test an empty table patched with a full diff equals the original."""
        root = parse_desc("")
        patch_desc(root, diff_desc(None, desc))
        assert root == desc

    def test_removed_return_type(self):
        """Test a null field removes the value."""
        root = parse_desc("class A { function F() -> int }")
        patch_desc(root, [DescAction(CHANGE, FUNCTION, "A", "F", {"ReturnType": None})])
        assert root.classes["A"].members["F"].return_type is None

    def test_actions_that_do_not_fit(self, desc):
        """Test actions that do not match the table are skipped."""
        actions = [
            DescAction(ADD, CLASS, "Part"),
            DescAction(CHANGE, CLASS, "Nothing", fields={"Tags": ["Service"]}),
            DescAction(CHANGE, PROPERTY, "Part", "Nothing", {"Tags": []}),
            DescAction(REMOVE, FUNCTION, "BasePart", "Size"),
            DescAction(ADD, PROPERTY, "Part", "Incomplete"),
            DescAction(ADD, ENUM_ITEM, "Nothing", "X", {"Value": 1}),
        ]
        before = copy.deepcopy(desc)
        assert patch_desc(desc, actions) == 0
        assert desc == before

    def test_enum_types_regenerated(self, desc):
        """Test enum changes are visible through the generated enums."""
        assert desc.enum_types.enum("Material").item("Granite") is None
        patch_desc(desc, [DescAction(ADD, ENUM_ITEM, "Material", "Granite", {"Value": 832})])
        assert desc.enum_types.enum("Material").item("Granite").value == 832


class TestDescPatchFormat:
    """Tests for the desc-patch.json format."""

    def test_round_trip(self, desc, modified):
        """Test a list of actions survives encoding."""
        fmt = DescPatchFormat()
        actions = Array(diff_desc(desc, modified))
        data = fmt.encode(None, None, actions)
        assert json.loads(data)[0] == {"Type": "Remove", "Element": "Class", "Primary": "Folder"}
        assert fmt.decode(None, None, data) == actions

    def test_encode_rejects_other_values(self):
        """Test only arrays of actions encode."""
        fmt = DescPatchFormat()
        with pytest.raises(FormatUnsupportedError, match="cannot encode string"):
            fmt.encode(None, None, String("x"))
        with pytest.raises(FormatUnsupportedError, match="cannot encode string at index 1"):
            fmt.encode(None, None, Array([String("x")]))

    @pytest.mark.parametrize(
        "data",
        [
            b"{}",
            b"[1]",
            b'[{"Type": "Add"}]',
            b'[{"Type": "Add", "Element": "Class", "Primary": "A", "Fields": []}]',
            b'[{"Type": "Move", "Element": "Class", "Primary": "A"}]',
        ],
    )
    def test_decode_errors(self, data):
        """Test malformed action lists are reported."""
        with pytest.raises(FormatUnsupportedError, match="decode desc-patch.json"):
            DescPatchFormat().decode(None, None, data)


class TestScriptInterface:
    """Tests for Diff, Patch and DescAction through script values."""

    def test_diff_and_patch(self, state, desc, modified):
        """Test diffing and patching descriptor userdata."""
        root = state.push(desc)
        actions = root.call("Diff", state.push(modified))
        assert actions[0]["Type"] == "Remove"
        assert actions[0]["Element"] == "Class"
        assert actions[0]["Primary"] == "Folder"
        assert actions[0]["Secondary"] == ""
        assert str(actions[0]) == "Remove Class Folder"
        assert root.call("Patch", actions) == len(actions)
        assert root.call("Diff", state.push(modified)) == []

    def test_diff_against_nothing(self, state, desc):
        """Test Diff without an argument removes everything."""
        actions = state.push(desc).call("Diff")
        assert len(actions) == len(desc.classes) + len(desc.enums)

    def test_fields(self, state):
        """Test field values are pushed as script values."""
        action = state.push(DescAction(ADD, ENUM_ITEM, "E", "X", {"Value": 3, "Tags": ["Deprecated"]}))
        assert action.call("Field", "Value") == 3.0
        assert action.call("Field", "Tags") == ["Deprecated"]
        assert action.call("Field", "Index") is None
        assert action.call("Fields") == {"Value": 3.0, "Tags": ["Deprecated"]}

    def test_equality(self, state):
        """Test actions compare by value."""
        a = state.push(DescAction(REMOVE, CLASS, "A"))
        assert a == state.push(DescAction(REMOVE, CLASS, "A"))
        assert a != state.push(DescAction(REMOVE, CLASS, "B"))

    def test_read_only(self, state):
        """Test action properties cannot be assigned."""
        action = state.push(DescAction(REMOVE, CLASS, "A"))
        with pytest.raises(ValidationError, match="Type cannot be assigned to"):
            action["Type"] = "Add"

    def test_patch_rejects_other_values(self, state, desc):
        """Test Patch only accepts actions."""
        with pytest.raises(TypeMismatchError, match="field 1: DescAction expected, got string"):
            state.push(desc).call("Patch", ["x"])
