"""Reflectors of descriptor values.

Descriptors are mutable userdata shared by reference. TypeDesc is an
immutable value compared by value; ParameterDesc is exchanged as a table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from typed_host.descdiff import DescAction, diff_desc, patch_desc
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
from typed_host.dump import Function, MultiFunction, Parameter, Property as PropertyDump, TypeDef
from typed_host.errors import TypeMismatchError
from typed_host.formats.json_format import from_json
from typed_host.reflect.base import (
    describe,
    pull_arg,
    pull_arg_opt,
    pull_userdata,
    push_userdata,
    value_metatable,
)
from typed_host.reflector import Constructor, Method, Property, Reflector
from typed_host.types import Bool, Int, String

if TYPE_CHECKING:
    from typed_host.state import State


def _string_field(attr: str, writable: bool = True) -> Property:
    def set_(s: State, v: Any, lv: Any) -> None:
        setattr(v, attr, s.pull(lv, "string").value)

    return Property(
        get=lambda s, v: s.push(String(getattr(v, attr))),
        set=set_ if writable else None,
        dump=lambda: PropertyDump(value_type="string", read_only=not writable),
    )


def _int_field(attr: str) -> Property:
    def set_(s: State, v: Any, lv: Any) -> None:
        setattr(v, attr, s.pull(lv, "int").value)

    return Property(
        get=lambda s, v: s.push(Int(getattr(v, attr))),
        set=set_,
        dump=lambda: PropertyDump(value_type="int"),
    )


def _type_field(attr: str) -> Property:
    def set_(s: State, v: Any, lv: Any) -> None:
        setattr(v, attr, s.pull(lv, "TypeDesc"))

    return Property(
        get=lambda s, v: s.push(getattr(v, attr)),
        set=set_,
        dump=lambda: PropertyDump(value_type="TypeDesc"),
    )


def _tag_methods() -> dict[str, Method]:
    """Methods shared by descriptors that carry a tag set."""

    def tag(s: State, v: Any, *args: Any) -> Any:
        return s.push(Bool(pull_arg(s, args, 0, "string").value in v.tags))

    def tags(s: State, v: Any, *args: Any) -> Any:
        return [s.push(String(t)) for t in sorted(v.tags)]

    def set_tag(s: State, v: Any, *args: Any) -> None:
        for i in range(len(args)):
            v.tags.add(pull_arg(s, args, i, "string").value)

    def unset_tag(s: State, v: Any, *args: Any) -> None:
        for i in range(len(args)):
            v.tags.discard(pull_arg(s, args, i, "string").value)

    return {
        "Tag": Method(
            tag,
            dump=lambda: Function(
                parameters=[Parameter("name", "string")], returns=[Parameter("", "bool")]
            ),
        ),
        "Tags": Method(tags, dump=lambda: Function(returns=[Parameter("", "{string}")])),
        "SetTag": Method(set_tag, dump=lambda: Function(parameters=[Parameter("...", "string")])),
        "UnsetTag": Method(
            unset_tag, dump=lambda: Function(parameters=[Parameter("...", "string")])
        ),
    }


def _descriptor(
    name: str,
    cls: type,
    new: Callable[[], Any],
    properties: dict[str, Property],
    methods: dict[str, Method],
    summary: str,
    types: list[Callable[[], Reflector]] | None = None,
    tagged: bool = True,
) -> Reflector:
    if tagged:
        methods = {**methods, **_tag_methods()}
    return Reflector(
        name=name,
        push=push_userdata(name),
        pull=pull_userdata(name, cls),
        properties=properties,
        methods=methods,
        constructors={
            "new": Constructor(
                lambda s, *args: s.push(new()),
                dump=lambda: MultiFunction(signatures=[Function(returns=[Parameter("", name)])]),
            )
        },
        metatable={"__tostring": lambda s, v: f"{name}({getattr(v, 'name', '')})"},
        types=types or [],
        dump=lambda: TypeDef(summary=summary),
    )


# ---- TypeDesc ----


def _type_desc_new(s: State, *args: Any) -> Any:
    category = pull_arg_opt(s, args, 0, "string", String("")).value
    name = pull_arg_opt(s, args, 1, "string", String("")).value
    return s.push(TypeDesc(category=category, name=name))


def type_desc() -> Reflector:
    return Reflector(
        name="TypeDesc",
        push=push_userdata("TypeDesc"),
        pull=pull_userdata("TypeDesc", TypeDesc),
        properties={
            "Category": Property(
                get=lambda s, v: s.push(String(v.category)),
                dump=lambda: PropertyDump(value_type="string", read_only=True),
            ),
            "Name": Property(
                get=lambda s, v: s.push(String(v.name)),
                dump=lambda: PropertyDump(value_type="string", read_only=True),
            ),
        },
        constructors={"new": Constructor(_type_desc_new)},
        metatable=value_metatable(),
        dump=lambda: TypeDef(summary="Refers to a type by category and name."),
    )


# ---- ParameterDesc ----


def push_parameter_desc(s: State, v: ParameterDesc) -> dict[str, Any]:
    table: dict[str, Any] = {}
    s.push_to_table(table, "Type", v.param_type)
    s.push_to_table(table, "Name", String(v.name))
    if v.default is not None:
        s.push_to_table(table, "Default", String(v.default))
    return table


def pull_parameter_desc(s: State, lv: Any) -> ParameterDesc:
    if not isinstance(lv, dict):
        raise TypeMismatchError.expected("table", describe(lv))
    default = s.pull_from_table_opt(lv, "Default", "string", None)
    return ParameterDesc(
        param_type=s.pull_from_table(lv, "Type", "TypeDesc"),
        name=s.pull_from_table(lv, "Name", "string").value,
        default=default.value if default is not None else None,
    )


def parameter_desc() -> Reflector:
    return Reflector(
        name="ParameterDesc",
        push=push_parameter_desc,
        pull=pull_parameter_desc,
        types=[type_desc],
        dump=lambda: TypeDef(
            underlying="table",
            summary="A parameter: a table with Type, Name, and an optional Default string.",
        ),
    )


# ---- PropertyDesc / FunctionDesc ----


def property_desc() -> Reflector:
    return _descriptor(
        "PropertyDesc",
        PropertyDesc,
        new=lambda: PropertyDesc(name="", value_type=TypeDesc("", "")),
        properties={
            "Name": _string_field("name"),
            "ValueType": _type_field("value_type"),
        },
        methods={},
        summary="Describes a property of a class.",
        types=[type_desc],
    )


def _get_parameters(s: State, v: FunctionDesc) -> Any:
    return [s.push_as("ParameterDesc", p) for p in v.parameters]


def _set_parameters(s: State, v: FunctionDesc, lv: Any) -> None:
    if not isinstance(lv, (list, tuple)):
        raise TypeMismatchError.expected("table", describe(lv))
    v.parameters = [s.pull(p, "ParameterDesc") for p in lv]


def _set_return_type(s: State, v: FunctionDesc, lv: Any) -> None:
    v.return_type = s.pull_opt(lv, "TypeDesc", None)


def function_desc() -> Reflector:
    return _descriptor(
        "FunctionDesc",
        FunctionDesc,
        new=lambda: FunctionDesc(name=""),
        properties={
            "Name": _string_field("name"),
            "Parameters": Property(
                get=_get_parameters,
                set=_set_parameters,
                dump=lambda: PropertyDump(value_type="{ParameterDesc}"),
            ),
            "ReturnType": Property(
                get=lambda s, v: s.push(v.return_type) if v.return_type is not None else None,
                set=_set_return_type,
                dump=lambda: PropertyDump(value_type="TypeDesc?"),
            ),
        },
        methods={
            "Signature": Method(
                lambda s, v, *args: s.push(v.signature()),
                dump=lambda: Function(returns=[Parameter("", "TypeDesc")]),
            ),
        },
        summary="Describes a function of a class.",
        types=[parameter_desc, type_desc],
    )


# ---- ClassDesc ----


def _member(s: State, v: ClassDesc, *args: Any) -> Any:
    member = v.get_member(pull_arg(s, args, 0, "string").value)
    return s.push(member) if member is not None else None


def _add_member(s: State, v: ClassDesc, *args: Any) -> Any:
    member = s.pull_any_of(args[0] if args else None, "PropertyDesc", "FunctionDesc")
    if member.name in v.members:
        return False
    v.add_member(member)
    return True


def _remove_member(s: State, v: ClassDesc, *args: Any) -> Any:
    return v.members.pop(pull_arg(s, args, 0, "string").value, None) is not None


def class_desc() -> Reflector:
    return _descriptor(
        "ClassDesc",
        ClassDesc,
        new=lambda: ClassDesc(name=""),
        properties={
            "Name": _string_field("name"),
            "Superclass": _string_field("superclass"),
        },
        methods={
            "Member": Method(
                _member,
                dump=lambda: Function(
                    parameters=[Parameter("name", "string")],
                    returns=[Parameter("", "PropertyDesc | FunctionDesc | nil")],
                ),
            ),
            "Members": Method(
                lambda s, v, *args: [s.push(m) for m in v.members.values()],
                dump=lambda: Function(returns=[Parameter("", "{PropertyDesc | FunctionDesc}")]),
            ),
            "AddMember": Method(
                _add_member,
                dump=lambda: Function(
                    parameters=[Parameter("member", "PropertyDesc | FunctionDesc")],
                    returns=[Parameter("", "bool")],
                ),
            ),
            "RemoveMember": Method(
                _remove_member,
                dump=lambda: Function(
                    parameters=[Parameter("name", "string")], returns=[Parameter("", "bool")]
                ),
            ),
        },
        summary="Describes a class and its members.",
        types=[property_desc, function_desc],
    )


# ---- EnumItemDesc / EnumDesc ----


def enum_item_desc() -> Reflector:
    return _descriptor(
        "EnumItemDesc",
        EnumItemDesc,
        new=lambda: EnumItemDesc(name="", value=0),
        properties={
            "Name": _string_field("name"),
            "Value": _int_field("value"),
            "Index": _int_field("index"),
        },
        methods={},
        summary="Describes an item of an enum.",
    )


def _add_item(s: State, v: EnumDesc, *args: Any) -> Any:
    item: EnumItemDesc = pull_arg(s, args, 0, "EnumItemDesc")
    if item.name in v.items:
        return False
    v.add_item(item)
    return True


def _enum_item(s: State, v: EnumDesc, *args: Any) -> Any:
    item = v.items.get(pull_arg(s, args, 0, "string").value)
    return s.push(item) if item is not None else None


def enum_desc() -> Reflector:
    return _descriptor(
        "EnumDesc",
        EnumDesc,
        new=lambda: EnumDesc(name=""),
        properties={"Name": _string_field("name")},
        methods={
            "Item": Method(_enum_item),
            "Items": Method(lambda s, v, *args: [s.push(i) for i in v.items.values()]),
            "AddItem": Method(_add_item),
            "RemoveItem": Method(
                lambda s, v, *args: v.items.pop(pull_arg(s, args, 0, "string").value, None)
                is not None
            ),
        },
        summary="Describes an enum and its items.",
        types=[enum_item_desc],
    )


# ---- DescAction ----


def _action_field(s: State, v: DescAction, *args: Any) -> Any:
    name = pull_arg(s, args, 0, "string").value
    if name not in v.fields or v.fields[name] is None:
        return None
    return s.push(from_json(v.fields[name]))


def desc_action() -> Reflector:
    return Reflector(
        name="DescAction",
        push=push_userdata("DescAction"),
        pull=pull_userdata("DescAction", DescAction),
        properties={
            "Type": _string_field("action", writable=False),
            "Element": _string_field("element", writable=False),
            "Primary": _string_field("primary", writable=False),
            "Secondary": _string_field("secondary", writable=False),
        },
        methods={
            "Field": Method(
                _action_field,
                dump=lambda: Function(
                    parameters=[Parameter("name", "string")],
                    returns=[Parameter("", "any")],
                    summary="Returns the value of a field, or nil if the action does not set it.",
                ),
            ),
            "Fields": Method(
                lambda s, v, *args: s.push(from_json(v.fields)),
                dump=lambda: Function(returns=[Parameter("", "Dictionary")]),
            ),
        },
        metatable=value_metatable(),
        dump=lambda: TypeDef(
            summary="One change to a descriptor table: an element added, removed, or changed.",
        ),
    )


def _diff(s: State, v: RootDesc, *args: Any) -> Any:
    next_desc = pull_arg_opt(s, args, 0, "RootDesc", None)
    return [s.push(action) for action in diff_desc(v, next_desc)]


def _patch(s: State, v: RootDesc, *args: Any) -> Any:
    actions = pull_arg(s, args, 0, "Array")
    for i, action in enumerate(actions, 1):
        if not isinstance(action, DescAction):
            raise TypeMismatchError(
                f"bad argument #1: field {i}: DescAction expected, got {action.type()}"
            )
    return patch_desc(v, list(actions))


# ---- RootDesc ----


def _add_class(s: State, v: RootDesc, *args: Any) -> Any:
    desc: ClassDesc = pull_arg(s, args, 0, "ClassDesc")
    if desc.name in v.classes:
        return False
    v.add_class(desc)
    return True


def _add_enum(s: State, v: RootDesc, *args: Any) -> Any:
    desc: EnumDesc = pull_arg(s, args, 0, "EnumDesc")
    if desc.name in v.enums:
        return False
    v.add_enum(desc)
    return True


def _lookup(table_attr: str):
    def get(s: State, v: RootDesc, *args: Any) -> Any:
        found = getattr(v, table_attr).get(pull_arg(s, args, 0, "string").value)
        return s.push(found) if found is not None else None

    return get


def _remove(table_attr: str):
    def remove(s: State, v: RootDesc, *args: Any) -> Any:
        return getattr(v, table_attr).pop(pull_arg(s, args, 0, "string").value, None) is not None

    return remove


def root_desc() -> Reflector:
    return _descriptor(
        "RootDesc",
        RootDesc,
        new=RootDesc,
        properties={},
        methods={
            "Class": Method(_lookup("classes")),
            "Classes": Method(lambda s, v, *args: [s.push(c) for c in v.classes.values()]),
            "AddClass": Method(_add_class),
            "RemoveClass": Method(_remove("classes")),
            "Enum": Method(_lookup("enums")),
            "Enums": Method(lambda s, v, *args: [s.push(e) for e in v.enums.values()]),
            "AddEnum": Method(_add_enum),
            "RemoveEnum": Method(_remove("enums")),
            "EnumTypes": Method(
                lambda s, v, *args: s.push(v.enum_types),
                dump=lambda: Function(returns=[Parameter("", "Enums")]),
            ),
            "GenerateEnumTypes": Method(
                lambda s, v, *args: s.push(v.generate_enum_types()),
                dump=lambda: Function(
                    returns=[Parameter("", "Enums")],
                    summary="Rebuilds the enums after the enum descriptors change.",
                ),
            ),
            "Diff": Method(
                _diff,
                dump=lambda: Function(
                    parameters=[Parameter("next", "RootDesc?")],
                    returns=[Parameter("", "Array")],
                    summary="Lists the actions that turn this table into next.",
                ),
            ),
            "Patch": Method(
                _patch,
                dump=lambda: Function(
                    parameters=[Parameter("actions", "Array")],
                    returns=[Parameter("", "int")],
                    summary="Applies actions in order. Actions that do not fit are skipped.",
                ),
            ),
        },
        summary="A descriptor table: every class and enum.",
        types=[class_desc, enum_desc, desc_action],
        tagged=False,
    )
