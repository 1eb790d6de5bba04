"""Reflector of Instance, and the DataModel library.

Member access on an instance is resolved in this order:

1. Members defined here (ClassName, Name, Parent and the tree methods).
2. Symbols, which reach structural state: reference id, service flag,
   descriptor and attribute overlays, and data model metadata.
3. GetService, on data models only.
4. Properties. When the effective descriptor defines the property, the stored
   value is validated against its declared type. Otherwise access is
   permissive: an unset property reads as nil.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from typed_host.descriptors import PropertyDesc, RootDesc, SERVICE_TAG, TypeCategory
from typed_host.dump import Function, MultiFunction, Parameter, Property as PropertyDump, TypeDef
from typed_host.enums import Enum, EnumItem
from typed_host.errors import (
    HostError,
    TypeMismatchError,
    UnresolvedReferenceError,
    ValidationError,
    prefixed_error,
)
from typed_host.formats.rbxattr import decode_attributes, encode_attributes
from typed_host.instance import Instance, new_data_model
from typed_host.reflect.base import arg, pull_arg, pull_arg_opt, pull_userdata, push_userdata
from typed_host.reflect.containers import dictionary
from typed_host.reflect.descriptors import root_desc
from typed_host.reflect.symbols import attr_config, symbol
from typed_host.reflector import Constructor, Method, Property, Reflector, set_attribute_to
from typed_host.script import UserData
from typed_host.types import (
    BinaryString,
    Bool,
    Dictionary,
    Intlike,
    Numberlike,
    String,
    Stringlike,
    Token,
    Value,
    is_property_value,
)

if TYPE_CHECKING:
    from typed_host.state import State


# ---- Descriptor checks ----


def check_class_desc(desc: RootDesc, name: str, class_name: str, prop: str) -> None:
    if desc.get_class(name) is None:
        raise UnresolvedReferenceError(
            f"no class descriptor {name!r} for property descriptor {class_name}.{prop}"
        )


def check_enum_desc(desc: RootDesc, name: str, class_name: str, prop: str) -> Enum:
    enum = desc.enum_types.enum(name)
    if enum is None:
        if desc.get_enum(name) is None:
            raise UnresolvedReferenceError(
                f"no enum descriptor {name!r} for property descriptor {class_name}.{prop}"
            )
        raise UnresolvedReferenceError(
            f"no enum value {name!r} generated for property descriptor {class_name}.{prop}"
        )
    return enum


def _property_desc(s: State, inst: Instance, name: str) -> tuple[RootDesc | None, PropertyDesc | None]:
    desc = s.desc(inst)
    if desc is None:
        return None, None
    return desc, desc.get_property(inst.class_name, name)


# ---- Property access ----


def get_property(s: State, inst: Instance, name: str) -> Any:
    """Read a property, validating it when a descriptor defines it."""
    value = inst.get(name)
    desc, prop = _property_desc(s, inst, name)
    if prop is None:
        if value is None:
            return None
        return s.push_property(value)

    def invalid(message: str) -> ValidationError:
        return ValidationError(message, class_name=inst.class_name, property_name=name)

    if value is None:
        raise invalid(f"property {name} not initialized")
    value_type = prop.value_type
    if value_type.category == TypeCategory.CLASS:
        check_class_desc(desc, value_type.name, inst.class_name, name)
        if not isinstance(value, Instance):
            raise invalid(f"stored value type {value.type()} is not an instance")
        if not value.is_a(value_type.name, desc):
            raise invalid(
                f"instance of class {value_type.name} expected, got {value.class_name}"
            )
        return s.push(value)
    if value_type.category == TypeCategory.ENUM:
        enum = check_enum_desc(desc, value_type.name, inst.class_name, name)
        if not isinstance(value, Token):
            raise invalid(f"stored value type {value.type()} is not a token")
        item = enum.value(value.value)
        if item is None:
            raise invalid(f"invalid stored value {value.value} for enum {enum.name}")
        return s.push(item)
    if value.type() != value_type.name:
        raise invalid(
            f"stored value type {value.type()} does not match property type {value_type.name}"
        )
    # Pushed by its own type, without boxing exprims.
    return s.push_variant(value)


def _enum_token(enum: Enum, value: Value) -> Token:
    """Convert an enum-typed assignment to the token that is stored."""
    if isinstance(value, Token):
        if enum.value(value.value) is None:
            raise ValueError(f"invalid value {value.value} for enum {enum.name}")
        return value
    if isinstance(value, EnumItem):
        item = enum.value(value.value)
        if item is None:
            raise ValueError(f"invalid value {value} ({value.value}) for enum {enum.name}")
        if value.enum.name != enum.name:
            raise ValueError(f"expected enum {enum.name}, got {value.enum.name}")
        if item.name != value.name:
            raise ValueError(f"expected enum item {item.name}, got {value.name}")
        return Token(item.value)
    if isinstance(value, Intlike):
        number = value.intlike()
    elif isinstance(value, Numberlike):
        x = value.numberlike()
        if not float(x).is_integer():
            raise ValueError(f"invalid value {x} for enum {enum.name}")
        number = int(x)
    elif isinstance(value, Stringlike):
        item = enum.item(value.stringlike())
        if item is None:
            raise ValueError(f"invalid value {value.stringlike()} for enum {enum.name}")
        return Token(item.value)
    else:
        raise ValueError(f"invalid value for enum {enum.name}")
    item = enum.value(number)
    if item is None:
        raise ValueError(f"invalid value {number} for enum {enum.name}")
    return Token(item.value)


def set_property(s: State, inst: Instance, name: str, lv: Any) -> None:
    """Assign a property, converting it to the type a descriptor declares."""
    value = s.pull_variant(lv)
    desc, prop = _property_desc(s, inst, name)
    if prop is not None:
        value_type = prop.value_type
        if value_type.category == TypeCategory.CLASS:
            if not isinstance(value, Instance):
                raise TypeMismatchError.expected("Instance", value.type())
            check_class_desc(desc, value_type.name, inst.class_name, name)
            if value.class_name != value_type.name:
                raise ValidationError(
                    f"instance of class {value_type.name} expected, got {value.class_name}",
                    class_name=inst.class_name,
                    property_name=name,
                )
            inst.set(name, value)
            return
        if value_type.category == TypeCategory.ENUM:
            enum = check_enum_desc(desc, value_type.name, inst.class_name, name)
            try:
                token = _enum_token(enum, value)
            except ValueError as err:
                raise ValidationError(
                    str(err), class_name=inst.class_name, property_name=name
                ) from None
            inst.set(name, token)
            return
        if value.type() != value_type.name:
            converted = s.convert(value, value_type.name)
            if converted is None:
                raise TypeMismatchError.expected(value_type.name, value.type())
            value = converted
    if not is_property_value(value):
        raise TypeMismatchError(f"cannot assign {value.type()} as property")
    inst.set(name, value)


# ---- Attributes ----


def get_attributes(s: State, inst: Instance) -> Dictionary:
    prop = s.world.attribute_property(inst)
    value = inst.get(prop)
    if value is None:
        return Dictionary()
    if not isinstance(value, Stringlike):
        raise TypeMismatchError(f"property {prop!r} is not string-like")
    try:
        return decode_attributes(value)
    except HostError as err:
        raise prefixed_error(f"decode attributes from {prop!r}", err) from err


def set_attributes(s: State, inst: Instance, attrs: Dictionary) -> None:
    prop = s.world.attribute_property(inst)
    try:
        data = encode_attributes(attrs)
    except HostError as err:
        raise prefixed_error(f"encode attributes to {prop!r}", err) from err
    inst.set(prop, BinaryString(data))


# ---- Symbols ----


def _push_overlay(s: State, value: Value | None, blocked: bool) -> Any:
    if blocked:
        return False
    return s.push(value) if value is not None else None


def _pull_overlay(s: State, lv: Any, type_name: str, label: str) -> tuple[Any, bool]:
    """Pull an overlay assignment: a value, False to block, or nil to inherit."""
    value = s.pull_any_of(lv, type_name, "bool", "nil")
    if isinstance(value, Bool):
        if value.value:
            raise TypeMismatchError(f"{label} cannot be true")
        return None, True
    if value.type() == "nil":
        return None, False
    return value, False


def _get_symbol(s: State, inst: Instance, name: str) -> Any:
    if name == "Reference":
        return s.push(String(inst.reference))
    if name == "IsService":
        return s.push(Bool(inst.is_service))
    if name == "Desc":
        desc = s.desc(inst)
        return s.push(desc) if desc is not None else None
    if name == "RawDesc":
        return _push_overlay(s, *inst.raw_desc())
    if name == "AttrConfig":
        config = s.world.attr_config(inst)
        return s.push(config) if config is not None else None
    if name == "RawAttrConfig":
        return _push_overlay(s, *inst.raw_attr_config())
    if name == "Metadata":
        meta = inst.metadata()
        if meta is not None:
            return s.push(Dictionary({k: String(v) for k, v in meta.items()}))
    raise ValidationError(f"symbol {name} is not a valid member", class_name=inst.class_name)


def _set_symbol(s: State, inst: Instance, name: str, lv: Any) -> None:
    if name == "Reference":
        inst.reference = s.pull(lv, "string").value
        return
    if name == "IsService":
        inst.is_service = s.pull(lv, "bool").value
        return
    if name in ("Desc", "RawDesc"):
        inst.set_desc(*_pull_overlay(s, lv, "RootDesc", "descriptor"))
        return
    if name in ("AttrConfig", "RawAttrConfig"):
        inst.set_attr_config(*_pull_overlay(s, lv, "AttrConfig", "AttrConfig"))
        return
    if name == "Metadata":
        meta = inst.metadata()
        if meta is not None:
            table: Dictionary = s.pull(lv, "Dictionary")
            entries = {}
            for key, value in table.items():
                if not isinstance(value, String):
                    raise TypeMismatchError(f"field {key}: string expected, got {value.type()}")
                entries[key] = value.value
            meta.clear()
            meta.update(entries)
            return
    raise ValidationError(f"symbol {name} is not a valid member", class_name=inst.class_name)


def _symbol_name(key: Any) -> str | None:
    if isinstance(key, UserData) and key.type_name == "Symbol":
        return key.value.name
    return None


# ---- Services ----


def get_service(s: State, inst: Instance, class_name: str) -> Instance:
    """Return the service of a class under a data model, creating it if absent."""
    desc = s.desc(inst)
    if desc is not None:
        class_desc = desc.get_class(class_name)
        if class_desc is None or not class_desc.has_tag(SERVICE_TAG):
            raise ValidationError(f"{class_name!r} is not a valid service")
    service = inst.find_first_child_of_class(class_name)
    if service is None:
        service = Instance(class_name)
        service.is_service = True
        service.name = class_name
        service.set_parent(inst)
    return service


def _get_service_method(s: State, inst: Instance):
    def call(*args: Any) -> Any:
        state = s.world.state()
        # Called with method syntax, the receiver comes first.
        if args and isinstance(args[0], UserData) and args[0].value is inst:
            args = args[1:]
        class_name = pull_arg(state, args, 0, "string").value
        return state.push(get_service(state, inst, class_name))

    return call


# ---- Metamethods ----


def _index(s: State, inst: Instance, key: Any) -> Any:
    symbol = _symbol_name(key)
    if symbol is not None:
        return _get_symbol(s, inst, symbol)
    name = s.pull(key, "string").value
    if name == "GetService" and inst.is_data_model():
        return _get_service_method(s, inst)
    return get_property(s, inst, name)


def _newindex(s: State, inst: Instance, key: Any, lv: Any) -> None:
    symbol = _symbol_name(key)
    if symbol is not None:
        _set_symbol(s, inst, symbol, lv)
        return
    name = s.pull(key, "string").value
    if name == "GetService" and inst.is_data_model():
        raise ValidationError(f"{name} cannot be assigned to", class_name=inst.class_name)
    set_property(s, inst, name, lv)


# ---- Members ----


def _set_class_name(s: State, inst: Instance, lv: Any) -> None:
    if inst.is_data_model():
        raise ValidationError("ClassName cannot be assigned to", class_name=inst.class_name)
    inst.class_name = s.pull(lv, "string").value


def _set_name(s: State, inst: Instance, lv: Any) -> None:
    inst.name = s.pull(lv, "string").value


def _set_parent(s: State, inst: Instance, lv: Any) -> None:
    parent = s.pull_any_of(lv, "Instance", "nil")
    inst.set_parent(parent if isinstance(parent, Instance) else None)


def _push_opt(s: State, inst: Instance | None) -> Any:
    return s.push(inst) if inst is not None else None


def _recurse(s: State, args: tuple[Any, ...]) -> bool:
    return pull_arg_opt(s, args, 1, "bool", Bool(False)).value


def _find_child(s: State, inst: Instance, *args: Any) -> Any:
    name = pull_arg(s, args, 0, "string").value
    return _push_opt(s, inst.find_first_child(name, _recurse(s, args)))


def _find_child_of_class(s: State, inst: Instance, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    return _push_opt(s, inst.find_first_child_of_class(class_name, _recurse(s, args)))


def _find_child_which_is_a(s: State, inst: Instance, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    found = inst.find_first_child_which_is_a(class_name, s.desc(inst), _recurse(s, args))
    return _push_opt(s, found)


def _find_ancestor(s: State, inst: Instance, *args: Any) -> Any:
    return _push_opt(s, inst.find_first_ancestor(pull_arg(s, args, 0, "string").value))


def _find_ancestor_of_class(s: State, inst: Instance, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    return _push_opt(s, inst.find_first_ancestor_of_class(class_name))


def _find_ancestor_which_is_a(s: State, inst: Instance, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    return _push_opt(s, inst.find_first_ancestor_which_is_a(class_name, s.desc(inst)))


def _get_attribute(s: State, inst: Instance, *args: Any) -> Any:
    name = pull_arg(s, args, 0, "string").value
    value = get_attributes(s, inst).get(name)
    return s.push(value) if value is not None else None


def _set_attribute(s: State, inst: Instance, *args: Any) -> None:
    name = pull_arg(s, args, 0, "string").value
    value = pull_arg(s, args, 1, "Variant")
    attrs = get_attributes(s, inst)
    attrs[name] = value
    set_attributes(s, inst, attrs)


def _set_attributes(s: State, inst: Instance, *args: Any) -> None:
    set_attributes(s, inst, pull_arg(s, args, 0, "Dictionary"))


def _is_a(s: State, inst: Instance, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    return s.push(Bool(inst.is_a(class_name, s.desc(inst))))


def _method(func, parameters: list[Parameter] | None = None, returns: str | None = None) -> Method:
    return Method(
        func,
        dump=lambda: Function(
            parameters=parameters or [],
            returns=[Parameter("", returns)] if returns is not None else [],
        ),
    )


def _find_params(name: str) -> list[Parameter]:
    return [Parameter(name, "string"), Parameter("recurse", "bool", "false")]


# ---- Constructors ----


def _pull_desc_arg(s: State, args: tuple[Any, ...], index: int) -> tuple[RootDesc | None, bool]:
    if index >= len(args):
        return None, False
    return _pull_overlay(s, arg(args, index), "RootDesc", "descriptor")


def _instance_new(s: State, *args: Any) -> Any:
    class_name = pull_arg(s, args, 0, "string").value
    parent = pull_arg_opt(s, args, 1, "Instance", None)
    desc, blocked = _pull_desc_arg(s, args, 2)
    if not blocked:
        check = desc if desc is not None else s.desc(None)
        if check is not None and check.get_class(class_name) is None:
            raise ValidationError(f"unable to create instance of type {class_name!r}")
    inst = Instance(class_name, parent)
    inst.set_desc(desc, blocked)
    return s.push(inst)


def _data_model_new(s: State, *args: Any) -> Any:
    desc, blocked = _pull_desc_arg(s, args, 0)
    data_model = new_data_model()
    data_model.set_desc(desc, blocked)
    return s.push(data_model)


def _install_data_model(s: State, env: dict[str, Any]) -> None:
    env["DataModel"] = {"new": lambda *args: _data_model_new(s.world.state(), *args)}


def instance() -> Reflector:
    return Reflector(
        name="Instance",
        push=push_userdata("Instance"),
        pull=pull_userdata("Instance", Instance),
        set_to=set_attribute_to(Instance),
        properties={
            "ClassName": Property(
                get=lambda s, v: s.push(String(v.class_name)),
                set=_set_class_name,
                dump=lambda: PropertyDump(value_type="string"),
            ),
            "Name": Property(
                get=lambda s, v: s.push(String(v.name)),
                set=_set_name,
                dump=lambda: PropertyDump(value_type="string"),
            ),
            "Parent": Property(
                get=lambda s, v: _push_opt(s, v.parent),
                set=_set_parent,
                dump=lambda: PropertyDump(value_type="Instance?"),
            ),
        },
        methods={
            "ClearAllChildren": _method(lambda s, v, *args: v.remove_all()),
            "Clone": _method(lambda s, v, *args: s.push(v.clone()), returns="Instance"),
            "Destroy": _method(lambda s, v, *args: v.set_parent(None)),
            "FindFirstAncestor": _method(
                _find_ancestor, [Parameter("name", "string")], "Instance?"
            ),
            "FindFirstAncestorOfClass": _method(
                _find_ancestor_of_class, [Parameter("className", "string")], "Instance?"
            ),
            "FindFirstAncestorWhichIsA": _method(
                _find_ancestor_which_is_a, [Parameter("className", "string")], "Instance?"
            ),
            "FindFirstChild": _method(_find_child, _find_params("name"), "Instance?"),
            "FindFirstChildOfClass": _method(
                _find_child_of_class, _find_params("className"), "Instance?"
            ),
            "FindFirstChildWhichIsA": _method(
                _find_child_which_is_a, _find_params("className"), "Instance?"
            ),
            "GetAttribute": _method(_get_attribute, [Parameter("attribute", "string")], "Variant"),
            "GetAttributes": _method(
                lambda s, v, *args: s.push(get_attributes(s, v)), returns="Dictionary"
            ),
            "GetChildren": _method(
                lambda s, v, *args: [s.push(c) for c in v.children()], returns="{Instance}"
            ),
            "GetDescendants": _method(
                lambda s, v, *args: [s.push(d) for d in v.iter_descendants()],
                returns="{Instance}",
            ),
            "GetFullName": _method(
                lambda s, v, *args: s.push(String(v.get_full_name())), returns="string"
            ),
            "IsA": _method(_is_a, [Parameter("className", "string")], "bool"),
            "IsAncestorOf": _method(
                lambda s, v, *args: s.push(Bool(v.is_ancestor_of(pull_arg(s, args, 0, "Instance")))),
                [Parameter("descendant", "Instance")],
                "bool",
            ),
            "IsDescendantOf": _method(
                lambda s, v, *args: s.push(Bool(v.is_descendant_of(pull_arg(s, args, 0, "Instance")))),
                [Parameter("ancestor", "Instance")],
                "bool",
            ),
            "SetAttribute": _method(
                _set_attribute, [Parameter("attribute", "string"), Parameter("value", "Variant")]
            ),
            "SetAttributes": _method(_set_attributes, [Parameter("attributes", "Dictionary")]),
        },
        constructors={
            "new": Constructor(
                _instance_new,
                dump=lambda: MultiFunction(
                    signatures=[
                        Function(
                            parameters=[
                                Parameter("className", "string"),
                                Parameter("parent", "Instance", "nil"),
                                Parameter("descriptor", "RootDesc | bool", "nil"),
                            ],
                            returns=[Parameter("", "Instance")],
                            can_error=True,
                        )
                    ]
                ),
            ),
        },
        metatable={
            "__tostring": lambda s, v: str(v),
            "__eq": lambda s, v, op: v is op,
            "__index": _index,
            "__newindex": _newindex,
        },
        environment=_install_data_model,
        types=[symbol, attr_config, root_desc, dictionary],
        dump=lambda: TypeDef(summary="A node in the instance tree."),
    )

