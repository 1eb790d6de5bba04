"""Differences between descriptor tables.

``diff_desc`` lists the actions that turn one descriptor table into another,
and ``patch_desc`` applies such a list. Action fields hold plain JSON data in
the shape written by the desc.json format, so actions serialize directly.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from typed_host.descriptors import (
    ROOT_SUPERCLASS,
    ClassDesc,
    EnumDesc,
    EnumItemDesc,
    MemberDesc,
    PropertyDesc,
    RootDesc,
    class_to_json,
    enum_item_to_json,
    enum_to_json,
    member_from_json,
    member_to_json,
)
from typed_host.types import Value

logger = logging.getLogger(__name__)

ADD = "Add"
REMOVE = "Remove"
CHANGE = "Change"
ACTION_TYPES = (REMOVE, CHANGE, ADD)

CLASS = "Class"
PROPERTY = "Property"
FUNCTION = "Function"
ENUM = "Enum"
ENUM_ITEM = "EnumItem"
ELEMENTS = (CLASS, PROPERTY, FUNCTION, ENUM, ENUM_ITEM)

# Keys that identify an element rather than describe it.
_IDENTITY_KEYS = {"Name", "MemberType", "Members", "Items"}


@dataclass
class DescAction(Value):
    """One change to a descriptor table.

    ``primary`` names a class or enum; ``secondary`` names a member or item
    and is empty for class and enum actions. ``fields`` holds the values of an
    added element, or only the changed values of a changed element.
    """

    type_name = "DescAction"

    action: str
    element: str
    primary: str
    secondary: str = ""
    fields: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.action not in ACTION_TYPES:
            raise ValueError(f"unknown action type {self.action!r}")
        if self.element not in ELEMENTS:
            raise ValueError(f"unknown element {self.element!r}")
        if self.element in (CLASS, ENUM) and self.secondary:
            raise ValueError(f"{self.element} action cannot name a secondary element")
        if self.element not in (CLASS, ENUM) and not self.secondary:
            raise ValueError(f"{self.element} action requires a secondary element")

    @property
    def target(self) -> str:
        if self.secondary:
            return f"{self.primary}.{self.secondary}"
        return self.primary

    def __str__(self) -> str:
        text = f"{self.action} {self.element} {self.target}"
        if self.action == CHANGE and self.fields:
            text += ": " + ", ".join(sorted(self.fields))
        return text

    def to_json(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "Type": self.action,
            "Element": self.element,
            "Primary": self.primary,
        }
        if self.secondary:
            data["Secondary"] = self.secondary
        if self.fields:
            data["Fields"] = self.fields
        return data

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> DescAction:
        fields = data.get("Fields", {})
        if not isinstance(fields, dict):
            raise TypeError("Fields must be an object")
        return cls(
            action=data["Type"],
            element=data["Element"],
            primary=data["Primary"],
            secondary=data.get("Secondary", ""),
            fields=dict(fields),
        )


def _fields(data: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in data.items() if k not in _IDENTITY_KEYS}


def _changed(prev: dict[str, Any], next: dict[str, Any]) -> dict[str, Any]:
    changed = {k: v for k, v in next.items() if prev.get(k) != v}
    # A field that disappears is written as null.
    changed.update({k: None for k in prev if k not in next})
    return changed


def _member_element(member: MemberDesc) -> str:
    return PROPERTY if isinstance(member, PropertyDesc) else FUNCTION


def _diff_members(prev: ClassDesc | None, next: ClassDesc, actions: list[DescAction]) -> None:
    prev_members = prev.members if prev is not None else {}
    for name, member in prev_members.items():
        if name not in next.members:
            actions.append(DescAction(REMOVE, _member_element(member), next.name, name))
    for name, member in next.members.items():
        element = _member_element(member)
        old = prev_members.get(name)
        fields = _fields(member_to_json(member))
        if old is not None and _member_element(old) != element:
            actions.append(DescAction(REMOVE, _member_element(old), next.name, name))
            old = None
        if old is None:
            actions.append(DescAction(ADD, element, next.name, name, fields))
            continue
        changed = _changed(_fields(member_to_json(old)), fields)
        if changed:
            actions.append(DescAction(CHANGE, element, next.name, name, changed))


def _diff_items(prev: EnumDesc | None, next: EnumDesc, actions: list[DescAction]) -> None:
    prev_items = prev.items if prev is not None else {}
    for name in prev_items:
        if name not in next.items:
            actions.append(DescAction(REMOVE, ENUM_ITEM, next.name, name))
    for name, item in next.items.items():
        fields = _fields(enum_item_to_json(item))
        old = prev_items.get(name)
        if old is None:
            actions.append(DescAction(ADD, ENUM_ITEM, next.name, name, fields))
            continue
        changed = _changed(_fields(enum_item_to_json(old)), fields)
        if changed:
            actions.append(DescAction(CHANGE, ENUM_ITEM, next.name, name, changed))


def diff_desc(prev: RootDesc | None, next: RootDesc | None) -> list[DescAction]:
    """List the actions that turn prev into next.

    A missing table is treated as empty. Removing a class or enum removes its
    members or items with it, so they get no actions of their own.
    """
    if prev is None:
        prev = RootDesc()
    if next is None:
        next = RootDesc()
    actions: list[DescAction] = []
    for name in prev.classes:
        if name not in next.classes:
            actions.append(DescAction(REMOVE, CLASS, name))
    for name, class_desc in next.classes.items():
        old = prev.classes.get(name)
        fields = class_to_json(class_desc, members=False)
        if old is None:
            actions.append(DescAction(ADD, CLASS, name, fields=_fields(fields)))
        else:
            changed = _changed(_fields(class_to_json(old, members=False)), _fields(fields))
            if changed:
                actions.append(DescAction(CHANGE, CLASS, name, fields=changed))
        _diff_members(old, class_desc, actions)
    for name in prev.enums:
        if name not in next.enums:
            actions.append(DescAction(REMOVE, ENUM, name))
    for name, enum_desc in next.enums.items():
        old = prev.enums.get(name)
        fields = _fields(enum_to_json(enum_desc, items=False))
        if old is None:
            actions.append(DescAction(ADD, ENUM, name, fields=fields))
        else:
            changed = _changed(_fields(enum_to_json(old, items=False)), fields)
            if changed:
                actions.append(DescAction(CHANGE, ENUM, name, fields=changed))
        _diff_items(old, enum_desc, actions)
    return actions


# ---- Patching ----


def _set_tags(target: Any, fields: dict[str, Any]) -> None:
    if "Tags" in fields:
        target.tags = set(fields["Tags"] or [])


def _apply_class(class_desc: ClassDesc, fields: dict[str, Any]) -> None:
    if "Superclass" in fields:
        superclass = fields["Superclass"] or ""
        class_desc.superclass = "" if superclass == ROOT_SUPERCLASS else superclass
    _set_tags(class_desc, fields)


def _apply_member(member: MemberDesc, fields: dict[str, Any]) -> MemberDesc:
    data = member_to_json(member)
    data.update({k: v for k, v in fields.items() if v is not None})
    for k, v in fields.items():
        if v is None:
            data.pop(k, None)
    updated = member_from_json(data)
    return updated if updated is not None else member


def _apply_enum_item(item: EnumItemDesc, fields: dict[str, Any]) -> None:
    if "Value" in fields:
        item.value = fields["Value"]
    if "Index" in fields:
        item.index = fields["Index"]
    _set_tags(item, fields)


def _patch_class(root: RootDesc, action: DescAction) -> bool:
    if action.action == REMOVE:
        return root.classes.pop(action.primary, None) is not None
    class_desc = root.classes.get(action.primary)
    if action.action == ADD:
        if class_desc is not None:
            return False
        class_desc = ClassDesc(name=action.primary)
        root.add_class(class_desc)
    elif class_desc is None:
        return False
    _apply_class(class_desc, action.fields)
    return True


def _patch_member(root: RootDesc, action: DescAction) -> bool:
    class_desc = root.classes.get(action.primary)
    if class_desc is None:
        return False
    member = class_desc.members.get(action.secondary)
    if action.action == REMOVE:
        if member is None or _member_element(member) != action.element:
            return False
        del class_desc.members[action.secondary]
        return True
    if action.action == ADD:
        if member is not None:
            return False
        data = {"MemberType": action.element, "Name": action.secondary, **action.fields}
        try:
            new_member = member_from_json(data)
        except (KeyError, TypeError):
            return False
        if new_member is None:
            return False
        class_desc.add_member(new_member)
        return True
    if member is None or _member_element(member) != action.element:
        return False
    class_desc.members[action.secondary] = _apply_member(member, action.fields)
    return True


def _patch_enum(root: RootDesc, action: DescAction) -> bool:
    if action.action == REMOVE:
        return root.enums.pop(action.primary, None) is not None
    enum_desc = root.enums.get(action.primary)
    if action.action == ADD:
        if enum_desc is not None:
            return False
        enum_desc = EnumDesc(name=action.primary)
        root.add_enum(enum_desc)
    elif enum_desc is None:
        return False
    _set_tags(enum_desc, action.fields)
    return True


def _patch_enum_item(root: RootDesc, action: DescAction) -> bool:
    enum_desc = root.enums.get(action.primary)
    if enum_desc is None:
        return False
    item = enum_desc.items.get(action.secondary)
    if action.action == REMOVE:
        return enum_desc.items.pop(action.secondary, None) is not None
    if action.action == ADD:
        if item is not None:
            return False
        item = EnumItemDesc(name=action.secondary, value=0, index=len(enum_desc.items))
        enum_desc.add_item(item)
    elif item is None:
        return False
    _apply_enum_item(item, action.fields)
    return True


_PATCHERS = {
    CLASS: _patch_class,
    PROPERTY: _patch_member,
    FUNCTION: _patch_member,
    ENUM: _patch_enum,
    ENUM_ITEM: _patch_enum_item,
}


def patch_desc(root: RootDesc, actions: list[DescAction]) -> int:
    """Apply actions to root in order and return how many applied.

    An action that does not fit the table, such as adding a class that exists
    or changing a member that does not, is skipped. Enum types are regenerated
    when any enum or enum item changed.
    """
    applied = 0
    enums_changed = False
    for action in actions:
        if _PATCHERS[action.element](root, action):
            applied += 1
            enums_changed = enums_changed or action.element in (ENUM, ENUM_ITEM)
        else:
            logger.debug("skipped descriptor action: %s", action)
    if enums_changed:
        root.generate_enum_types()
    return applied