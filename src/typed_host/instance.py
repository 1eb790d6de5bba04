"""Instances: nodes of the domain object tree.

An Instance owns its children; the parent link is a back-reference. Objects
are their own handles, so an instance may also be referred to by the
properties of other instances without being owned by them.
"""

from __future__ import annotations

import secrets
from typing import TYPE_CHECKING, Iterator

from typed_host.errors import ValidationError
from typed_host.types import AttrConfig, String, Value

if TYPE_CHECKING:
    from typed_host.descriptors import RootDesc


DATA_MODEL_CLASS = "DataModel"


def generate_reference() -> str:
    """Generate a unique reference id: "RBX" followed by 32 hex digits."""
    return "RBX" + secrets.token_hex(16).upper()


class Instance(Value):
    """A node in the instance tree."""

    type_name = "Instance"
    is_property_value = True

    def __init__(self, class_name: str, parent: Instance | None = None) -> None:
        self.class_name = class_name
        self.reference = generate_reference()
        self.is_service = False
        self._properties: dict[str, Value] = {"Name": String(class_name)}
        self._parent: Instance | None = None
        self._children: list[Instance] = []
        self._desc: RootDesc | None = None
        self._desc_blocked = False
        self._attr_config: AttrConfig | None = None
        self._attr_config_blocked = False
        self._metadata: dict[str, str] | None = None
        if parent is not None:
            self.set_parent(parent)

    # ---- Properties ----

    @property
    def name(self) -> str:
        value = self._properties.get("Name")
        return value.value if isinstance(value, String) else ""

    @name.setter
    def name(self, name: str) -> None:
        self._properties["Name"] = String(name)

    def get(self, name: str) -> Value | None:
        """Get a stored property value, or None if it is unset."""
        return self._properties.get(name)

    def set(self, name: str, value: Value | None) -> None:
        """Store a property value. None removes the property."""
        if value is None:
            self._properties.pop(name, None)
        else:
            self._properties[name] = value

    def properties(self) -> dict[str, Value]:
        return dict(self._properties)

    # ---- Descriptor and attribute overlays ----

    def raw_desc(self) -> tuple[RootDesc | None, bool]:
        """Return the explicit descriptor and whether inheritance is blocked."""
        return self._desc, self._desc_blocked

    def set_desc(self, desc: RootDesc | None, blocked: bool = False) -> None:
        """Set the explicit descriptor. Blocking clears it and stops inheritance."""
        if blocked:
            self._desc, self._desc_blocked = None, True
        else:
            self._desc, self._desc_blocked = desc, False

    def desc(self) -> tuple[RootDesc | None, bool]:
        """Resolve the descriptor from this instance and its ancestors.

        Returns the descriptor found and whether a block was reached first.
        """
        inst: Instance | None = self
        while inst is not None:
            if inst._desc_blocked:
                return None, True
            if inst._desc is not None:
                return inst._desc, False
            inst = inst._parent
        return None, False

    def raw_attr_config(self) -> tuple[AttrConfig | None, bool]:
        return self._attr_config, self._attr_config_blocked

    def set_attr_config(self, config: AttrConfig | None, blocked: bool = False) -> None:
        if blocked:
            self._attr_config, self._attr_config_blocked = None, True
        else:
            self._attr_config, self._attr_config_blocked = config, False

    def attr_config(self) -> tuple[AttrConfig | None, bool]:
        """Resolve the attribute configuration like ``desc``."""
        inst: Instance | None = self
        while inst is not None:
            if inst._attr_config_blocked:
                return None, True
            if inst._attr_config is not None:
                return inst._attr_config, False
            inst = inst._parent
        return None, False

    # ---- Data model ----

    def is_data_model(self) -> bool:
        return self._metadata is not None

    def metadata(self) -> dict[str, str] | None:
        """Metadata of a data model, or None for other instances."""
        return self._metadata

    # ---- Tree ----

    @property
    def parent(self) -> Instance | None:
        return self._parent

    def set_parent(self, parent: Instance | None) -> None:
        """Move the instance under a new parent, or detach it with None.

        Raises ValidationError, leaving the tree unchanged, if the move would
        create a cycle or parent a data model.
        """
        if parent is self._parent:
            return
        if parent is not None:
            if parent is self:
                raise ValidationError(f"attempt to set {self.name} as its own parent")
            if self.is_ancestor_of(parent):
                raise ValidationError(
                    f"attempt to set parent of {self.name} to {parent.name} "
                    "would result in circular reference"
                )
            if self.is_data_model():
                raise ValidationError(f"{self.class_name} cannot have a parent")
        if self._parent is not None:
            self._parent._children.remove(self)
        self._parent = parent
        if parent is not None:
            parent._children.append(self)

    def children(self) -> list[Instance]:
        return list(self._children)

    def remove_all(self) -> None:
        """Detach every child. The children are orphaned, not destroyed."""
        for child in self._children:
            child._parent = None
        self._children.clear()

    def iter_descendants(self) -> Iterator[Instance]:
        """Yield descendants depth-first, parents before their children."""
        stack = list(reversed(self._children))
        while stack:
            inst = stack.pop()
            yield inst
            stack.extend(reversed(inst._children))

    def descendants(self) -> list[Instance]:
        return list(self.iter_descendants())

    def ancestors(self) -> Iterator[Instance]:
        inst = self._parent
        while inst is not None:
            yield inst
            inst = inst._parent

    def is_ancestor_of(self, descendant: Instance | None) -> bool:
        if descendant is None:
            return False
        return any(a is self for a in descendant.ancestors())

    def is_descendant_of(self, ancestor: Instance | None) -> bool:
        if ancestor is None:
            return False
        return ancestor.is_ancestor_of(self)

    def is_a(self, class_name: str, desc: RootDesc | None = None) -> bool:
        """Whether the class is class_name, or inherits from it under desc."""
        if self.class_name == class_name:
            return True
        return desc is not None and desc.is_a(self.class_name, class_name)

    def _search(self, recurse: bool) -> Iterator[Instance]:
        return self.iter_descendants() if recurse else iter(self._children)

    def find_first_child(self, name: str, recurse: bool = False) -> Instance | None:
        return next((c for c in self._search(recurse) if c.name == name), None)

    def find_first_child_of_class(self, class_name: str, recurse: bool = False) -> Instance | None:
        return next((c for c in self._search(recurse) if c.class_name == class_name), None)

    def find_first_child_which_is_a(
        self, class_name: str, desc: RootDesc | None = None, recurse: bool = False
    ) -> Instance | None:
        return next((c for c in self._search(recurse) if c.is_a(class_name, desc)), None)

    def find_first_ancestor(self, name: str) -> Instance | None:
        return next((a for a in self.ancestors() if a.name == name), None)

    def find_first_ancestor_of_class(self, class_name: str) -> Instance | None:
        return next((a for a in self.ancestors() if a.class_name == class_name), None)

    def find_first_ancestor_which_is_a(
        self, class_name: str, desc: RootDesc | None = None
    ) -> Instance | None:
        return next((a for a in self.ancestors() if a.is_a(class_name, desc)), None)

    def get_full_name(self) -> str:
        """Names from the root down to this instance, joined with ".".

        A data model root is not included.
        """
        names = [self.name]
        for ancestor in self.ancestors():
            if ancestor.is_data_model():
                break
            names.append(ancestor.name)
        return ".".join(reversed(names))

    def clone(self) -> Instance:
        """Deep-copy the instance and its descendants.

        The copy has no parent and fresh reference ids. Properties that refer
        to instances inside the copied subtree are redirected to the copies.
        """
        copies: dict[int, Instance] = {}

        def copy(inst: Instance) -> Instance:
            new = Instance.__new__(Instance)
            new.class_name = inst.class_name
            new.reference = generate_reference()
            new.is_service = inst.is_service
            new._properties = dict(inst._properties)
            new._parent = None
            new._children = []
            new._desc = inst._desc
            new._desc_blocked = inst._desc_blocked
            new._attr_config = inst._attr_config
            new._attr_config_blocked = inst._attr_config_blocked
            new._metadata = dict(inst._metadata) if inst._metadata is not None else None
            copies[id(inst)] = new
            for child in inst._children:
                child_copy = copy(child)
                child_copy._parent = new
                new._children.append(child_copy)
            return new

        root = copy(self)
        for new in (root, *root.iter_descendants()):
            for name, value in new._properties.items():
                if isinstance(value, Instance) and id(value) in copies:
                    new._properties[name] = copies[id(value)]
        return root

    def __str__(self) -> str:
        return self.name

    def __repr__(self) -> str:
        return f"<Instance {self.class_name} {self.name!r}>"


def new_data_model() -> Instance:
    """Create the root of a data model, which carries metadata."""
    inst = Instance(DATA_MODEL_CLASS)
    inst._metadata = {}
    return inst
