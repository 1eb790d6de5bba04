"""Shared fixtures for typed_host tests."""

from __future__ import annotations

import pytest

from typed_host import HostConfig, World, new_data_model, parse_desc


SCHEMA = """
# Test schema.
class Instance {}
class DataModel : Instance {}
class BasePart : Instance {
    Size: Vector3,
    Transparency: float,
    Anchored: bool,
    Material: Enum.Material,
}
class Part : BasePart {
    Target: Class.BasePart,
    Owner: Class.Model,
    Shape: Enum.PartType,
    Ghost: Class.Unknown,
    Broken: Enum.Unknown,
    function Resize(normal: Enum.NormalId, deltaAmount: int = 1) -> bool,
}
class Model : Instance {
    PrimaryPart: Class.BasePart,
}
class Folder : Instance {}
class Workspace : Model [Service] {}
class Lighting : Instance [Service] {}
enum Material { Plastic = 256, Wood = 512, Slate = 800 }
enum PartType { Ball, Block, Cylinder }
enum NormalId { Right, Top, Back }
"""


@pytest.fixture
def world():
    """Create a frozen world with the built-in types, formats and sources."""
    w = World.default(HostConfig())
    yield w
    w.close()


@pytest.fixture
def state(world):
    """Create the state of a single top-level call."""
    return world.state()


@pytest.fixture
def desc():
    """Parse the test schema."""
    return parse_desc(SCHEMA)


@pytest.fixture
def schema_world(world, desc):
    """A world whose global descriptor is the test schema."""
    world.global_desc = desc
    return world


@pytest.fixture
def data_model():
    """Create an empty data model."""
    return new_data_model()
