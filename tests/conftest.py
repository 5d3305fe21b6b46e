"""
Shared test fixtures for the part-recipe generator.
"""
import dataclasses
import sys
from pathlib import Path

import pytest

# Add src/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from part_generator.builder import generate
from part_generator.contracts import (
    BoxParams,
    CylinderParams,
    Difficulty,
    Operation,
    PartRecipe,
    Primitive,
    Transform,
    Vec3,
)
from part_generator.difficulty import policy_for

FIXED_CREATED_AT = "2024-01-01T00:00:00+00:00"

# Regression fixture seed: block 100x50x25mm with a centred 10mm through-hole.
BLOCK_HOLE_SEED = 12345


def make_block_hole(created_at: str = FIXED_CREATED_AT) -> PartRecipe:
    """Seed 12345 Beginner recipe pinned to the reference block-with-hole."""
    generated = generate(BLOCK_HOLE_SEED, Difficulty.BEGINNER, created_at=created_at)
    base = Primitive(
        id="p0",
        params=BoxParams(100.0, 50.0, 25.0),
        transform=Transform(position=Vec3()),
        metadata={"role": "base"},
    )
    # Through-hole: cutter length is 2x the largest extent.
    hole = Primitive(
        id="p1",
        params=CylinderParams(10.0, 200.0, "z"),
        transform=Transform(position=Vec3()),
        metadata={"tag": "through-hole", "role": "cutter", "through": True, "feature": 1},
    )
    op = Operation(
        id="op1",
        op="subtract",
        target_id="p0",
        tool_id="p1",
        metadata={"tag": "through-hole", "through": True, "group": 0, "feature": 1},
    )
    metadata = dict(generated.metadata)
    metadata.update(
        featureCount=1, csgDepth=1, primitiveKinds=2, tags=["through-hole"],
    )
    return generated.with_changes(
        name="Block - through-hole",
        bounding_mm=Vec3(100.0, 50.0, 25.0),
        primitives=[base, hole],
        operations=[op],
        metadata=metadata,
    )


def make_l_bracket(created_at: str = FIXED_CREATED_AT) -> PartRecipe:
    """80x40x60 block cut to an L (10mm flange and web) with a hole in the web."""
    base = Primitive("p0", BoxParams(80.0, 40.0, 60.0), metadata={"role": "base"})
    notch = Primitive(
        "p1",
        BoxParams(100.0, 35.0, 55.0),
        Transform(position=Vec3(0.0, -7.5, 7.5)),
        metadata={"tag": "notch", "role": "cutter", "through": True, "feature": 1},
    )
    hole = Primitive(
        "p2",
        CylinderParams(4.0, 120.0, "y"),
        Transform(position=Vec3(0.0, 0.0, 10.0)),
        metadata={"tag": "through-hole", "role": "cutter", "through": True, "feature": 2},
    )
    operations = (
        Operation("op1", "subtract", "p0", "p1", {"tag": "notch", "through": True, "group": 0}),
        Operation("op2", "subtract", "op1", "p2", {"tag": "through-hole", "through": True, "group": 0}),
    )
    return PartRecipe(
        id="22222",
        seed=22222,
        name="L-Bracket",
        difficulty=Difficulty.BEGINNER,
        bounding_mm=Vec3(80.0, 40.0, 60.0),
        primitives=(base, notch, hole),
        operations=operations,
        created_at=created_at,
        metadata={"featureCount": 2, "csgDepth": 2, "primitiveKinds": 2},
    )


@pytest.fixture
def block_hole():
    return make_block_hole()


@pytest.fixture
def l_bracket():
    return make_l_bracket()


@pytest.fixture
def beginner_policy():
    return policy_for(Difficulty.BEGINNER)


@pytest.fixture
def intermediate_policy():
    return policy_for(Difficulty.INTERMEDIATE)


@pytest.fixture
def expert_policy():
    return policy_for(Difficulty.EXPERT)


@pytest.fixture
def roomy_expert_policy(expert_policy):
    """Expert policy with a fixed 300x300x150 block and exactly six features."""
    return dataclasses.replace(
        expert_policy,
        width_range=(300.0, 300.0),
        depth_range=(300.0, 300.0),
        height_range=(150.0, 150.0),
        feature_count_range=(6, 6),
    )
