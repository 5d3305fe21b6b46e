"""
Legacy Beginner records and their upgrade path.

Before the primitive/operation model, Beginner parts were stored as a box
plus a list of holes:

    {id, seed, difficulty: "Beginner", name, bounding_mm: {x, y, z},
     holes: [{x, y, z, r, axis}], createdAt}

`migrate_legacy_beginner` turns such a record into a new PartRecipe; it
never edits the record it was given.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from part_generator.builder import BASE_ID, csg_depth
from part_generator.contracts import (
    AXES,
    GENERATOR_VERSION,
    BoxParams,
    CylinderParams,
    Difficulty,
    Operation,
    PartRecipe,
    Primitive,
    SchemaViolation,
    Transform,
    Vec3,
    round_half_up,
    utc_now_iso,
)
from part_generator.rng import SeededRandom
from part_generator.schema import assert_valid_recipe
from part_generator.serialization import recipe_from_dict

logger = logging.getLogger(__name__)

LEGACY_SCHEMA = "BeginnerRecipe"
LEGACY_NAME = "Block - Basic"


def generate_legacy_beginner(seed: int, created_at: Optional[str] = None) -> Dict[str, Any]:
    """Produce a legacy record with the old draw order (used for fixtures)."""
    rng = SeededRandom(seed)
    x = round_half_up(50 + rng.next() * 150)
    y = round_half_up(20 + rng.next() * 120)
    z = round_half_up(10 + rng.next() * 140)
    hole_count = 1 + math.floor(rng.next() * 3)

    holes = []
    for _ in range(hole_count):
        hx = round_half_up((rng.next() - 0.5) * (x - 10))
        hy = round_half_up((rng.next() - 0.5) * (y - 10))
        hz = round_half_up((rng.next() - 0.5) * (z - 10))
        r = round_half_up(3 + rng.next() * min(x, y) * 0.15)
        axis = AXES[math.floor(rng.next() * 3)]
        holes.append({"x": hx, "y": hy, "z": hz, "r": r, "axis": axis})

    return {
        "id": str(seed),
        "seed": seed,
        "difficulty": Difficulty.BEGINNER.value,
        "name": LEGACY_NAME,
        "bounding_mm": {"x": x, "y": y, "z": z},
        "holes": holes,
        "createdAt": created_at or utc_now_iso(),
    }


def is_legacy_record(doc: Any) -> bool:
    return isinstance(doc, dict) and "holes" in doc and "primitives" not in doc


def validate_legacy_record(record: Any) -> List[str]:
    if not isinstance(record, dict):
        return ["Legacy record must be an object"]
    issues = []
    seed = record.get("seed")
    if not isinstance(seed, int) or isinstance(seed, bool):
        issues.append("'seed' must be an integer")
    if record.get("difficulty", Difficulty.BEGINNER.value) != Difficulty.BEGINNER.value:
        issues.append(f"Legacy records are Beginner only, got {record.get('difficulty')!r}")

    bounds = record.get("bounding_mm")
    if not isinstance(bounds, dict) or not all(_positive(bounds.get(a)) for a in AXES):
        issues.append("'bounding_mm' must have positive numeric x, y, z")

    holes = record.get("holes")
    if not isinstance(holes, list):
        issues.append("'holes' must be a list")
        return issues
    for i, hole in enumerate(holes):
        if not isinstance(hole, dict):
            issues.append(f"holes[{i}] must be an object")
            continue
        for key in AXES:
            if not _number(hole.get(key)):
                issues.append(f"holes[{i}].{key} must be a number")
        if not _positive(hole.get("r")):
            issues.append(f"holes[{i}].r must be a positive number")
        if hole.get("axis", "z") not in AXES:
            issues.append(f"holes[{i}].axis must be one of {', '.join(AXES)}")
    return issues


def migrate_legacy_beginner(record: Dict[str, Any]) -> PartRecipe:
    """Upgrade a legacy record: base box p0, one through cylinder per hole."""
    issues = validate_legacy_record(record)
    if issues:
        logger.warning("Rejecting legacy record %s: %s", _record_id(record), "; ".join(issues))
        raise SchemaViolation(issues)

    b = record["bounding_mm"]
    bounds = Vec3(float(b["x"]), float(b["y"]), float(b["z"]))
    cutter_length = 2.0 * max(bounds.as_tuple())

    primitives = [
        Primitive(
            id=BASE_ID,
            params=BoxParams(bounds.x, bounds.y, bounds.z),
            transform=Transform(position=Vec3()),
            metadata={"role": "base"},
        )
    ]
    operations = []
    for i, hole in enumerate(record["holes"], start=1):
        tool = Primitive(
            id=f"p{i}",
            params=CylinderParams(float(hole["r"]), cutter_length, hole.get("axis", "z")),
            transform=Transform(
                position=Vec3(float(hole["x"]), float(hole["y"]), float(hole["z"])),
            ),
            metadata={"tag": "through-hole", "role": "cutter", "through": True, "feature": i},
        )
        primitives.append(tool)
        operations.append(
            Operation(
                id=f"op{i}",
                op="subtract",
                target_id=BASE_ID,
                tool_id=tool.id,
                metadata={"tag": "through-hole", "through": True, "group": 0, "feature": i},
            )
        )

    seed = record["seed"]
    recipe = PartRecipe(
        id=str(seed),
        seed=seed,
        name=record.get("name") or LEGACY_NAME,
        difficulty=Difficulty.BEGINNER,
        bounding_mm=bounds,
        primitives=tuple(primitives),
        operations=tuple(operations),
        created_at=record.get("createdAt") or utc_now_iso(),
        metadata={
            "migratedFromLegacy": True,
            "sourceSchema": LEGACY_SCHEMA,
            "featureCount": len(operations),
            "csgDepth": csg_depth(operations),
            "primitiveKinds": len({p.kind for p in primitives}),
            "tags": [o.tag for o in operations],
            "generatorVersion": GENERATOR_VERSION,
        },
    )
    assert_valid_recipe(recipe)
    logger.info("Migrated legacy record %s with %d holes", recipe.id, len(operations))
    return recipe


def load_recipe_document(doc: Dict[str, Any]) -> PartRecipe:
    """Load a stored document, upgrading legacy records on the way."""
    if is_legacy_record(doc):
        return migrate_legacy_beginner(doc)
    return recipe_from_dict(doc)


def _number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _positive(value: Any) -> bool:
    return _number(value) and value > 0


def _record_id(record: Any) -> str:
    return str(record.get("id", "?")) if isinstance(record, dict) else "?"
