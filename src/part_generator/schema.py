"""
Structural validation for recipe documents and recipe objects.

Checks return a list of human-readable issues (empty means valid); the
`assert_*` wrappers raise SchemaViolation carrying that list.
"""
from __future__ import annotations

import numbers
from typing import Any, Dict, List, Set

from part_generator.contracts import (
    AXES,
    BOOLEAN_OPS,
    PARAMS_BY_KIND,
    UNITS_MM,
    BoxParams,
    CustomParams,
    Difficulty,
    PartRecipe,
    SchemaViolation,
    TorusParams,
)

BOUNDS_TOLERANCE_MM = 1e-6

_REQUIRED_DOC_KEYS = (
    "id", "seed", "name", "difficulty", "units", "bounding_mm",
    "primitives", "operations", "createdAt",
)
_REQUIRED_PARAMS: Dict[str, tuple] = {
    "box": ("width", "depth", "height"),
    "cylinder": ("radius", "height"),
    "sphere": ("radius",),
    "cone": ("radius_bottom", "radius_top", "height"),
    "torus": ("major_radius", "minor_radius"),
    "custom": ("radius", "height"),
}


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_recipe_document(doc: Any) -> List[str]:
    """Check the JSON-like document shape before it is turned into objects."""
    if not isinstance(doc, dict):
        return ["Recipe document must be an object"]

    issues: List[str] = []
    for key in _REQUIRED_DOC_KEYS:
        if key not in doc:
            issues.append(f"Missing required field '{key}'")
    if issues:
        return issues

    if not isinstance(doc["id"], str):
        issues.append("'id' must be a string")
    if not isinstance(doc["seed"], int) or isinstance(doc["seed"], bool):
        issues.append("'seed' must be an integer")
    if not isinstance(doc["name"], str):
        issues.append("'name' must be a string")
    if doc["difficulty"] not in [d.value for d in Difficulty]:
        issues.append(f"Unknown difficulty {doc['difficulty']!r}")
    if doc["units"] != UNITS_MM:
        issues.append(f"Units must be '{UNITS_MM}', got {doc['units']!r}")
    if not isinstance(doc["createdAt"], str):
        issues.append("'createdAt' must be an ISO-8601 string")

    bounds = doc["bounding_mm"]
    if not isinstance(bounds, dict) or not all(_is_number(bounds.get(a)) for a in AXES):
        issues.append("'bounding_mm' must have numeric x, y, z")

    primitives = doc["primitives"]
    operations = doc["operations"]
    if not isinstance(primitives, list) or not primitives:
        issues.append("'primitives' must be a non-empty list")
        primitives = []
    if not isinstance(operations, list):
        issues.append("'operations' must be a list")
        operations = []

    for index, prim in enumerate(primitives):
        issues.extend(_validate_primitive_doc(index, prim))
    for index, op in enumerate(operations):
        issues.extend(_validate_operation_doc(index, op))

    if "metadata" in doc and not isinstance(doc["metadata"], dict):
        issues.append("'metadata' must be an object")
    return issues


def _validate_primitive_doc(index: int, prim: Any) -> List[str]:
    where = f"primitives[{index}]"
    if not isinstance(prim, dict):
        return [f"{where} must be an object"]
    issues = []
    if not isinstance(prim.get("id"), str):
        issues.append(f"{where}.id must be a string")
    kind = prim.get("kind")
    if kind not in PARAMS_BY_KIND:
        issues.append(f"{where}.kind {kind!r} is not a known primitive kind")
        return issues
    params = prim.get("params")
    if not isinstance(params, dict):
        issues.append(f"{where}.params must be an object")
        return issues
    for name in _REQUIRED_PARAMS[kind]:
        if not _is_number(params.get(name)):
            issues.append(f"{where}.params.{name} must be a number")
    if "axis" in params and params["axis"] not in AXES:
        issues.append(f"{where}.params.axis must be one of {', '.join(AXES)}")
    transform = prim.get("transform")
    if transform is not None:
        if not isinstance(transform, dict):
            issues.append(f"{where}.transform must be an object")
        else:
            for part in ("position", "rotation", "scale"):
                vec = transform.get(part)
                if vec is not None and not (
                    isinstance(vec, dict) and all(_is_number(vec.get(a, 0.0)) for a in AXES)
                ):
                    issues.append(f"{where}.transform.{part} must have numeric x, y, z")
    return issues


def _validate_operation_doc(index: int, op: Any) -> List[str]:
    where = f"operations[{index}]"
    if not isinstance(op, dict):
        return [f"{where} must be an object"]
    issues = []
    for key in ("id", "targetId", "toolId"):
        if not isinstance(op.get(key), str):
            issues.append(f"{where}.{key} must be a string")
    if op.get("op") not in BOOLEAN_OPS:
        issues.append(f"{where}.op must be one of {', '.join(BOOLEAN_OPS)}")
    return issues


def check_recipe_invariants(recipe: PartRecipe) -> List[str]:
    """Referential integrity, positivity and base/bounds consistency."""
    issues: List[str] = []

    prim_ids: Set[str] = set()
    for prim in recipe.primitives:
        if prim.id in prim_ids:
            issues.append(f"Duplicate primitive id {prim.id}")
        prim_ids.add(prim.id)
        issues.extend(_check_params(prim.id, prim.params))

    seen_ops: Set[str] = set()
    for op in recipe.operations:
        if op.id in seen_ops or op.id in prim_ids:
            issues.append(f"Duplicate operation id {op.id}")
        if op.op not in BOOLEAN_OPS:
            issues.append(f"{op.id}: unknown boolean op {op.op!r}")
        if op.target_id == op.id or op.tool_id == op.id:
            issues.append(f"{op.id}: references itself")
        if op.target_id not in prim_ids and op.target_id not in seen_ops:
            issues.append(f"{op.id}: target {op.target_id} is not a primitive or earlier operation")
        if op.tool_id not in prim_ids:
            issues.append(f"{op.id}: tool {op.tool_id} is not a primitive")
        seen_ops.add(op.id)

    bounds = recipe.bounding_mm
    if min(bounds.as_tuple()) <= 0:
        issues.append(f"bounding_mm must be positive, got {bounds.as_tuple()}")
    if not recipe.primitives:
        issues.append("Recipe has no base primitive")
    elif isinstance(recipe.base.params, BoxParams):
        base = recipe.base.params
        for label, expected, actual in (
            ("x", bounds.x, base.width),
            ("y", bounds.y, base.depth),
            ("z", bounds.z, base.height),
        ):
            if abs(expected - actual) > BOUNDS_TOLERANCE_MM:
                issues.append(
                    f"bounding_mm.{label}={expected} does not match base extent {actual}"
                )
    else:
        issues.append(f"Base primitive {recipe.base.id} must be a box")

    if recipe.units != UNITS_MM:
        issues.append(f"Units must be '{UNITS_MM}'")
    return issues


def _check_params(prim_id: str, params) -> List[str]:
    issues = []
    for name, value in params.linear_dims().items():
        if not value > 0:
            issues.append(f"{prim_id}: {name} must be > 0, got {value}")
    axis = getattr(params, "axis", None)
    if axis is not None and axis not in AXES:
        issues.append(f"{prim_id}: axis {axis!r} is not one of {', '.join(AXES)}")
    if isinstance(params, TorusParams) and params.minor_radius >= params.major_radius:
        issues.append(f"{prim_id}: minor_radius must be smaller than major_radius")
    if isinstance(params, CustomParams) and params.sides < 3:
        issues.append(f"{prim_id}: custom prism needs at least 3 sides")
    return issues


def assert_valid_document(doc: Any) -> None:
    issues = validate_recipe_document(doc)
    if issues:
        raise SchemaViolation(issues)


def assert_valid_recipe(recipe: PartRecipe) -> None:
    issues = check_recipe_invariants(recipe)
    if issues:
        raise SchemaViolation(issues)
