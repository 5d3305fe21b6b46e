"""JSON document form of recipes, canonical hashing and file output."""

from __future__ import annotations

import copy
import hashlib
import json
from pathlib import Path
from typing import Any, Dict

from part_generator.contracts import (
    Difficulty,
    Operation,
    PartRecipe,
    Primitive,
    Transform,
    Vec3,
    primitive_params_from_dict,
)
from part_generator.schema import assert_valid_document, assert_valid_recipe


def primitive_to_dict(primitive: Primitive) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": primitive.id,
        "kind": primitive.kind,
        "params": primitive.params.to_dict(),
        "transform": primitive.transform.to_dict(),
    }
    if primitive.metadata:
        payload["metadata"] = copy.deepcopy(dict(primitive.metadata))
    return payload


def operation_to_dict(operation: Operation) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": operation.id,
        "op": operation.op,
        "targetId": operation.target_id,
        "toolId": operation.tool_id,
    }
    if operation.metadata:
        payload["metadata"] = copy.deepcopy(dict(operation.metadata))
    return payload


def recipe_to_dict(recipe: PartRecipe) -> Dict[str, Any]:
    return {
        "id": recipe.id,
        "seed": recipe.seed,
        "name": recipe.name,
        "difficulty": recipe.difficulty.value,
        "units": recipe.units,
        "bounding_mm": recipe.bounding_mm.to_dict(),
        "primitives": [primitive_to_dict(p) for p in recipe.primitives],
        "operations": [operation_to_dict(o) for o in recipe.operations],
        "createdAt": recipe.created_at,
        "metadata": copy.deepcopy(dict(recipe.metadata)),
    }


def recipe_from_dict(doc: Dict[str, Any]) -> PartRecipe:
    """Build a recipe from its document form; raises SchemaViolation."""
    assert_valid_document(doc)
    primitives = tuple(
        Primitive(
            id=p["id"],
            params=primitive_params_from_dict(p["kind"], p["params"]),
            transform=Transform.from_dict(p.get("transform")),
            metadata=dict(p.get("metadata") or {}),
        )
        for p in doc["primitives"]
    )
    operations = tuple(
        Operation(
            id=o["id"],
            op=o["op"],
            target_id=o["targetId"],
            tool_id=o["toolId"],
            metadata=dict(o.get("metadata") or {}),
        )
        for o in doc["operations"]
    )
    recipe = PartRecipe(
        id=doc["id"],
        seed=doc["seed"],
        name=doc["name"],
        difficulty=Difficulty.parse(doc["difficulty"]),
        bounding_mm=Vec3.from_dict(doc["bounding_mm"]),
        primitives=primitives,
        operations=operations,
        created_at=doc["createdAt"],
        units=doc["units"],
        metadata=copy.deepcopy(doc.get("metadata") or {}),
    )
    assert_valid_recipe(recipe)
    return recipe


def canonical_json(payload: Dict[str, Any]) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=True)


def recipe_sha256(recipe: PartRecipe) -> str:
    """Content hash that ignores the non-semantic `createdAt`."""
    payload = recipe_to_dict(recipe)
    payload.pop("createdAt", None)
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()


def write_recipe_json(path: Path, recipe: PartRecipe) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(recipe_to_dict(recipe), f, indent=2)
    return path
