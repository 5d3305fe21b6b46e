"""Public API for the seeded part-recipe generator."""

from part_generator.builder import RecipeBuilder, generate
from part_generator.contracts import (
    Difficulty,
    GenerationError,
    GeneratorConfig,
    InvalidInput,
    Operation,
    PartRecipe,
    PlacementFailed,
    Primitive,
    SchemaViolation,
    WallThicknessViolation,
)
from part_generator.difficulty import DifficultyPolicy, policy_for
from part_generator.migrate import load_recipe_document, migrate_legacy_beginner
from part_generator.serialization import recipe_from_dict, recipe_sha256, recipe_to_dict

__all__ = [
    "Difficulty",
    "DifficultyPolicy",
    "GenerationError",
    "GeneratorConfig",
    "InvalidInput",
    "Operation",
    "PartRecipe",
    "PlacementFailed",
    "Primitive",
    "RecipeBuilder",
    "SchemaViolation",
    "WallThicknessViolation",
    "generate",
    "load_recipe_document",
    "migrate_legacy_beginner",
    "policy_for",
    "recipe_from_dict",
    "recipe_sha256",
    "recipe_to_dict",
]
