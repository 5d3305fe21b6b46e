"""
Recipe builder: the generation pipeline.

    ChooseDifficulty -> SizeBoundingBox -> CreateBase -> SampleFeatures
        -> OrderOperations -> SafetyPass -> Finalize

Every stage runs exactly once, in order. All randomness comes from one
SeededRandom owned by the call, so (seed, difficulty) fully determines the
recipe apart from `created_at`.

Usage:
    from part_generator.builder import generate
    recipe = generate(12345, "Beginner")
"""
from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from part_generator.catalog import (
    CUTTER,
    INTERSECT,
    FeatureIntent,
    draw_feature,
    size_feature,
)
from part_generator.contracts import (
    BoxParams,
    Difficulty,
    GenerationError,
    GeneratorConfig,
    InvalidInput,
    Operation,
    PartRecipe,
    PlacementFailed,
    Primitive,
    Transform,
    Vec3,
    round_half_up,
    utc_now_iso,
)
from part_generator.difficulty import DifficultyPolicy, policy_for
from part_generator.placement import Box3, margin, primitive_bounds, try_place
from part_generator.rng import SeededRandom
from part_generator.safety import SafetyReport, run_safety_pass
from part_generator.schema import assert_valid_recipe

logger = logging.getLogger(__name__)

BASE_ID = "p0"

Placer = Callable[..., Vec3]


# ─── Operation chain helpers ─────────────────────────────────────────────────


class CsgAccumulator:
    """The id the next operation builds on.

    `apply` does not mutate; it returns the emitted operation together with
    the accumulator for the next feature, which the caller reassigns.
    """

    __slots__ = ("current",)

    def __init__(self, current: str = BASE_ID):
        self.current = current

    def apply(
        self, op_id: str, op: str, tool_id: str, metadata: Dict[str, Any],
    ) -> Tuple[Operation, "CsgAccumulator"]:
        operation = Operation(
            id=op_id, op=op, target_id=self.current, tool_id=tool_id, metadata=metadata,
        )
        return operation, CsgAccumulator(op_id)


def relink_chain(operations: Sequence[Operation], base_id: str = BASE_ID) -> List[Operation]:
    """Point each operation at the result of the one before it."""
    linked = []
    acc = CsgAccumulator(base_id)
    for op in operations:
        operation, acc = acc.apply(op.id, op.op, op.tool_id, op.metadata)
        linked.append(operation)
    return linked


def order_operations(operations: Sequence[Operation], base_id: str = BASE_ID) -> List[Operation]:
    """Through-cutters, blind cutters, unions, intersections; stable within a group."""
    ordered = sorted(operations, key=lambda op: op.metadata.get("group", 0))
    return relink_chain(ordered, base_id)


def csg_depth(operations: Sequence[Operation]) -> int:
    """Length of the longest target-reference chain."""
    depth: Dict[str, int] = {}
    for op in operations:
        depth[op.id] = depth.get(op.target_id, 0) + 1
    return max(depth.values(), default=0)


def recipe_name(tags: Sequence[str]) -> str:
    """'Block - through-hole x2, boss' from the ordered feature tags."""
    if not tags:
        return "Block - Basic"
    counts = Counter(tags)
    parts = []
    for tag in dict.fromkeys(tags):
        parts.append(f"{tag} x{counts[tag]}" if counts[tag] > 1 else tag)
    return "Block - " + ", ".join(parts)


# ─── Builder ─────────────────────────────────────────────────────────────────


@dataclass
class SampledFeatures:
    """Output of the feature-sampling loop."""

    primitives: List[Primitive] = field(default_factory=list)
    operations: List[Operation] = field(default_factory=list)
    sampled: int = 0
    dropped: int = 0


class RecipeBuilder:
    """Runs the pipeline for one difficulty policy.

    `placer` has the signature of `placement.try_place`; tests inject a
    scripted one to force collisions.
    """

    def __init__(
        self,
        policy: DifficultyPolicy,
        config: Optional[GeneratorConfig] = None,
        placer: Placer = try_place,
    ):
        self.policy = policy
        self.config = config or GeneratorConfig()
        self.placer = placer

    def build(self, seed: int, created_at: Optional[str] = None) -> PartRecipe:
        rng = SeededRandom(seed)
        difficulty = self.policy.difficulty
        logger.debug("seed=%s state=ChooseDifficulty difficulty=%s", seed, difficulty.value)

        bounds = self.size_bounding_box(rng)
        logger.debug("seed=%s state=SizeBoundingBox bounds=%s", seed, bounds.as_tuple())

        base = self.create_base(bounds)
        logger.debug("seed=%s state=CreateBase id=%s", seed, base.id)

        sampled = self.sample_features(rng, bounds)
        logger.debug(
            "seed=%s state=SampleFeatures placed=%d dropped=%d",
            seed, len(sampled.operations), sampled.dropped,
        )

        ordered = order_operations(sampled.operations)
        logger.debug("seed=%s state=OrderOperations order=%s", seed, [o.id for o in ordered])

        report = run_safety_pass(
            [base] + sampled.primitives,
            ordered,
            bounds,
            self.policy.min_wall_thickness_mm,
            self.config,
        )
        logger.debug(
            "seed=%s state=SafetyPass shrunk=%s dropped=%s", seed, report.shrunk, report.dropped,
        )

        recipe = self.finalize(seed, bounds, sampled, report, created_at)
        logger.debug("seed=%s state=Finalize features=%d", seed, recipe.feature_count)
        return recipe

    # -- stages --

    def size_bounding_box(self, rng: SeededRandom) -> Vec3:
        dims = []
        for lo, hi in (self.policy.width_range, self.policy.depth_range, self.policy.height_range):
            value = round_half_up(rng.uniform(lo, hi), 1.0)
            if value <= 0:
                raise GenerationError(
                    f"Non-positive bounding dimension {value} sampled from range ({lo}, {hi})"
                )
            dims.append(float(value))
        return Vec3(*dims)

    def create_base(self, bounds: Vec3) -> Primitive:
        return Primitive(
            id=BASE_ID,
            params=BoxParams(bounds.x, bounds.y, bounds.z),
            transform=Transform(position=Vec3()),
            metadata={"role": "base"},
        )

    def sample_features(self, rng: SeededRandom, bounds: Vec3) -> SampledFeatures:
        lo, hi = self.policy.feature_count_range
        count = rng.int_range(lo, hi)
        margin_mm = margin(
            bounds, self.policy.margin_policy.floor_mm, self.policy.margin_policy.fraction,
        )

        result = SampledFeatures(sampled=count)
        placed: List[Tuple[Primitive, Box3]] = []
        acc = CsgAccumulator(BASE_ID)

        for i in range(1, count + 1):
            spec = draw_feature(rng, self.policy)
            intent = size_feature(rng, spec, bounds, self.policy, self.config.dimension_step_mm)
            placement = self._place(rng, intent, bounds, margin_mm, placed)
            if placement is None:
                result.dropped += 1
                logger.debug("Feature %d (%s) dropped after shrink retry", i, spec.name)
                continue

            intent, position = placement
            patterned = len(intent.offsets) > 0
            for k, offset in enumerate(intent.members, start=1):
                suffix = f"{i}_{k}" if patterned else f"{i}"
                tool_meta = {"tag": intent.tag, "role": spec.role, "through": spec.through, "feature": i}
                op_meta = {"tag": intent.tag, "through": spec.through, "group": spec.group, "feature": i}
                if patterned:
                    tool_meta["member"] = op_meta["member"] = k
                tool = Primitive(
                    id=f"p{suffix}",
                    params=intent.params,
                    transform=Transform(
                        position=Vec3(position.x + offset.x, position.y + offset.y, position.z + offset.z),
                        rotation=intent.rotation,
                    ),
                    metadata=tool_meta,
                )
                operation, acc = acc.apply(f"op{suffix}", intent.op, tool.id, op_meta)
                result.primitives.append(tool)
                result.operations.append(operation)
                placed.append((tool, primitive_bounds(tool)))
            logger.debug(
                "Feature %d: %s %s x%d at %s",
                i, intent.op, intent.tag, len(intent.members), position.as_tuple(),
            )

        return result

    def finalize(
        self,
        seed: int,
        bounds: Vec3,
        sampled: SampledFeatures,
        report: SafetyReport,
        created_at: Optional[str] = None,
    ) -> PartRecipe:
        # a pattern is one feature however many of its tools survive
        feature_of = {p.id: p.metadata.get("feature") for p in sampled.primitives}
        surviving: Dict[Any, str] = {}
        for op in report.operations:
            surviving.setdefault(op.metadata.get("feature"), op.tag)
        lost = {feature_of[tool_id] for tool_id in report.dropped} - set(surviving)
        tags = [tag for tag in surviving.values() if tag]
        metadata = {
            "featureCount": len(surviving),
            "operationCount": len(report.operations),
            "sampledFeatures": sampled.sampled,
            "droppedFeatures": sampled.dropped,
            "safetyDroppedFeatures": len(lost),
            "safetyDroppedTools": len(report.dropped),
            "shrunkFeatures": len(report.shrunk),
            "csgDepth": csg_depth(report.operations),
            "primitiveKinds": len({p.kind for p in report.primitives}),
            "tags": tags,
            "minWallThicknessMm": self.policy.min_wall_thickness_mm,
            "generatorVersion": self.config.generator_version,
        }
        recipe = PartRecipe(
            id=str(seed),
            seed=seed,
            name=recipe_name(tags),
            difficulty=self.policy.difficulty,
            bounding_mm=bounds,
            primitives=tuple(report.primitives),
            operations=tuple(report.operations),
            created_at=created_at or utc_now_iso(),
            metadata=metadata,
        )
        assert_valid_recipe(recipe)
        logger.info(
            "Generated %s seed=%s features=%d dropped=%d depth=%d",
            self.policy.difficulty.value, seed, metadata["featureCount"],
            sampled.dropped + len(lost), metadata["csgDepth"],
        )
        return recipe

    # -- helpers --

    def _place(
        self,
        rng: SeededRandom,
        intent: FeatureIntent,
        bounds: Vec3,
        margin_mm: float,
        placed: Sequence[Tuple[Primitive, Box3]],
    ) -> Optional[Tuple[FeatureIntent, Vec3]]:
        """Place, then shrink and retry; None when every try fails."""
        candidate = intent
        for retry in range(self.config.shrink_retries + 1):
            if retry:
                candidate = candidate.scaled(self.config.shrink_factor)
            try:
                position = self.placer(
                    rng,
                    candidate.half_extents,
                    placed,
                    candidate.region(bounds, margin_mm),
                    self._overlap_rule(candidate),
                    clearance=self.policy.min_wall_thickness_mm,
                    attempts=self.config.placement_attempts,
                )
            except PlacementFailed as exc:
                logger.debug("Placing %s failed (%s)", candidate.tag, exc)
                continue
            return candidate, position
        return None

    def _overlap_rule(self, intent: FeatureIntent) -> Callable[[Primitive], bool]:
        role = intent.spec.role

        def allow(tool: Primitive) -> bool:
            other = tool.metadata.get("role")
            if role == INTERSECT or other == INTERSECT:
                return True
            if role == CUTTER and other == CUTTER:
                return self.policy.allow_cutter_overlap
            return False

        return allow


def generate(
    seed: int,
    difficulty: Union[Difficulty, str],
    *,
    policy: Optional[DifficultyPolicy] = None,
    config: Optional[GeneratorConfig] = None,
    created_at: Optional[str] = None,
) -> PartRecipe:
    """Generate one recipe; identical (seed, difficulty) give identical recipes."""
    default_policy = policy_for(difficulty)
    if policy is None:
        policy = default_policy
    elif policy.difficulty != default_policy.difficulty:
        raise InvalidInput(
            f"Policy is for {policy.difficulty.value}, not {default_policy.difficulty.value}"
        )
    return RecipeBuilder(policy, config).build(seed, created_at=created_at)
