"""
Feature catalog: per-difficulty tables of feature kinds.

A draw is two steps. `draw_feature` makes one weighted pick from the table
for the policy's difficulty. `size_feature` then samples concrete parameters
for that row and returns a FeatureIntent: primitive params, cut axis,
through/blind marker, rotation, and the anchor that decides where the tool
centre may go. Nothing here places geometry.

Some rows produce more than one tool. Hole patterns carry member offsets
from the pattern centre; the builder emits one tool and one operation per
member, and placement treats the whole pattern as one box.

Sizing draws happen in the order the sizer reads them, then any layout
draws (pattern count and pitch, chamfer corner), then one rotation draw for
rotatable specs when the policy allows rotation.
"""
from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Optional, Tuple

from part_generator.contracts import (
    AXES,
    BoxParams,
    ConeParams,
    CustomParams,
    CylinderParams,
    Difficulty,
    PrimitiveParams,
    SphereParams,
    TorusParams,
    Vec3,
    round_half_up,
)
from part_generator.difficulty import DifficultyPolicy
from part_generator.placement import Box3, local_half_extents
from part_generator.rng import SeededRandom

CUTTER = "cutter"
ADDITIVE = "additive"
INTERSECT = "intersect"

# Anchors: where the tool centre may sit relative to the base box.
ANCHOR_THROUGH = "through"   # centred on the cut axis, free across it
ANCHOR_TOP = "top"           # centred on the top face (blind cut from +z)
ANCHOR_ON_TOP = "on_top"     # resting on the top face (additive)
ANCHOR_CENTER = "center"     # fixed at the origin
ANCHOR_EDGE = "edge"         # on a vertical edge of the base, through along z

# Operation groups, in emission order.
GROUP_THROUGH = 0
GROUP_BLIND = 1
GROUP_UNION = 2
GROUP_INTERSECT = 3

THROUGH_LENGTH_FACTOR = 2.5
DEFAULT_STEP_MM = 0.5
CHAMFER_ANGLE_DEG = 45.0
CORNERS: Tuple[Tuple[float, float], ...] = ((1.0, 1.0), (-1.0, 1.0), (-1.0, -1.0), (1.0, -1.0))


@dataclass(frozen=True)
class FeatureSpec:
    """One catalog row."""

    name: str
    primitive_kind: str
    tag: str
    role: str
    anchor: str
    rotatable: bool = False

    @property
    def op(self) -> str:
        return {CUTTER: "subtract", ADDITIVE: "union", INTERSECT: "intersect"}[self.role]

    @property
    def through(self) -> bool:
        return self.anchor in (ANCHOR_THROUGH, ANCHOR_EDGE)

    @property
    def group(self) -> int:
        if self.role == INTERSECT:
            return GROUP_INTERSECT
        if self.role == ADDITIVE:
            return GROUP_UNION
        return GROUP_THROUGH if self.through else GROUP_BLIND


@dataclass(frozen=True)
class FeatureIntent:
    """A sized, not yet placed, feature.

    `offsets` are member centres relative to the placed centre (empty for a
    single tool). `corner` picks the base edge for edge-anchored rows.
    """

    spec: FeatureSpec
    params: PrimitiveParams
    axis: str = "z"
    rotation: Vec3 = Vec3()
    offsets: Tuple[Vec3, ...] = ()
    corner: Tuple[float, float] = (0.0, 0.0)

    @property
    def tag(self) -> str:
        return self.spec.tag

    @property
    def op(self) -> str:
        return self.spec.op

    @property
    def members(self) -> Tuple[Vec3, ...]:
        return self.offsets or (Vec3(),)

    @property
    def half_extents(self) -> Tuple[float, float, float]:
        """Half sizes of the box holding every member."""
        half = local_half_extents(self.params, self.rotation)
        if not self.offsets:
            return half
        spread = [max(abs(o.component(a)) for o in self.offsets) for a in AXES]
        return tuple(h + s for h, s in zip(half, spread))

    def scaled(self, factor: float) -> "FeatureIntent":
        offsets = tuple(Vec3(o.x * factor, o.y * factor, o.z * factor) for o in self.offsets)
        return replace(self, params=self.params.scaled(factor), offsets=offsets)

    def region(self, bounds: Vec3, margin_mm: float) -> Box3:
        """Allowed tool centres inside a base box of extent `bounds`."""
        anchor = self.spec.anchor
        if anchor == ANCHOR_CENTER:
            return Box3((0.0, 0.0, 0.0), (0.0, 0.0, 0.0))
        if anchor == ANCHOR_EDGE:
            point = (self.corner[0] * bounds.x / 2.0, self.corner[1] * bounds.y / 2.0, 0.0)
            return Box3(point, point)

        half = self.half_extents
        extent = bounds.as_tuple()
        lo: List[float] = []
        hi: List[float] = []
        for i in range(3):
            free = extent[i] / 2.0 - margin_mm - half[i]
            lo.append(-free)
            hi.append(free)

        if anchor == ANCHOR_THROUGH:
            i = "xyz".index(self.axis)
            lo[i] = hi[i] = 0.0
        elif anchor == ANCHOR_TOP:
            lo[2] = hi[2] = bounds.z / 2.0
        elif anchor == ANCHOR_ON_TOP:
            lo[2] = hi[2] = bounds.z / 2.0 + half[2]
        return Box3(tuple(lo), tuple(hi))


# ─── Catalog rows ────────────────────────────────────────────────────────────

HOLE = FeatureSpec("hole", "cylinder", "through-hole", CUTTER, ANCHOR_THROUGH)
BLIND_HOLE = FeatureSpec("blind_hole", "cylinder", "blind-hole", CUTTER, ANCHOR_TOP)
POCKET = FeatureSpec("pocket", "box", "pocket", CUTTER, ANCHOR_TOP, rotatable=True)
CIRCULAR_POCKET = FeatureSpec("circular_pocket", "cylinder", "pocket", CUTTER, ANCHOR_TOP)
SLOT = FeatureSpec("slot", "box", "through-slot", CUTTER, ANCHOR_THROUGH, rotatable=True)
BOSS = FeatureSpec("boss", "cylinder", "boss", ADDITIVE, ANCHOR_ON_TOP)
RIB = FeatureSpec("rib", "box", "rib", ADDITIVE, ANCHOR_ON_TOP, rotatable=True)
ENVELOPE = FeatureSpec("envelope", "cylinder", "envelope", INTERSECT, ANCHOR_CENTER)
SPHERICAL_POCKET = FeatureSpec("spherical_pocket", "sphere", "spherical-pocket", CUTTER, ANCHOR_TOP)
COUNTERSINK = FeatureSpec("countersink", "cone", "countersink", CUTTER, ANCHOR_TOP)
GROOVE = FeatureSpec("groove", "torus", "groove", CUTTER, ANCHOR_TOP)
HEX_POCKET = FeatureSpec("hex_pocket", "custom", "hex-pocket", CUTTER, ANCHOR_TOP, rotatable=True)
LINEAR_HOLE_PATTERN = FeatureSpec(
    "linear_hole_pattern", "cylinder", "hole-pattern", CUTTER, ANCHOR_THROUGH,
)
BOLT_CIRCLE = FeatureSpec("bolt_circle", "cylinder", "bolt-circle", CUTTER, ANCHOR_THROUGH)
CHAMFER = FeatureSpec("chamfer", "box", "chamfer", CUTTER, ANCHOR_EDGE)

CATALOG: Dict[Difficulty, List[Tuple[FeatureSpec, float]]] = {
    Difficulty.BEGINNER: [
        (HOLE, 6.0),
        (SLOT, 2.0),
        (BOSS, 1.0),
    ],
    Difficulty.INTERMEDIATE: [
        (HOLE, 4.0),
        (BLIND_HOLE, 2.0),
        (POCKET, 3.0),
        (CIRCULAR_POCKET, 2.0),
        (SLOT, 2.0),
        (BOSS, 2.0),
        (RIB, 1.0),
        (ENVELOPE, 1.0),
        (LINEAR_HOLE_PATTERN, 1.5),
        (BOLT_CIRCLE, 1.0),
        (CHAMFER, 1.0),
    ],
    Difficulty.EXPERT: [
        (HOLE, 3.0),
        (BLIND_HOLE, 2.0),
        (POCKET, 2.0),
        (CIRCULAR_POCKET, 1.0),
        (SLOT, 2.0),
        (BOSS, 2.0),
        (RIB, 1.0),
        (ENVELOPE, 1.0),
        (SPHERICAL_POCKET, 1.0),
        (COUNTERSINK, 2.0),
        (GROOVE, 1.0),
        (HEX_POCKET, 2.0),
        (LINEAR_HOLE_PATTERN, 1.0),
        (BOLT_CIRCLE, 1.0),
        (CHAMFER, 1.0),
    ],
}


def available_features(policy: DifficultyPolicy) -> List[Tuple[FeatureSpec, float]]:
    """Catalog rows the policy permits (allowed ops, blind-pocket rule)."""
    rows = []
    for spec, weight in CATALOG[policy.difficulty]:
        if not policy.allows(spec.op):
            continue
        if spec.role == CUTTER and not spec.through and not policy.allow_blind_pockets:
            continue
        rows.append((spec, weight))
    return rows


def draw_feature(rng: SeededRandom, policy: DifficultyPolicy) -> FeatureSpec:
    """One weighted pick from the permitted rows (one draw)."""
    rows = available_features(policy)
    return rng.weighted_pick([s for s, _ in rows], [w for _, w in rows])


def size_feature(
    rng: SeededRandom,
    spec: FeatureSpec,
    bounds: Vec3,
    policy: DifficultyPolicy,
    step: float = DEFAULT_STEP_MM,
) -> FeatureIntent:
    """Sample concrete parameters for `spec` inside a base of extent `bounds`.

    Sampled sizes snap to multiples of `step`.
    """
    params, axis = _SIZERS[spec.name](rng, bounds, policy, step)
    intent = FeatureIntent(spec=spec, params=params, axis=axis)
    layout = _LAYOUTS.get(spec.name)
    if layout is not None:
        intent = layout(rng, intent, step)
    if spec.rotatable and policy.allow_rotation:
        intent = replace(intent, rotation=Vec3(0.0, 0.0, round_half_up(rng.uniform(0.0, 90.0), 1.0)))
    return intent


# ─── Sizers ──────────────────────────────────────────────────────────────────


def _q(value: float, step: float, minimum: Optional[float] = None) -> float:
    return max(step if minimum is None else minimum, round_half_up(value, step))


def _cross_section(bounds: Vec3, axis: str) -> Tuple[float, float, float]:
    """(cross_a, cross_b, length) of the base seen along `axis`."""
    if axis == "x":
        return bounds.y, bounds.z, bounds.x
    if axis == "y":
        return bounds.x, bounds.z, bounds.y
    return bounds.x, bounds.y, bounds.z


def hole_radius_range(bounds: Vec3, axis: str, policy: DifficultyPolicy) -> Tuple[float, float]:
    """2 mm .. min(cap, smaller cross-section / 6); the upper end never drops below 2."""
    cross_a, cross_b, _ = _cross_section(bounds, axis)
    upper = min(policy.hole_radius_cap_mm, min(cross_a, cross_b) / 6.0)
    return 2.0, max(2.0, upper)


def _size_hole(rng, bounds, policy, step):
    axis = rng.pick(("x", "y", "z"))
    lo, hi = hole_radius_range(bounds, axis, policy)
    radius = _q(rng.uniform(lo, hi), step, lo)
    length = _cross_section(bounds, axis)[2]
    return CylinderParams(radius, length * THROUGH_LENGTH_FACTOR, axis), axis


def _size_blind_hole(rng, bounds, policy, step):
    lo, hi = hole_radius_range(bounds, "z", policy)
    radius = _q(rng.uniform(lo, hi), step, lo)
    depth = _q(rng.uniform(0.3, 0.7) * bounds.z, step)
    return CylinderParams(radius, 2.0 * depth, "z"), "z"


def _size_pocket(rng, bounds, policy, step):
    width = _q(rng.uniform(0.15, 0.4) * bounds.x, step, 2.0)
    depth_y = _q(rng.uniform(0.15, 0.4) * bounds.y, step, 2.0)
    depth = _q(rng.uniform(0.2, 0.6) * bounds.z, step)
    return BoxParams(width, depth_y, 2.0 * depth), "z"


def _size_circular_pocket(rng, bounds, policy, step):
    radius = _q(rng.uniform(0.08, 0.2) * min(bounds.x, bounds.y), step, 2.0)
    depth = _q(rng.uniform(0.2, 0.6) * bounds.z, step)
    return CylinderParams(radius, 2.0 * depth, "z"), "z"


def _size_slot(rng, bounds, policy, step):
    length = _q(rng.uniform(0.2, 0.5) * bounds.x, step, 2.0)
    width = _q(rng.uniform(0.05, 0.15) * bounds.y, step, 2.0)
    return BoxParams(length, width, bounds.z * THROUGH_LENGTH_FACTOR), "z"


def _size_boss(rng, bounds, policy, step):
    radius = _q(rng.uniform(0.05, 0.15) * min(bounds.x, bounds.y), step, 2.0)
    height = _q(rng.uniform(0.1, 0.4) * bounds.z, step, 2.0)
    return CylinderParams(radius, height, "z"), "z"


def _size_rib(rng, bounds, policy, step):
    length = _q(rng.uniform(0.3, 0.7) * bounds.x, step, 2.0)
    thickness = _q(rng.uniform(0.04, 0.1) * bounds.y, step, 2.0)
    height = _q(rng.uniform(0.15, 0.5) * bounds.z, step, 2.0)
    return BoxParams(length, thickness, height), "z"


def _size_envelope(rng, bounds, policy, step):
    inscribed = max(bounds.x, bounds.y) / 2.0
    circumscribed = math.hypot(bounds.x, bounds.y) / 2.0
    t = rng.uniform(0.3, 0.9)
    radius = _q(inscribed + t * (circumscribed - inscribed), step)
    return CylinderParams(radius, bounds.z * THROUGH_LENGTH_FACTOR, "z"), "z"


def _size_spherical_pocket(rng, bounds, policy, step):
    radius = _q(min(rng.uniform(0.06, 0.15) * min(bounds.x, bounds.y), 0.6 * bounds.z), step, 2.0)
    return SphereParams(radius), "z"


def _size_countersink(rng, bounds, policy, step):
    radius_top = _q(min(rng.uniform(0.05, 0.12) * min(bounds.x, bounds.y), 0.5 * bounds.z), step, 2.0)
    radius_bottom = _q(0.3 * radius_top, step)
    return ConeParams(radius_bottom, radius_top, 2.0 * radius_top, "z"), "z"


def _size_groove(rng, bounds, policy, step):
    major = _q(rng.uniform(0.1, 0.25) * min(bounds.x, bounds.y), step, 3.0)
    minor = _q(min(rng.uniform(0.1, 0.25) * major, 0.4 * bounds.z), step, 1.0)
    return TorusParams(major, min(minor, major - step), "z"), "z"


def _size_hex_pocket(rng, bounds, policy, step):
    radius = _q(rng.uniform(0.05, 0.12) * min(bounds.x, bounds.y), step, 2.0)
    depth = _q(rng.uniform(0.2, 0.5) * bounds.z, step)
    return CustomParams("hex_prism", 6, radius, 2.0 * depth, "z"), "z"


def _size_pattern_hole(rng, bounds, policy, step):
    # members are kept small so several fit across the part
    lo, hi = hole_radius_range(bounds, "z", policy)
    radius = _q(rng.uniform(lo, max(lo, 0.6 * hi)), step, lo)
    return CylinderParams(radius, bounds.z * THROUGH_LENGTH_FACTOR, "z"), "z"


def _size_chamfer(rng, bounds, policy, step):
    size = _q(rng.uniform(0.04, 0.1) * min(bounds.x, bounds.y), step, 2.0)
    return BoxParams(size, size, bounds.z * THROUGH_LENGTH_FACTOR), "z"


_SIZERS: Dict[str, Callable[[SeededRandom, Vec3, DifficultyPolicy, float], Tuple[PrimitiveParams, str]]] = {
    HOLE.name: _size_hole,
    BLIND_HOLE.name: _size_blind_hole,
    POCKET.name: _size_pocket,
    CIRCULAR_POCKET.name: _size_circular_pocket,
    SLOT.name: _size_slot,
    BOSS.name: _size_boss,
    RIB.name: _size_rib,
    ENVELOPE.name: _size_envelope,
    SPHERICAL_POCKET.name: _size_spherical_pocket,
    COUNTERSINK.name: _size_countersink,
    GROOVE.name: _size_groove,
    HEX_POCKET.name: _size_hex_pocket,
    LINEAR_HOLE_PATTERN.name: _size_pattern_hole,
    BOLT_CIRCLE.name: _size_pattern_hole,
    CHAMFER.name: _size_chamfer,
}


# ─── Layouts ─────────────────────────────────────────────────────────────────


def _pitch(rng: SeededRandom, radius: float) -> float:
    """Centre distance leaving a web of 1.5 to 3 radii between members."""
    return 2.0 * radius + rng.uniform(1.5, 3.0) * radius


def _layout_linear(rng, intent, step):
    count = rng.int_range(3, 5)
    along = rng.pick(("x", "y"))
    pitch = _q(_pitch(rng, intent.params.radius), step)
    start = -(count - 1) * pitch / 2.0
    offsets = []
    for k in range(count):
        d = start + k * pitch
        offsets.append(Vec3(d, 0.0, 0.0) if along == "x" else Vec3(0.0, d, 0.0))
    return replace(intent, offsets=tuple(offsets))


def _layout_bolt_circle(rng, intent, step):
    count = rng.int_range(4, 6)
    chord = _pitch(rng, intent.params.radius)
    # chord between neighbours = 2 R sin(pi / n)
    pitch_radius = _q(chord / (2.0 * math.sin(math.pi / count)), step)
    offsets = []
    for k in range(count):
        angle = 2.0 * math.pi * k / count
        offsets.append(Vec3(
            round(pitch_radius * math.cos(angle), 6) + 0.0,
            round(pitch_radius * math.sin(angle), 6) + 0.0,
            0.0,
        ))
    return replace(intent, offsets=tuple(offsets))


def _layout_chamfer(rng, intent, step):
    corner = rng.pick(CORNERS)
    return replace(intent, corner=corner, rotation=Vec3(0.0, 0.0, CHAMFER_ANGLE_DEG))


_LAYOUTS: Dict[str, Callable[[SeededRandom, FeatureIntent, float], FeatureIntent]] = {
    LINEAR_HOLE_PATTERN.name: _layout_linear,
    BOLT_CIRCLE.name: _layout_bolt_circle,
    CHAMFER.name: _layout_chamfer,
}
