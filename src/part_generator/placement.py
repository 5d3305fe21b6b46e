"""
Geometry and placement utilities for tool primitives.

Bounding volumes are world-space axis-aligned boxes. Rotated primitives are
bounded by transforming their local box corners (rotation matrices from
trimesh). Footprints for wall/web estimates are Shapely geometries projected
along one axis, the same way the DFM bridge-width checks measure material
between cutouts.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence, Tuple

import numpy as np
import trimesh
from shapely import affinity
from shapely.geometry import Point, Polygon, box as shapely_box

from part_generator.contracts import (
    AXES,
    BoxParams,
    ConeParams,
    CustomParams,
    CylinderParams,
    PlacementFailed,
    Primitive,
    PrimitiveParams,
    SphereParams,
    TorusParams,
    Vec3,
)
from part_generator.rng import SeededRandom

logger = logging.getLogger(__name__)

DEFAULT_ATTEMPTS = 8
_AXIS_INDEX = {"x": 0, "y": 1, "z": 2}


@dataclass(frozen=True)
class Box3:
    """Axis-aligned box given by its min and max corners."""

    lo: Tuple[float, float, float]
    hi: Tuple[float, float, float]

    @classmethod
    def centered(cls, center: Sequence[float], half: Sequence[float]) -> "Box3":
        return cls(
            tuple(float(c - h) for c, h in zip(center, half)),
            tuple(float(c + h) for c, h in zip(center, half)),
        )

    @classmethod
    def from_extent(cls, extent: Vec3) -> "Box3":
        """Box of the given width/depth/height centred at the origin."""
        return cls.centered((0.0, 0.0, 0.0), (extent.x / 2.0, extent.y / 2.0, extent.z / 2.0))

    @property
    def size(self) -> Tuple[float, float, float]:
        return tuple(h - l for l, h in zip(self.lo, self.hi))

    @property
    def center(self) -> Tuple[float, float, float]:
        return tuple((l + h) / 2.0 for l, h in zip(self.lo, self.hi))

    def is_empty(self) -> bool:
        return any(h < l for l, h in zip(self.lo, self.hi))

    def overlaps(self, other: "Box3", clearance: float = 0.0) -> bool:
        """True when the boxes interpenetrate or come closer than `clearance`.

        Boxes that merely touch do not overlap when no clearance is asked for.
        """
        for i in range(3):
            gap = max(other.lo[i] - self.hi[i], self.lo[i] - other.hi[i])
            if gap >= clearance:
                return False
        return True

    def distance(self, other: "Box3") -> float:
        """Euclidean gap between the boxes (0 when they touch or overlap)."""
        gaps = [
            max(0.0, other.lo[i] - self.hi[i], self.lo[i] - other.hi[i])
            for i in range(3)
        ]
        return float(math.sqrt(sum(g * g for g in gaps)))


def margin(bounds: Vec3, floor_mm: float = 2.0, fraction: float = 0.02) -> float:
    """Minimum clearance between a tool and any outer face of the part."""
    return max(floor_mm, min(bounds.x, bounds.y, bounds.z) * fraction)


def rotation_matrix(rotation_deg: Vec3) -> np.ndarray:
    """3x3 rotation for XYZ Euler angles in degrees (static frame)."""
    matrix = trimesh.transformations.euler_matrix(
        math.radians(rotation_deg.x),
        math.radians(rotation_deg.y),
        math.radians(rotation_deg.z),
        "sxyz",
    )
    return matrix[:3, :3]


def local_half_extents(params: PrimitiveParams, rotation_deg: Vec3 = Vec3()) -> Tuple[float, float, float]:
    """Half sizes of the axis-aligned box that bounds the rotated primitive."""
    half = np.asarray(params.half_extents(), dtype=float)
    if rotation_deg == Vec3():
        return tuple(float(h) for h in half)
    rot = rotation_matrix(rotation_deg)
    # |R| @ h bounds every rotated corner of the local box
    bounded = np.abs(rot) @ half
    return tuple(float(round(h, 9)) for h in bounded)


def primitive_bounds(primitive: Primitive) -> Box3:
    """World-space AABB of a primitive including position, rotation and scale."""
    transform = primitive.transform
    half = np.asarray(local_half_extents(primitive.params, transform.rotation))
    half = half * np.abs(np.asarray(transform.scale.as_tuple(), dtype=float))
    return Box3.centered(transform.position.as_tuple(), half)


def overlaps(a: Box3, b: Box3, clearance: float = 0.0) -> bool:
    """Bounding-volume intersection test between two tools."""
    return a.overlaps(b, clearance)


def try_place(
    rng: SeededRandom,
    half_extents: Sequence[float],
    placed: Sequence[Tuple[Primitive, Box3]],
    region: Box3,
    allow_overlap: Callable[[Primitive], bool],
    clearance: float = 0.0,
    attempts: int = DEFAULT_ATTEMPTS,
) -> Vec3:
    """Sample a tool centre inside `region` that does not collide.

    Each attempt consumes three draws (x, y, z). A collision with a placed
    tool is forgiven when `allow_overlap(tool)` says the pair may merge;
    otherwise the attempt is rejected. Raises PlacementFailed after
    `attempts` rejections, or immediately when the region is empty.
    """
    if region.is_empty():
        raise PlacementFailed(0, "placement region is empty")

    for attempt in range(attempts):
        center = (
            rng.uniform(region.lo[0], region.hi[0]),
            rng.uniform(region.lo[1], region.hi[1]),
            rng.uniform(region.lo[2], region.hi[2]),
        )
        candidate = Box3.centered(center, half_extents)
        blocker = _first_blocker(candidate, placed, allow_overlap, clearance)
        if blocker is None:
            return Vec3(*center)
        logger.debug(
            "Placement attempt %d/%d collides with %s", attempt + 1, attempts, blocker,
        )

    raise PlacementFailed(attempts)


def _first_blocker(
    candidate: Box3,
    placed: Iterable[Tuple[Primitive, Box3]],
    allow_overlap: Callable[[Primitive], bool],
    clearance: float,
) -> Optional[str]:
    for tool, bounds in placed:
        if allow_overlap(tool):
            continue
        if candidate.overlaps(bounds, clearance):
            return tool.id
    return None


# ─── Wall / web estimates ────────────────────────────────────────────────────


def estimate_wall_thickness(
    target_extent: Vec3,
    cutter_position: Vec3,
    cutter_size: Sequence[float],
) -> float:
    """Conservative wall left between a cutter and the outer faces.

    `target_extent` is the width/depth/height of a base box centred at the
    origin; `cutter_size` is the full size of the cutter's AABB. Faces the
    cutter reaches or passes are open and carry no wall. Returns `inf` when
    the cutter leaves no enclosed wall (or misses the target entirely).
    """
    target = Box3.from_extent(target_extent)
    cutter = Box3.centered(
        cutter_position.as_tuple(), [s / 2.0 for s in cutter_size],
    )
    if not target.overlaps(cutter):
        return math.inf

    walls = []
    for i in range(3):
        low_gap = cutter.lo[i] - target.lo[i]
        high_gap = target.hi[i] - cutter.hi[i]
        walls.extend(g for g in (low_gap, high_gap) if g > 0.0)
    return float(min(walls)) if walls else math.inf


def intersection_thickness(target_extent: Vec3, tool_bounds: Box3) -> float:
    """Thinnest extent of material kept by intersecting the target with a tool."""
    target = Box3.from_extent(target_extent)
    spans = [
        min(target.hi[i], tool_bounds.hi[i]) - max(target.lo[i], tool_bounds.lo[i])
        for i in range(3)
    ]
    return float(max(0.0, min(spans)))


def footprint(primitive: Primitive, axis: str) -> Polygon:
    """Shape of a primitive projected along `axis`, in world coordinates."""
    params = primitive.params
    pos = primitive.position
    u_axis, v_axis = [a for a in AXES if a != axis]
    cu, cv = pos.component(u_axis), pos.component(v_axis)

    own_axis = getattr(params, "axis", None)
    if isinstance(params, SphereParams):
        return Point(cu, cv).buffer(params.radius, quad_segs=16)
    if own_axis == axis and isinstance(params, CylinderParams):
        return Point(cu, cv).buffer(params.radius, quad_segs=16)
    if own_axis == axis and isinstance(params, ConeParams):
        return Point(cu, cv).buffer(max(params.radius_bottom, params.radius_top), quad_segs=16)
    if own_axis == axis and isinstance(params, TorusParams):
        return Point(cu, cv).buffer(params.major_radius + params.minor_radius, quad_segs=16)
    if own_axis == axis and isinstance(params, CustomParams):
        angle = math.radians(primitive.transform.rotation.component(axis))
        corners = [
            (
                cu + params.radius * math.cos(angle + 2.0 * math.pi * k / params.sides),
                cv + params.radius * math.sin(angle + 2.0 * math.pi * k / params.sides),
            )
            for k in range(params.sides)
        ]
        return Polygon(corners)
    if isinstance(params, BoxParams):
        half = params.half_extents()
        hu, hv = half[_AXIS_INDEX[u_axis]], half[_AXIS_INDEX[v_axis]]
        rect = shapely_box(cu - hu, cv - hv, cu + hu, cv + hv)
        angle = primitive.transform.rotation.component(axis)
        if angle:
            rect = affinity.rotate(rect, angle, origin=(cu, cv))
        return rect

    # Fall back to the bounding rectangle for side-on projections
    bounds = primitive_bounds(primitive)
    iu, iv = _AXIS_INDEX[u_axis], _AXIS_INDEX[v_axis]
    return shapely_box(bounds.lo[iu], bounds.lo[iv], bounds.hi[iu], bounds.hi[iv])


def web_thickness(a: Primitive, b: Primitive) -> float:
    """Material bridge between two cutters (0 when they merge).

    Cutters sharing an axis whose spans along that axis overlap are compared
    by their projected footprints; everything else by AABB distance.
    """
    box_a, box_b = primitive_bounds(a), primitive_bounds(b)
    axis_a = getattr(a.params, "axis", None)
    axis_b = getattr(b.params, "axis", None)
    if axis_a is not None and axis_a == axis_b:
        i = _AXIS_INDEX[axis_a]
        span_gap = max(box_b.lo[i] - box_a.hi[i], box_a.lo[i] - box_b.hi[i])
        if span_gap < 0.0:
            return float(footprint(a, axis_a).distance(footprint(b, axis_a)))
    return box_a.distance(box_b)


def envelope_wall_thickness(cutter: Primitive, envelope: Primitive) -> float:
    """Wall between a cutter and the outline of an intersect envelope.

    Both are projected along the envelope's axis. A cutter crossing the
    outline opens to the outside, and one lying wholly outside is removed by
    the intersection; neither leaves a wall, so both give `inf`.
    """
    axis = getattr(envelope.params, "axis", None) or "z"
    outline = footprint(envelope, axis)
    shape = footprint(cutter, axis)
    if not outline.contains(shape):
        return math.inf
    return float(outline.exterior.distance(shape))
