"""Contracts for the seeded part-recipe generator.

Recipes are value types: every class here is a frozen dataclass, and any
change (safety shrink, legacy migration, fixture pinning) produces a new
instance rather than mutating a stored one.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, ClassVar, Dict, Mapping, Optional, Tuple, Union

UNITS_MM = "mm"
AXES: Tuple[str, ...] = ("x", "y", "z")
BOOLEAN_OPS: Tuple[str, ...] = ("union", "subtract", "intersect")
GENERATOR_VERSION = "part_generator.v1"


# ─── Errors ──────────────────────────────────────────────────────────────────


class GenerationError(Exception):
    """Base exception for generation failures."""
    pass


class InvalidInput(GenerationError):
    """Seed or difficulty rejected before generation starts."""
    pass


class PlacementFailed(GenerationError):
    """A feature could not be placed within the retry budget."""

    def __init__(self, attempts: int, message: str = ""):
        self.attempts = attempts
        super().__init__(message or f"placement failed after {attempts} attempts")


class WallThicknessViolation(GenerationError):
    """Estimated wall at a cut site is thinner than the policy allows."""

    def __init__(self, site_id: str, thickness_mm: float, limit_mm: float):
        self.site_id = site_id
        self.thickness_mm = thickness_mm
        self.limit_mm = limit_mm
        super().__init__(
            f"{site_id}: wall {thickness_mm:.2f}mm < minimum {limit_mm:.2f}mm"
        )


class SchemaViolation(GenerationError):
    """A recipe document or recipe object failed structural validation."""

    def __init__(self, issues):
        self.issues = list(issues)
        super().__init__("; ".join(self.issues) or "schema violation")


# ─── Enums / vectors ─────────────────────────────────────────────────────────


class Difficulty(Enum):
    """Exercise difficulty level."""
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    EXPERT = "Expert"

    @classmethod
    def parse(cls, value: Union["Difficulty", str]) -> "Difficulty":
        """Accept an enum member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            key = value.strip().lower()
            for member in cls:
                if member.value.lower() == key:
                    return member
        raise InvalidInput(
            f"Unknown difficulty {value!r}. Expected one of "
            f"{', '.join(m.value for m in cls)}"
        )


@dataclass(frozen=True)
class Vec3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def as_tuple(self) -> Tuple[float, float, float]:
        return (self.x, self.y, self.z)

    def component(self, axis: str) -> float:
        return getattr(self, axis)

    def to_dict(self) -> Dict[str, float]:
        return {"x": float(self.x), "y": float(self.y), "z": float(self.z)}

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Vec3":
        return cls(float(d.get("x", 0.0)), float(d.get("y", 0.0)), float(d.get("z", 0.0)))


ZERO = Vec3()
UNIT_SCALE = Vec3(1.0, 1.0, 1.0)


@dataclass(frozen=True)
class Transform:
    """Placement of a primitive: position (mm), rotation (deg), scale."""
    position: Vec3 = ZERO
    rotation: Vec3 = ZERO
    scale: Vec3 = UNIT_SCALE

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"position": self.position.to_dict()}
        if self.rotation != ZERO:
            payload["rotation"] = self.rotation.to_dict()
        if self.scale != UNIT_SCALE:
            payload["scale"] = self.scale.to_dict()
        return payload

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "Transform":
        if not d:
            return cls()
        return cls(
            position=Vec3.from_dict(d["position"]) if "position" in d else ZERO,
            rotation=Vec3.from_dict(d["rotation"]) if "rotation" in d else ZERO,
            scale=Vec3.from_dict(d["scale"]) if "scale" in d else UNIT_SCALE,
        )


# ─── Primitive parameter variants ────────────────────────────────────────────
#
# Each variant knows its own linear dimensions. `scaled` multiplies all of
# them; `shrunk` subtracts a fixed decrement and returns None when a
# dimension would stop being positive.


def _axis_half_extents(radius: float, length: float, axis: str) -> Tuple[float, float, float]:
    half = length / 2.0
    if axis == "x":
        return (half, radius, radius)
    if axis == "y":
        return (radius, half, radius)
    return (radius, radius, half)


@dataclass(frozen=True)
class BoxParams:
    width: float
    depth: float
    height: float
    kind: ClassVar[str] = "box"

    def half_extents(self) -> Tuple[float, float, float]:
        return (self.width / 2.0, self.depth / 2.0, self.height / 2.0)

    def linear_dims(self) -> Dict[str, float]:
        return {"width": self.width, "depth": self.depth, "height": self.height}

    def scaled(self, factor: float) -> "BoxParams":
        return BoxParams(self.width * factor, self.depth * factor, self.height * factor)

    def shrunk(self, decrement: float) -> Optional["BoxParams"]:
        dims = (self.width - decrement, self.depth - decrement, self.height - decrement)
        if min(dims) <= 0:
            return None
        return BoxParams(*dims)

    def to_dict(self) -> Dict[str, Any]:
        return self.linear_dims()


@dataclass(frozen=True)
class CylinderParams:
    radius: float
    height: float
    axis: str = "z"
    kind: ClassVar[str] = "cylinder"

    def half_extents(self) -> Tuple[float, float, float]:
        return _axis_half_extents(self.radius, self.height, self.axis)

    def linear_dims(self) -> Dict[str, float]:
        return {"radius": self.radius, "height": self.height}

    def scaled(self, factor: float) -> "CylinderParams":
        return CylinderParams(self.radius * factor, self.height * factor, self.axis)

    def shrunk(self, decrement: float) -> Optional["CylinderParams"]:
        radius, height = self.radius - decrement, self.height - decrement
        if radius <= 0 or height <= 0:
            return None
        return CylinderParams(radius, height, self.axis)

    def to_dict(self) -> Dict[str, Any]:
        return {"radius": self.radius, "height": self.height, "axis": self.axis}


@dataclass(frozen=True)
class SphereParams:
    radius: float
    kind: ClassVar[str] = "sphere"

    def half_extents(self) -> Tuple[float, float, float]:
        return (self.radius, self.radius, self.radius)

    def linear_dims(self) -> Dict[str, float]:
        return {"radius": self.radius}

    def scaled(self, factor: float) -> "SphereParams":
        return SphereParams(self.radius * factor)

    def shrunk(self, decrement: float) -> Optional["SphereParams"]:
        if self.radius - decrement <= 0:
            return None
        return SphereParams(self.radius - decrement)

    def to_dict(self) -> Dict[str, Any]:
        return {"radius": self.radius}


@dataclass(frozen=True)
class ConeParams:
    """Truncated cone; `radius_bottom` sits at the low end of `axis`."""
    radius_bottom: float
    radius_top: float
    height: float
    axis: str = "z"
    kind: ClassVar[str] = "cone"

    def half_extents(self) -> Tuple[float, float, float]:
        return _axis_half_extents(max(self.radius_bottom, self.radius_top), self.height, self.axis)

    def linear_dims(self) -> Dict[str, float]:
        return {
            "radius_bottom": self.radius_bottom,
            "radius_top": self.radius_top,
            "height": self.height,
        }

    def scaled(self, factor: float) -> "ConeParams":
        return ConeParams(
            self.radius_bottom * factor, self.radius_top * factor, self.height * factor, self.axis,
        )

    def shrunk(self, decrement: float) -> Optional["ConeParams"]:
        dims = (self.radius_bottom - decrement, self.radius_top - decrement, self.height - decrement)
        if min(dims) <= 0:
            return None
        return ConeParams(*dims, axis=self.axis)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.linear_dims(), "axis": self.axis}


@dataclass(frozen=True)
class TorusParams:
    major_radius: float
    minor_radius: float
    axis: str = "z"
    kind: ClassVar[str] = "torus"

    def half_extents(self) -> Tuple[float, float, float]:
        outer = self.major_radius + self.minor_radius
        return _axis_half_extents(outer, 2.0 * self.minor_radius, self.axis)

    def linear_dims(self) -> Dict[str, float]:
        return {"major_radius": self.major_radius, "minor_radius": self.minor_radius}

    def scaled(self, factor: float) -> "TorusParams":
        return TorusParams(self.major_radius * factor, self.minor_radius * factor, self.axis)

    def shrunk(self, decrement: float) -> Optional["TorusParams"]:
        major, minor = self.major_radius - decrement, self.minor_radius - decrement
        if minor <= 0 or major <= minor:
            return None
        return TorusParams(major, minor, self.axis)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.linear_dims(), "axis": self.axis}


@dataclass(frozen=True)
class CustomParams:
    """Regular prism (`profile="hex_prism"` for six sides); radius is circumradius."""
    profile: str
    sides: int
    radius: float
    height: float
    axis: str = "z"
    kind: ClassVar[str] = "custom"

    def half_extents(self) -> Tuple[float, float, float]:
        return _axis_half_extents(self.radius, self.height, self.axis)

    def linear_dims(self) -> Dict[str, float]:
        return {"radius": self.radius, "height": self.height}

    def scaled(self, factor: float) -> "CustomParams":
        return replace(self, radius=self.radius * factor, height=self.height * factor)

    def shrunk(self, decrement: float) -> Optional["CustomParams"]:
        radius, height = self.radius - decrement, self.height - decrement
        if radius <= 0 or height <= 0:
            return None
        return replace(self, radius=radius, height=height)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profile": self.profile,
            "sides": int(self.sides),
            "radius": self.radius,
            "height": self.height,
            "axis": self.axis,
        }


PrimitiveParams = Union[
    BoxParams, CylinderParams, SphereParams, ConeParams, TorusParams, CustomParams,
]

PARAMS_BY_KIND: Dict[str, type] = {
    cls.kind: cls
    for cls in (BoxParams, CylinderParams, SphereParams, ConeParams, TorusParams, CustomParams)
}


def primitive_params_from_dict(kind: str, d: Dict[str, Any]) -> PrimitiveParams:
    """Rebuild a parameter variant from its document form."""
    cls = PARAMS_BY_KIND.get(kind)
    if cls is None:
        raise SchemaViolation([f"Unknown primitive kind: {kind!r}"])
    if cls is BoxParams:
        return BoxParams(float(d["width"]), float(d["depth"]), float(d["height"]))
    if cls is CylinderParams:
        return CylinderParams(float(d["radius"]), float(d["height"]), str(d.get("axis", "z")))
    if cls is SphereParams:
        return SphereParams(float(d["radius"]))
    if cls is ConeParams:
        return ConeParams(
            float(d["radius_bottom"]), float(d["radius_top"]), float(d["height"]),
            str(d.get("axis", "z")),
        )
    if cls is TorusParams:
        return TorusParams(float(d["major_radius"]), float(d["minor_radius"]), str(d.get("axis", "z")))
    return CustomParams(
        profile=str(d.get("profile", "hex_prism")),
        sides=int(d.get("sides", 6)),
        radius=float(d["radius"]),
        height=float(d["height"]),
        axis=str(d.get("axis", "z")),
    )


# ─── Recipe structure ────────────────────────────────────────────────────────


def _freeze_metadata(obj: Any) -> None:
    """Store a read-only copy so callers cannot edit metadata in place."""
    object.__setattr__(obj, "metadata", MappingProxyType(dict(obj.metadata)))


@dataclass(frozen=True)
class Primitive:
    """A solid primitive owned by exactly one recipe. Ids are never reused."""

    id: str
    params: PrimitiveParams
    transform: Transform = field(default_factory=Transform)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _freeze_metadata(self)

    @property
    def kind(self) -> str:
        return self.params.kind

    @property
    def position(self) -> Vec3:
        return self.transform.position

    def with_params(self, params: PrimitiveParams) -> "Primitive":
        return replace(self, params=params)


@dataclass(frozen=True)
class Operation:
    """One ordered boolean step: `target_id <op> tool_id`."""

    id: str
    op: str
    target_id: str
    tool_id: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _freeze_metadata(self)

    @property
    def tag(self) -> Optional[str]:
        return self.metadata.get("tag")

    @property
    def is_cut(self) -> bool:
        return self.op in ("subtract", "intersect")


@dataclass(frozen=True)
class PartRecipe:
    """A generated (or migrated) part: base primitive plus ordered operations."""

    id: str
    seed: int
    name: str
    difficulty: Difficulty
    bounding_mm: Vec3
    primitives: Tuple[Primitive, ...]
    operations: Tuple[Operation, ...]
    created_at: str
    units: str = UNITS_MM
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        _freeze_metadata(self)

    def primitive(self, primitive_id: str) -> Optional[Primitive]:
        for prim in self.primitives:
            if prim.id == primitive_id:
                return prim
        return None

    @property
    def base(self) -> Primitive:
        return self.primitives[0]

    @property
    def feature_count(self) -> int:
        """Distinct features; a hole pattern counts once."""
        return len({op.metadata.get("feature", op.id) for op in self.operations})

    def with_changes(self, **changes: Any) -> "PartRecipe":
        """Return a new recipe; the original is left untouched."""
        if "primitives" in changes:
            changes["primitives"] = tuple(changes["primitives"])
        if "operations" in changes:
            changes["operations"] = tuple(changes["operations"])
        return replace(self, **changes)


# ─── Configuration ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class GeneratorConfig:
    """Retry, fallback and safety constants for one generation run."""

    placement_attempts: int = 8
    shrink_factor: float = 0.5      # applied once when placement fails
    shrink_retries: int = 1
    shrink_decrement_mm: float = 1.0  # safety pass, per linear dimension
    safety_shrink_attempts: int = 1
    dimension_step_mm: float = 0.5  # sampled sizes snap to this grid
    generator_version: str = GENERATOR_VERSION


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def round_half_up(value: float, step: float = 1.0) -> float:
    """Round to the nearest multiple of `step`, halves away from -inf."""
    return math.floor(value / step + 0.5) * step
