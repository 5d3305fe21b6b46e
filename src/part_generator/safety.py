"""
Safety/simplification pass: minimum wall thickness at every cut site.

Each `subtract`/`intersect` site is measured as the thinnest of
- the wall between the cutter and the outer faces of the base,
- the web between the cutter and every other surviving cutter it does not
  merge with,
- the wall between the cutter and the outline of every surviving
  `intersect` envelope that encloses it.
An `intersect` site is measured by the material the tool keeps.

A violating cutter is shrunk by a fixed decrement on every linear dimension;
if the site still violates, the operation and its tool are removed.
Intersect tools are dropped without shrinking, since a smaller envelope
only removes more material. Ids are never reissued. The pass works on a
bare (primitives, operations) pair so it can run on recipes that did not
come from the builder.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from part_generator.contracts import (
    GeneratorConfig,
    Operation,
    PartRecipe,
    Primitive,
    Vec3,
    WallThicknessViolation,
)
from part_generator.placement import (
    envelope_wall_thickness,
    estimate_wall_thickness,
    intersection_thickness,
    primitive_bounds,
    web_thickness,
)

logger = logging.getLogger(__name__)


@dataclass
class SafetyReport:
    """Result of one safety pass."""

    primitives: List[Primitive]
    operations: List[Operation]
    dropped: List[str] = field(default_factory=list)   # tool ids removed
    shrunk: List[str] = field(default_factory=list)    # tool ids shrunk in place
    decisions: List[Dict[str, object]] = field(default_factory=list)


def site_wall_thickness(
    op: Operation,
    tool: Primitive,
    bounds: Vec3,
    cutters: Iterable[Primitive] = (),
    envelopes: Iterable[Primitive] = (),
) -> float:
    """Thinnest material left at one cut site."""
    tool_box = primitive_bounds(tool)
    if op.op == "intersect":
        return intersection_thickness(bounds, tool_box)

    wall = estimate_wall_thickness(bounds, Vec3(*tool_box.center), tool_box.size)
    for other in cutters:
        if other.id == tool.id:
            continue
        web = web_thickness(tool, other)
        # zero web means the cutters merge into one opening
        if web > 0.0:
            wall = min(wall, web)
    for envelope in envelopes:
        wall = min(wall, envelope_wall_thickness(tool, envelope))
    return wall


def require_wall(
    op: Operation,
    tool: Primitive,
    bounds: Vec3,
    cutters: Iterable[Primitive],
    min_wall_mm: float,
    envelopes: Iterable[Primitive] = (),
) -> float:
    """Return the site thickness or raise WallThicknessViolation."""
    thickness = site_wall_thickness(op, tool, bounds, cutters, envelopes)
    if thickness < min_wall_mm:
        raise WallThicknessViolation(op.id, thickness, min_wall_mm)
    return thickness


def run_safety_pass(
    primitives: Sequence[Primitive],
    operations: Sequence[Operation],
    bounds: Vec3,
    min_wall_mm: float,
    config: Optional[GeneratorConfig] = None,
) -> SafetyReport:
    """Shrink-then-drop every cut site thinner than `min_wall_mm`."""
    if config is None:
        config = GeneratorConfig()

    prims: Dict[str, Primitive] = {p.id: p for p in primitives}
    ops: List[Operation] = list(operations)
    report = SafetyReport(primitives=[], operations=[])

    for op_id in [o.id for o in ops]:
        # re-read each step: earlier drops relink the survivors
        op = next(o for o in ops if o.id == op_id)
        if not op.is_cut:
            continue
        tool = prims[op.tool_id]
        try:
            require_wall(
                op, tool, bounds, _cutters(ops, prims), min_wall_mm, _envelopes(ops, prims),
            )
            continue
        except WallThicknessViolation as exc:
            violation = exc

        repaired = _shrink_until_clear(op, tool, bounds, ops, prims, min_wall_mm, config)
        if repaired is not None:
            prims[tool.id] = repaired
            report.shrunk.append(tool.id)
            report.decisions.append(_decision(op, tool, "shrink", violation))
            logger.debug(
                "Shrunk %s at %s: wall %.2fmm < %.2fmm",
                tool.id, op.id, violation.thickness_mm, min_wall_mm,
            )
            continue

        ops = _remove_operation(ops, op.id)
        del prims[tool.id]
        report.dropped.append(tool.id)
        report.decisions.append(_decision(op, tool, "drop", violation))
        logger.debug(
            "Dropped %s (%s): wall %.2fmm < %.2fmm after shrink",
            op.id, tool.id, violation.thickness_mm, min_wall_mm,
        )

    report.primitives = [prims[p.id] for p in primitives if p.id in prims]
    report.operations = ops
    if report.dropped or report.shrunk:
        logger.info(
            "Safety pass: shrunk=%d dropped=%d min_wall=%.2fmm",
            len(report.shrunk), len(report.dropped), min_wall_mm,
        )
    return report


def wall_report(recipe: PartRecipe) -> Dict[str, float]:
    """Site thickness for every cut operation of a finished recipe."""
    prims = {p.id: p for p in recipe.primitives}
    ops = list(recipe.operations)
    cutters = _cutters(ops, prims)
    envelopes = _envelopes(ops, prims)
    return {
        op.id: site_wall_thickness(op, prims[op.tool_id], recipe.bounding_mm, cutters, envelopes)
        for op in ops
        if op.is_cut and op.tool_id in prims
    }


def check_wall_thickness(recipe: PartRecipe, min_wall_mm: float) -> None:
    """Raise WallThicknessViolation for the first site below the limit."""
    for site_id, thickness in wall_report(recipe).items():
        if thickness < min_wall_mm:
            raise WallThicknessViolation(site_id, thickness, min_wall_mm)


# ─── Internal helpers ────────────────────────────────────────────────────────


def _cutters(ops: Sequence[Operation], prims: Dict[str, Primitive]) -> List[Primitive]:
    return [prims[o.tool_id] for o in ops if o.op == "subtract" and o.tool_id in prims]


def _envelopes(ops: Sequence[Operation], prims: Dict[str, Primitive]) -> List[Primitive]:
    return [prims[o.tool_id] for o in ops if o.op == "intersect" and o.tool_id in prims]


def _shrink_until_clear(
    op: Operation,
    tool: Primitive,
    bounds: Vec3,
    ops: Sequence[Operation],
    prims: Dict[str, Primitive],
    min_wall_mm: float,
    config: GeneratorConfig,
) -> Optional[Primitive]:
    if op.op == "intersect":
        return None
    candidate = tool
    for _ in range(config.safety_shrink_attempts):
        params = candidate.params.shrunk(config.shrink_decrement_mm)
        if params is None:
            return None
        candidate = candidate.with_params(params)
        trial = dict(prims)
        trial[tool.id] = candidate
        thickness = site_wall_thickness(
            op, candidate, bounds, _cutters(ops, trial), _envelopes(ops, trial),
        )
        if thickness >= min_wall_mm:
            return candidate
    return None


def _remove_operation(ops: List[Operation], removed_id: str) -> List[Operation]:
    """Drop one operation; anything that built on it builds on its target instead."""
    removed = next(o for o in ops if o.id == removed_id)
    result = []
    for op in ops:
        if op.id == removed_id:
            continue
        if op.target_id == removed_id:
            op = Operation(
                id=op.id,
                op=op.op,
                target_id=removed.target_id,
                tool_id=op.tool_id,
                metadata=op.metadata,
            )
        result.append(op)
    return result


def _decision(op: Operation, tool: Primitive, action: str, violation: WallThicknessViolation) -> Dict[str, object]:
    thickness = violation.thickness_mm
    return {
        "site": op.id,
        "tool": tool.id,
        "tag": op.tag,
        "action": action,
        "thickness_mm": None if math.isinf(thickness) else round(float(thickness), 4),
        "limit_mm": float(violation.limit_mm),
    }
