"""Difficulty policy table: bounding ranges, feature counts, allowed ops."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, FrozenSet, Tuple, Union

from part_generator.contracts import Difficulty, InvalidInput

Range = Tuple[float, float]


@dataclass(frozen=True)
class MarginPolicy:
    """Clearance from any outer face: max(floor_mm, min_extent * fraction)."""
    floor_mm: float = 2.0
    fraction: float = 0.02


@dataclass(frozen=True)
class DifficultyPolicy:
    difficulty: Difficulty
    width_range: Range
    depth_range: Range
    height_range: Range
    feature_count_range: Tuple[int, int]
    allowed_ops: FrozenSet[str]
    min_wall_thickness_mm: float
    margin_policy: MarginPolicy = MarginPolicy()
    allow_cutter_overlap: bool = False
    allow_blind_pockets: bool = False
    allow_rotation: bool = False
    hole_radius_cap_mm: float = 15.0

    @property
    def bounding_box_ranges(self) -> Dict[str, Range]:
        return {
            "width": self.width_range,
            "depth": self.depth_range,
            "height": self.height_range,
        }

    def allows(self, op: str) -> bool:
        return op in self.allowed_ops


POLICIES: Dict[Difficulty, DifficultyPolicy] = {
    # Axis-aligned through cuts, the occasional boss.
    Difficulty.BEGINNER: DifficultyPolicy(
        difficulty=Difficulty.BEGINNER,
        width_range=(50.0, 200.0),
        depth_range=(20.0, 150.0),
        height_range=(10.0, 150.0),
        feature_count_range=(1, 3),
        allowed_ops=frozenset({"subtract", "union"}),
        min_wall_thickness_mm=2.0,
    ),
    Difficulty.INTERMEDIATE: DifficultyPolicy(
        difficulty=Difficulty.INTERMEDIATE,
        width_range=(80.0, 220.0),
        depth_range=(60.0, 180.0),
        height_range=(20.0, 100.0),
        feature_count_range=(3, 6),
        allowed_ops=frozenset({"subtract", "union", "intersect"}),
        min_wall_thickness_mm=1.75,
        allow_cutter_overlap=True,
        allow_blind_pockets=True,
        hole_radius_cap_mm=20.0,
    ),
    Difficulty.EXPERT: DifficultyPolicy(
        difficulty=Difficulty.EXPERT,
        width_range=(60.0, 300.0),
        depth_range=(40.0, 240.0),
        height_range=(15.0, 160.0),
        feature_count_range=(6, 9),
        allowed_ops=frozenset({"subtract", "union", "intersect"}),
        min_wall_thickness_mm=1.5,
        allow_cutter_overlap=True,
        allow_blind_pockets=True,
        allow_rotation=True,
        hole_radius_cap_mm=25.0,
    ),
}


def policy_for(difficulty: Union[Difficulty, str, None]) -> DifficultyPolicy:
    """Look up the policy for a difficulty; anything unknown is InvalidInput."""
    if difficulty is None:
        raise InvalidInput("Difficulty is required")
    level = Difficulty.parse(difficulty)
    try:
        return POLICIES[level]
    except KeyError:
        raise InvalidInput(f"No policy for difficulty {level.value}") from None
