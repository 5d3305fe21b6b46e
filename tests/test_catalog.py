"""Tests for the feature catalog."""
import dataclasses
import math

import pytest

from part_generator.catalog import (
    BOLT_CIRCLE,
    BOSS,
    CHAMFER,
    CORNERS,
    ENVELOPE,
    GROUP_BLIND,
    GROUP_INTERSECT,
    GROUP_THROUGH,
    GROUP_UNION,
    HEX_POCKET,
    HOLE,
    LINEAR_HOLE_PATTERN,
    POCKET,
    SLOT,
    available_features,
    draw_feature,
    hole_radius_range,
    size_feature,
)
from part_generator.contracts import CustomParams, CylinderParams, Difficulty, Vec3
from part_generator.difficulty import policy_for
from part_generator.rng import SeededRandom


class TestAvailableFeatures:
    def test_beginner_has_no_blind_or_intersect_rows(self, beginner_policy):
        specs = [s for s, _ in available_features(beginner_policy)]
        assert specs == [HOLE, SLOT, BOSS]
        assert all(s.through or s.op == "union" for s in specs)

    def test_expert_includes_custom_and_intersect(self, expert_policy):
        specs = [s for s, _ in available_features(expert_policy)]
        assert HEX_POCKET in specs
        assert ENVELOPE in specs

    def test_disallowed_op_is_filtered(self, expert_policy):
        policy = dataclasses.replace(expert_policy, allowed_ops=frozenset({"subtract"}))
        specs = [s for s, _ in available_features(policy)]
        assert all(s.op == "subtract" for s in specs)


class TestSpecGroups:
    def test_groups_follow_role_and_anchor(self):
        assert HOLE.group == GROUP_THROUGH
        assert SLOT.group == GROUP_THROUGH
        assert POCKET.group == GROUP_BLIND
        assert BOSS.group == GROUP_UNION
        assert ENVELOPE.group == GROUP_INTERSECT


class TestDrawAndSize:
    def test_draw_consumes_one_value(self, expert_policy):
        rng = SeededRandom(5)
        draw_feature(rng, expert_policy)
        assert rng.draws == 1

    def test_rotation_only_when_policy_allows(self, intermediate_policy, expert_policy):
        bounds = Vec3(150.0, 100.0, 40.0)
        rng = SeededRandom(11)
        intent = size_feature(rng, POCKET, bounds, intermediate_policy)
        assert intent.rotation == Vec3()
        draws_without = rng.draws

        rng = SeededRandom(11)
        intent = size_feature(rng, POCKET, bounds, expert_policy)
        assert rng.draws == draws_without + 1
        assert 0.0 <= intent.rotation.z <= 90.0
        assert intent.rotation.x == intent.rotation.y == 0.0

    @pytest.mark.parametrize("seed", range(1, 40))
    def test_beginner_hole_radius_range(self, seed, beginner_policy):
        bounds = Vec3(120.0, 60.0, 30.0)
        intent = size_feature(SeededRandom(seed), HOLE, bounds, beginner_policy)
        assert isinstance(intent.params, CylinderParams)
        lo, hi = hole_radius_range(bounds, intent.axis, beginner_policy)
        assert lo <= intent.params.radius <= hi + 0.25
        assert intent.params.axis == intent.axis

    def test_hole_radius_cap_for_z_axis(self, beginner_policy):
        assert hole_radius_range(Vec3(200.0, 150.0, 50.0), "z", beginner_policy) == (2.0, 15.0)
        assert hole_radius_range(Vec3(60.0, 30.0, 50.0), "z", beginner_policy) == (2.0, 5.0)

    def test_hole_radius_floor_on_tiny_parts(self, beginner_policy):
        assert hole_radius_range(Vec3(50.0, 20.0, 10.0), "x", beginner_policy) == (2.0, 2.0)

    def test_through_cutter_exceeds_part(self, beginner_policy):
        bounds = Vec3(100.0, 50.0, 25.0)
        intent = size_feature(SeededRandom(3), HOLE, bounds, beginner_policy)
        length = {"x": bounds.x, "y": bounds.y, "z": bounds.z}[intent.axis]
        assert intent.params.height > length

    def test_hex_pocket_is_six_sided_prism(self, expert_policy):
        intent = size_feature(SeededRandom(8), HEX_POCKET, Vec3(200.0, 150.0, 60.0), expert_policy)
        assert isinstance(intent.params, CustomParams)
        assert intent.params.profile == "hex_prism"
        assert intent.params.sides == 6

    @pytest.mark.parametrize("difficulty", list(Difficulty))
    def test_sized_params_positive(self, difficulty):
        policy = policy_for(difficulty)
        rng = SeededRandom(31337)
        bounds = Vec3(*(lo for lo, _ in policy.bounding_box_ranges.values()))
        for spec, _ in available_features(policy):
            intent = size_feature(rng, spec, bounds, policy)
            assert all(v > 0 for v in intent.params.linear_dims().values()), spec.name


class TestRegion:
    def test_through_region_pins_cut_axis(self, beginner_policy):
        bounds = Vec3(100.0, 50.0, 25.0)
        intent = size_feature(SeededRandom(3), HOLE, bounds, beginner_policy)
        region = intent.region(bounds, 2.0)
        i = "xyz".index(intent.axis)
        assert region.lo[i] == region.hi[i] == 0.0

    def test_envelope_region_is_origin(self, expert_policy):
        bounds = Vec3(100.0, 80.0, 30.0)
        intent = size_feature(SeededRandom(3), ENVELOPE, bounds, expert_policy)
        region = intent.region(bounds, 2.0)
        assert region.lo == region.hi == (0.0, 0.0, 0.0)

    def test_boss_sits_on_top_face(self, beginner_policy):
        bounds = Vec3(100.0, 80.0, 30.0)
        intent = size_feature(SeededRandom(3), BOSS, bounds, beginner_policy)
        region = intent.region(bounds, 2.0)
        assert region.lo[2] == pytest.approx(15.0 + intent.params.height / 2.0)


class TestStep:
    def test_sizes_snap_to_step(self, expert_policy):
        bounds = Vec3(173.0, 121.0, 47.0)
        for seed in range(1, 20):
            intent = size_feature(SeededRandom(seed), POCKET, bounds, expert_policy, step=1.0)
            assert all(v == int(v) for v in intent.params.linear_dims().values())

    def test_default_step_is_half_millimetre(self, expert_policy):
        intent = size_feature(SeededRandom(4), POCKET, Vec3(173.0, 121.0, 47.0), expert_policy)
        assert all((v * 2) == int(v * 2) for v in intent.params.linear_dims().values())


class TestMultiToolRows:
    BOUNDS = Vec3(200.0, 150.0, 40.0)

    @pytest.mark.parametrize("seed", range(1, 15))
    def test_linear_pattern_layout(self, seed, intermediate_policy):
        intent = size_feature(SeededRandom(seed), LINEAR_HOLE_PATTERN, self.BOUNDS, intermediate_policy)
        offsets = intent.offsets
        assert 3 <= len(offsets) <= 5
        assert all(o.z == 0.0 for o in offsets)
        assert all(o.x == 0.0 for o in offsets) or all(o.y == 0.0 for o in offsets)
        along = [o.x + o.y for o in offsets]
        assert sum(along) == pytest.approx(0.0, abs=1e-9)
        pitch = along[1] - along[0]
        assert pitch - 2 * intent.params.radius >= 1.5 * intent.params.radius - 0.5

    @pytest.mark.parametrize("seed", range(1, 15))
    def test_bolt_circle_layout(self, seed, intermediate_policy):
        intent = size_feature(SeededRandom(seed), BOLT_CIRCLE, self.BOUNDS, intermediate_policy)
        assert 4 <= len(intent.offsets) <= 6
        radii = [math.hypot(o.x, o.y) for o in intent.offsets]
        assert radii == pytest.approx([radii[0]] * len(radii), abs=1e-5)

    def test_pattern_box_holds_every_member(self, intermediate_policy):
        intent = size_feature(SeededRandom(9), BOLT_CIRCLE, self.BOUNDS, intermediate_policy)
        r = intent.params.radius
        spread = max(abs(o.x) for o in intent.offsets)
        assert intent.half_extents[0] == pytest.approx(r + spread)
        assert intent.half_extents[2] == pytest.approx(intent.params.height / 2.0)

    def test_scaling_shrinks_spacing(self, intermediate_policy):
        intent = size_feature(SeededRandom(9), LINEAR_HOLE_PATTERN, self.BOUNDS, intermediate_policy)
        half = intent.scaled(0.5)
        assert [o.as_tuple() for o in half.offsets] == [
            tuple(c * 0.5 for c in o.as_tuple()) for o in intent.offsets
        ]

    def test_single_tools_have_one_member(self, intermediate_policy):
        intent = size_feature(SeededRandom(9), HOLE, self.BOUNDS, intermediate_policy)
        assert intent.offsets == ()
        assert intent.members == (Vec3(),)

    def test_chamfer_pinned_to_corner(self, intermediate_policy):
        intent = size_feature(SeededRandom(2), CHAMFER, self.BOUNDS, intermediate_policy)
        assert intent.corner in CORNERS
        assert intent.rotation == Vec3(0.0, 0.0, 45.0)
        region = intent.region(self.BOUNDS, 2.0)
        assert region.lo == region.hi == (intent.corner[0] * 100.0, intent.corner[1] * 75.0, 0.0)
        assert CHAMFER.through and CHAMFER.group == GROUP_THROUGH

    def test_patterns_not_offered_to_beginners(self, beginner_policy):
        specs = [s for s, _ in available_features(beginner_policy)]
        assert LINEAR_HOLE_PATTERN not in specs and CHAMFER not in specs
