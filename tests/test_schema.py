"""Tests for document validation and recipe invariants."""
import pytest

from part_generator.contracts import (
    BoxParams,
    CylinderParams,
    Operation,
    Primitive,
    SchemaViolation,
    TorusParams,
    Vec3,
)
from part_generator.schema import (
    assert_valid_document,
    assert_valid_recipe,
    check_recipe_invariants,
    validate_recipe_document,
)
from part_generator.serialization import recipe_to_dict


class TestRecipeInvariants:
    def test_fixtures_are_valid(self, block_hole, l_bracket):
        assert check_recipe_invariants(block_hole) == []
        assert check_recipe_invariants(l_bracket) == []

    def test_forward_reference_rejected(self, l_bracket):
        ops = list(l_bracket.operations)
        ops[0] = Operation("op1", "subtract", "op2", "p1")
        issues = check_recipe_invariants(l_bracket.with_changes(operations=ops))
        assert any("op1: target op2" in issue for issue in issues)

    def test_self_reference_rejected(self, block_hole):
        bad = block_hole.with_changes(operations=[Operation("op1", "subtract", "op1", "p1")])
        assert any("references itself" in i for i in check_recipe_invariants(bad))

    def test_tool_must_be_primitive(self, l_bracket):
        ops = list(l_bracket.operations)
        ops[1] = Operation("op2", "subtract", "op1", "op1")
        issues = check_recipe_invariants(l_bracket.with_changes(operations=ops))
        assert any("tool op1 is not a primitive" in i for i in issues)

    def test_duplicate_ids_rejected(self, block_hole):
        prims = list(block_hole.primitives) + [block_hole.primitives[1]]
        issues = check_recipe_invariants(block_hole.with_changes(primitives=prims))
        assert "Duplicate primitive id p1" in issues

    def test_non_positive_dimension_rejected(self, block_hole):
        hole = block_hole.primitives[1].with_params(CylinderParams(0.0, 200.0, "z"))
        bad = block_hole.with_changes(primitives=[block_hole.base, hole])
        assert any("radius must be > 0" in i for i in check_recipe_invariants(bad))

    def test_bounds_must_match_base(self, block_hole):
        bad = block_hole.with_changes(bounding_mm=Vec3(100.0, 50.0, 26.0))
        assert any("bounding_mm.z" in i for i in check_recipe_invariants(bad))

    def test_base_must_be_box(self, block_hole):
        base = Primitive("p0", CylinderParams(10.0, 10.0))
        bad = block_hole.with_changes(primitives=[base, block_hole.primitives[1]])
        assert any("must be a box" in i for i in check_recipe_invariants(bad))

    def test_torus_radii_ordered(self, block_hole):
        ring = Primitive("p1", TorusParams(3.0, 5.0))
        bad = block_hole.with_changes(primitives=[block_hole.base, ring])
        assert any("minor_radius" in i for i in check_recipe_invariants(bad))

    def test_assert_raises_with_issues(self, block_hole):
        bad = block_hole.with_changes(bounding_mm=Vec3(0.0, 50.0, 25.0))
        with pytest.raises(SchemaViolation) as exc:
            assert_valid_recipe(bad)
        assert exc.value.issues

    def test_with_changes_leaves_original(self, block_hole):
        block_hole.with_changes(bounding_mm=Vec3(1.0, 1.0, 1.0))
        assert block_hole.bounding_mm == Vec3(100.0, 50.0, 25.0)
        assert block_hole.base.params == BoxParams(100.0, 50.0, 25.0)


class TestDocumentValidation:
    def test_serialized_fixture_is_valid(self, l_bracket):
        assert validate_recipe_document(recipe_to_dict(l_bracket)) == []

    def test_missing_fields(self):
        issues = validate_recipe_document({"id": "1"})
        assert "Missing required field 'seed'" in issues
        assert "Missing required field 'operations'" in issues

    def test_not_an_object(self):
        assert validate_recipe_document([1, 2]) == ["Recipe document must be an object"]

    @pytest.mark.parametrize(
        "key,value,fragment",
        [
            ("units", "inch", "Units must be"),
            ("difficulty", "Legendary", "Unknown difficulty"),
            ("seed", "12", "'seed' must be an integer"),
            ("seed", True, "'seed' must be an integer"),
            ("bounding_mm", {"x": 1, "y": 2}, "'bounding_mm'"),
            ("primitives", [], "'primitives' must be a non-empty list"),
        ],
    )
    def test_bad_top_level_values(self, block_hole, key, value, fragment):
        doc = recipe_to_dict(block_hole)
        doc[key] = value
        assert any(fragment in i for i in validate_recipe_document(doc))

    def test_unknown_primitive_kind(self, block_hole):
        doc = recipe_to_dict(block_hole)
        doc["primitives"][1]["kind"] = "blob"
        assert any("not a known primitive kind" in i for i in validate_recipe_document(doc))

    def test_missing_param(self, block_hole):
        doc = recipe_to_dict(block_hole)
        del doc["primitives"][1]["params"]["radius"]
        assert any("params.radius" in i for i in validate_recipe_document(doc))

    def test_bad_axis_and_op(self, block_hole):
        doc = recipe_to_dict(block_hole)
        doc["primitives"][1]["params"]["axis"] = "w"
        doc["operations"][0]["op"] = "xor"
        issues = validate_recipe_document(doc)
        assert any("params.axis" in i for i in issues)
        assert any("operations[0].op" in i for i in issues)

    def test_assert_valid_document(self, block_hole):
        doc = recipe_to_dict(block_hole)
        del doc["createdAt"]
        with pytest.raises(SchemaViolation):
            assert_valid_document(doc)
