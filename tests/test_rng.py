"""Tests for the Park-Miller random source."""
import pytest

from part_generator.contracts import InvalidInput
from part_generator.rng import MODULUS, SeededRandom


class TestRecurrence:
    """The recurrence is a cross-implementation contract."""

    def test_seed_one_first_values(self):
        rng = SeededRandom(1)
        assert rng.next() == 16806 / 2147483646
        assert rng.state == 16807
        assert rng.next() == 282475248 / 2147483646
        assert rng.state == 282475249

    def test_zero_seed_is_remapped(self):
        rng = SeededRandom(0)
        assert rng.state == MODULUS - 1
        rng.next()
        # (m - 1) * 16807 == -16807 (mod m)
        assert rng.state == MODULUS - 16807

    def test_negative_seed_keeps_dividend_sign(self):
        rng = SeededRandom(-1)
        assert rng.state == MODULUS - 2
        rng.next()
        assert rng.state == MODULUS - 2 * 16807

    def test_seed_wraps_at_modulus(self):
        a, b = SeededRandom(MODULUS + 1), SeededRandom(1)
        assert [a.next() for _ in range(5)] == [b.next() for _ in range(5)]

    def test_outputs_in_unit_interval(self):
        rng = SeededRandom(987654321)
        values = [rng.next() for _ in range(2000)]
        assert all(0.0 <= v < 1.0 for v in values)

    def test_same_seed_same_sequence(self):
        a, b = SeededRandom(12345), SeededRandom(12345)
        assert [a.next() for _ in range(50)] == [b.next() for _ in range(50)]


class TestHelpers:
    """Every helper consumes exactly one draw."""

    def test_uniform_bounds_and_draw_count(self):
        rng = SeededRandom(42)
        for _ in range(100):
            v = rng.uniform(10.0, 20.0)
            assert 10.0 <= v < 20.0
        assert rng.draws == 100

    def test_int_range_is_inclusive(self):
        rng = SeededRandom(7)
        seen = {rng.int_range(1, 3) for _ in range(300)}
        assert seen == {1, 2, 3}
        assert rng.draws == 300

    def test_int_range_single_value(self):
        rng = SeededRandom(7)
        assert rng.int_range(6, 6) == 6
        assert rng.draws == 1

    def test_int_range_empty_raises(self):
        with pytest.raises(ValueError):
            SeededRandom(7).int_range(3, 2)

    def test_pick_and_chance(self):
        rng = SeededRandom(99)
        assert rng.pick(("x", "y", "z")) in ("x", "y", "z")
        assert isinstance(rng.chance(0.5), bool)
        assert rng.chance(0.0) is False
        assert rng.draws == 3

    def test_weighted_pick_matches_cumulative_walk(self):
        a, b = SeededRandom(2024), SeededRandom(2024)
        items, weights = ["hole", "slot", "boss"], [6.0, 2.0, 1.0]
        for _ in range(50):
            chosen = a.weighted_pick(items, weights)
            target = b.next() * 9.0
            expected = "hole" if target < 6.0 else ("slot" if target < 8.0 else "boss")
            assert chosen == expected
        assert a.draws == 50

    def test_weighted_pick_rejects_mismatched_weights(self):
        with pytest.raises(ValueError):
            SeededRandom(1).weighted_pick(["a", "b"], [1.0])


class TestSeedValidation:
    @pytest.mark.parametrize("seed", [1.5, "12", None, True])
    def test_non_integer_seed_rejected(self, seed):
        with pytest.raises(InvalidInput):
            SeededRandom(seed)
