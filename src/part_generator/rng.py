"""
Deterministic random source for part generation.

Park-Miller "minimal standard" linear congruential generator. The recurrence
and the output formula are a cross-implementation contract: a given seed must
yield the same sequence in every implementation, so nothing here may be
swapped for `random.Random` or numpy's generators.

    s0    = seed mod 2147483647   (remainder takes the sign of the seed)
    s0   += 2147483646            if s0 <= 0
    s_n+1 = s_n * 16807 mod 2147483647
    out   = (s_n+1 - 1) / 2147483646          in [0, 1)

Every helper consumes exactly one draw.
"""
from __future__ import annotations

import math
from typing import Sequence, TypeVar

from part_generator.contracts import InvalidInput

T = TypeVar("T")

MODULUS = 2147483647
MULTIPLIER = 16807


def _truncated_mod(value: int, modulus: int) -> int:
    """Remainder with the sign of the dividend (C / JavaScript `%`)."""
    remainder = abs(value) % modulus
    return -remainder if value < 0 else remainder


class SeededRandom:
    """One instance per generation call; never shared between threads."""

    def __init__(self, seed: int):
        if isinstance(seed, bool) or not isinstance(seed, int):
            raise InvalidInput(f"Seed must be an integer, got {type(seed).__name__}")
        self.seed = seed
        state = _truncated_mod(seed, MODULUS)
        if state <= 0:
            state += MODULUS - 1
        self._state = state
        self.draws = 0

    @property
    def state(self) -> int:
        return self._state

    def next(self) -> float:
        self._state = (self._state * MULTIPLIER) % MODULUS
        self.draws += 1
        return (self._state - 1) / (MODULUS - 1)

    def uniform(self, lo: float, hi: float) -> float:
        return lo + self.next() * (hi - lo)

    def int_range(self, lo: int, hi: int) -> int:
        """Integer in [lo, hi], inclusive on both ends."""
        if hi < lo:
            raise ValueError(f"Empty integer range [{lo}, {hi}]")
        return lo + math.floor(self.next() * (hi - lo + 1))

    def pick(self, items: Sequence[T]) -> T:
        if not items:
            raise ValueError("Cannot pick from an empty sequence")
        return items[math.floor(self.next() * len(items))]

    def chance(self, probability: float) -> bool:
        return self.next() < probability

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        if not items or len(items) != len(weights):
            raise ValueError("weighted_pick needs one weight per item")
        total = float(sum(weights))
        if total <= 0:
            raise ValueError("weighted_pick needs a positive total weight")
        target = self.next() * total
        cumulative = 0.0
        for item, weight in zip(items, weights):
            cumulative += weight
            if target < cumulative:
                return item
        return items[-1]
