"""
Arrow Domain - Seeded Random

Deterministic xorshift32 PRNG so that puzzles are reproducible from
(difficulty, seed, serial). Every engine function takes a plain
`() -> float` callable, so a SeededRandom instance and a constant lambda
are interchangeable.
"""

import random
import time
from typing import Callable, List, Sequence, TypeVar

T = TypeVar("T")

RandomSource = Callable[[], float]

UINT32_MASK = 0xFFFFFFFF
# xorshift stays at zero forever when seeded with zero.
ZERO_SEED_REPLACEMENT = 0x9E3779B9


# ============================================
# SEEDED RANDOM
# ============================================

class SeededRandom:
    """xorshift32 generator returning floats in [0, 1)."""

    def __init__(self, seed: int):
        self.seed = seed & UINT32_MASK
        self._state = self.seed or ZERO_SEED_REPLACEMENT

    def next(self) -> float:
        x = self._state
        x ^= (x << 13) & UINT32_MASK
        x ^= x >> 17
        x ^= (x << 5) & UINT32_MASK
        self._state = x
        return x / 4294967296

    def __call__(self) -> float:
        return self.next()

    def next_int(self, min_val: int, max_val: int) -> int:
        return random_int(self, min_val, max_val)

    def choice(self, values: Sequence[T]) -> T:
        return choose_random(values, self)

    def shuffle(self, items: Sequence[T]) -> List[T]:
        return shuffle(items, self)


# ============================================
# HELPERS
# ============================================

def random_int(rng: RandomSource, min_val: int, max_val: int) -> int:
    """Integer in [min_val, max_val]."""
    if min_val > max_val:
        return min_val
    return min_val + int(rng() * (max_val - min_val + 1))


def choose_random(values: Sequence[T], rng: RandomSource) -> T:
    if not values:
        raise ValueError("Cannot choose from an empty sequence")
    return values[random_int(rng, 0, len(values) - 1)]


def shuffle(items: Sequence[T], rng: RandomSource) -> List[T]:
    """Fisher-Yates shuffle, returns a new list."""
    result = list(items)
    for i in range(len(result) - 1, 0, -1):
        j = random_int(rng, 0, i)
        result[i], result[j] = result[j], result[i]
    return result


def create_random_seed() -> int:
    """Entropy seed for "new puzzle" requests."""
    return (time.time_ns() ^ random.getrandbits(31)) & UINT32_MASK
