"""
Per-worker random numbers for parallel growth searches.

Each worker owns a linear congruential generator with the classic
``rand()`` constants, so worker streams depend only on the base seed and
the worker id. Bulk draws use jump-ahead arithmetic instead of a Python
loop.
"""

import numpy as np


MULTIPLIER = 1103515245
INCREMENT = 12345
MASK = 0xFFFFFFFF
RAND_MAX = 0x7FFF
WORKER_SEED_STRIDE = 1099087573


def worker_seed(base_seed: int, worker_id: int) -> int:
    """Seed of a worker's generator: base_seed xor worker_id * stride."""
    return (int(base_seed) ^ (int(worker_id) * WORKER_SEED_STRIDE)) & MASK


class LinearCongruentialGenerator:
    """32-bit LCG producing 15-bit outputs."""

    def __init__(self, seed: int):
        self.state = int(seed) & MASK

    def next_raw(self) -> int:
        self.state = (self.state * MULTIPLIER + INCREMENT) & MASK
        return (self.state >> 16) & RAND_MAX

    def raw(self, count: int) -> np.ndarray:
        """The next `count` 15-bit outputs, in stream order."""
        if count <= 0:
            return np.empty(0, dtype=np.int64)
        # state_k = a^k * s0 + c * (1 + a + ... + a^(k-1))  (mod 2^32)
        multipliers = np.full(count, MULTIPLIER, dtype=np.uint64)
        powers = np.cumprod(multipliers, dtype=np.uint64)
        previous = np.empty(count, dtype=np.uint64)
        previous[0] = 1
        previous[1:] = powers[:-1]
        offsets = np.cumsum(previous, dtype=np.uint64) * np.uint64(INCREMENT)
        states = (powers * np.uint64(self.state) + offsets) & np.uint64(MASK)
        self.state = int(states[-1])
        return ((states >> np.uint64(16)) & np.uint64(RAND_MAX)).astype(np.int64)

    def integers(self, high: int, size: int) -> np.ndarray:
        """
        `size` values uniform-ish in [0, high).

        Bounds above RAND_MAX combine two outputs per value.
        """
        high = int(high)
        if high <= 0:
            raise ValueError(f"high must be positive, got {high}")
        if high <= RAND_MAX + 1:
            return self.raw(size) % high
        pairs = self.raw(2 * size).reshape(size, 2)
        return ((pairs[:, 0] << 15) | pairs[:, 1]) % high

    def randint(self, high: int) -> int:
        return int(self.integers(high, 1)[0])
