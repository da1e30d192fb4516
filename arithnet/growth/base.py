"""
Shared pieces of the growth operators: the growth context, candidate
scoring and the search result record exchanged with parallel workers.
"""

import numpy as np
from dataclasses import dataclass, asdict
from multiprocessing import cpu_count
from typing import Any, Dict, Optional, Tuple

from ..core.network import NeuronGraph


# Returned by a growth operator that found nothing to append
BIG = 1e18

# Images scored per block before candidates above the bound are dropped
SCORE_BLOCK = 64

# Candidate rows evaluated per numpy batch
CANDIDATE_BATCH = 4096

# Window of the optimized random pair operator
RANDOM_PAIR_WINDOW = 10


@dataclass
class GrowthContext:
    """
    Everything a growth operator reads or mutates.

    The graph is the only mutable piece; operators append to it after
    their search is complete.
    """
    graph: NeuronGraph
    target: np.ndarray
    n_classes: int = 1
    rng: Optional[np.random.Generator] = None
    n_workers: int = 1
    use_multiprocessing: bool = True
    use_simd: bool = True
    min_parallel_budget: int = 2000
    min_worker_iterations: int = 1000
    min_pair_worker_iterations: int = 100
    random_pair_window: int = RANDOM_PAIR_WINDOW

    def __post_init__(self):
        self.target = np.ascontiguousarray(self.target, dtype=np.float32)
        if self.rng is None:
            self.rng = np.random.default_rng()
        if self.n_workers is None:
            self.n_workers = cpu_count()
        self.n_workers = max(1, int(self.n_workers))

    @property
    def parallel_enabled(self) -> bool:
        return self.use_multiprocessing and self.n_workers > 1

    def use_parallel(self, budget: int) -> bool:
        """Whether a search of this many candidates is worth dispatching."""
        return self.parallel_enabled and budget >= self.min_parallel_budget

    def next_seed(self) -> int:
        """Draw a 32-bit base seed for the parallel workers."""
        return int(self.rng.integers(0, 2 ** 32))

    def vectors(self) -> np.ndarray:
        """Warm all vector caches and return them stacked."""
        return self.graph.vector_matrix(vectorized=self.use_simd)

    def score_node(self, node_id: int) -> float:
        """Squared error of one neuron against the target."""
        vec = self.graph.vector(node_id, vectorized=self.use_simd)
        return float(squared_error(vec[np.newaxis, :], self.target)[0])


@dataclass
class SearchResult:
    """Best candidate found by one search (serial or one worker)."""
    score: float = BIG
    params: Tuple[int, ...] = ()
    found: bool = False

    def offer(self, score: float, params: Tuple[int, ...]) -> bool:
        """Adopt the candidate if it is strictly better."""
        if score < self.score:
            self.score = float(score)
            self.params = tuple(int(p) for p in params)
            self.found = True
            return True
        return False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SearchResult':
        return cls(score=data['score'], params=tuple(data['params']), found=data['found'])


def squared_error(
    candidates: np.ndarray,
    target: np.ndarray,
    bound: float = np.inf,
) -> np.ndarray:
    """
    Sum of squared differences of each candidate row against the target.

    Images are accumulated block by block; a row whose running sum exceeds
    `bound` is dropped and reported as inf. NaN rows are reported as inf.

    Args:
        candidates: (n, n_images) float32
        target: (n_images,) float32
        bound: Running-sum cutoff

    Returns:
        (n,) float64 scores
    """
    n, m = candidates.shape
    totals = np.zeros(n, dtype=np.float64)
    alive = np.arange(n)
    for start in range(0, m, SCORE_BLOCK):
        stop = min(m, start + SCORE_BLOCK)
        with np.errstate(all='ignore'):
            diff = (target[start:stop] - candidates[alive, start:stop]).astype(np.float64)
            totals[alive] += np.sum(diff * diff, axis=1)
        alive = alive[totals[alive] <= bound]
        if len(alive) == 0:
            break
    scores = np.full(n, np.inf)
    scores[alive] = totals[alive]
    return scores


def current_bound(local_best: float, shared=None) -> float:
    """Pruning bound: the local best, lowered by the shared global minimum."""
    if shared is None:
        return local_best
    return min(local_best, shared.value)


def first_improvement(scores: np.ndarray, best: float) -> int:
    """Index of the first score strictly below best, or -1."""
    hits = np.flatnonzero(scores < best)
    return int(hits[0]) if len(hits) else -1
