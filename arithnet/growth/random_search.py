"""
Random growth operators.

- random_single: append one random op(i, j), no search
- random_from_inputs: append one random op(input, receptor), no search
- random_pair_opt: best A = op(i, j), B = op(A, input) over random draws,
  with i drawn from the newest neurons
- random_pair_ext: same shape, every index drawn from the whole graph

The pair operators draw their candidates in batches and keep the first
strict minimum of the stream, which is what a one-at-a-time loop keeps.
"""

from typing import Any, Callable, Dict, Tuple

import numpy as np

from ..core.operations import OP_COUNT, OPERATIONS, apply_rowwise
from .base import (
    BIG,
    CANDIDATE_BATCH,
    GrowthContext,
    SearchResult,
    current_bound,
    squared_error,
)
from .parallel import (
    iterations_per_worker,
    publish_min,
    run_parallel,
    worker_state,
)
from .rng import LinearCongruentialGenerator, worker_seed
from ..utils import get_logger

logger = get_logger(__name__)

# (a_left, a_right, b_right) index ranges, each a half-open (lo, hi)
PairRanges = Tuple[Tuple[int, int], Tuple[int, int], Tuple[int, int]]


# =============================================================================
# Single-neuron operators
# =============================================================================

def _append_scored(ctx: GrowthContext, i: int, j: int, op: int, name: str) -> float:
    node_id = ctx.graph.append(i, j, op)
    score = ctx.score_node(node_id)
    logger.debug("%s: err = %g, (%d) = (%d) %s (%d)",
                 name, score, node_id, i, OPERATIONS[op].name, j)
    return score


def random_single(ctx: GrowthContext) -> float:
    """Append op(i, j) with i, j and op drawn uniformly over the graph."""
    n = len(ctx.graph)
    i, j = (int(v) for v in ctx.rng.integers(0, n, size=2))
    op = int(ctx.rng.integers(0, OP_COUNT))
    return _append_scored(ctx, i, j, op, 'random_single')


def random_from_inputs(ctx: GrowthContext) -> float:
    """Append op(input, receptor) with uniform draws."""
    i = int(ctx.rng.integers(0, ctx.graph.inputs))
    j = int(ctx.rng.integers(0, ctx.graph.receptors))
    op = int(ctx.rng.integers(0, OP_COUNT))
    return _append_scored(ctx, i, j, op, 'random_from_inputs')


# =============================================================================
# Pair search
# =============================================================================

def pair_ranges(ctx: GrowthContext, extended: bool) -> Tuple[PairRanges, int]:
    """Index ranges and iteration budget of a random pair search."""
    n = len(ctx.graph)
    if extended:
        return ((0, n), (0, n), (0, n)), 6 * n * n
    window = ctx.random_pair_window
    ranges = ((max(0, n - window), n), (0, max(1, n - window)), (0, ctx.graph.inputs))
    return ranges, ctx.graph.inputs * n * window


def scan_random_pairs(
    vectors: np.ndarray,
    target: np.ndarray,
    ranges: PairRanges,
    iterations: int,
    draw: Callable[[int, int, int], np.ndarray],
    result=None,
    global_min=None,
    vectorized: bool = True,
) -> SearchResult:
    """
    Score `iterations` random (A, B) pairs.

    Args:
        vectors: Warmed neuron vectors
        target: Target vector
        ranges: (a_left, a_right, b_right) ranges
        iterations: Number of candidates
        draw: draw(lo, hi, size) -> int array in [lo, hi)
        result: Result to improve in place
        global_min: Shared minimum for cross-worker pruning

    Returns:
        SearchResult with params (a_left, a_right, a_op, b_right, b_op)
    """
    result = result or SearchResult()
    (al_lo, al_hi), (ar_lo, ar_hi), (br_lo, br_hi) = ranges
    done = 0
    while done < iterations:
        size = min(CANDIDATE_BATCH, iterations - done)
        a_left = draw(al_lo, al_hi, size)
        a_right = draw(ar_lo, ar_hi, size)
        a_op = draw(0, OP_COUNT, size)
        b_right = draw(br_lo, br_hi, size)
        b_op = draw(0, OP_COUNT, size)

        a_vecs = apply_rowwise(a_op, vectors[a_left], vectors[a_right], vectorized)
        b_vecs = apply_rowwise(b_op, a_vecs, vectors[b_right], vectorized)
        scores = squared_error(b_vecs, target, current_bound(result.score, global_min))
        k = int(np.argmin(scores))
        params = (a_left[k], a_right[k], a_op[k], b_right[k], b_op[k])
        if result.offer(scores[k], params) and global_min is not None:
            publish_min(global_min, result.score)
        done += size
    return result


def _numpy_draw(rng: np.random.Generator):
    def draw(lo: int, hi: int, size: int) -> np.ndarray:
        return rng.integers(lo, hi, size=size)
    return draw


def _lcg_draw(lcg: LinearCongruentialGenerator):
    def draw(lo: int, hi: int, size: int) -> np.ndarray:
        return lo + lcg.integers(hi - lo, size)
    return draw


def _commit_pair(ctx: GrowthContext, result: SearchResult, name: str) -> float:
    if not result.found:
        logger.debug("%s: no candidate below %g", name, BIG)
        return BIG
    a_left, a_right, a_op, b_right, b_op = result.params
    a_id = ctx.graph.append(a_left, a_right, a_op)
    b_id = ctx.graph.append(a_id, b_right, b_op)
    logger.debug("%s: min = %g, (%d) = (%d) %s (%d), (%d) = (%d) %s (%d)",
                 name, result.score,
                 a_id, a_left, OPERATIONS[a_op].name, a_right,
                 b_id, a_id, OPERATIONS[b_op].name, b_right)
    return result.score


def _random_pair(ctx: GrowthContext, extended: bool, name: str) -> float:
    ranges, budget = pair_ranges(ctx, extended)
    vectors = ctx.vectors()
    result = scan_random_pairs(vectors, ctx.target, ranges, budget,
                               _numpy_draw(ctx.rng), vectorized=ctx.use_simd)
    return _commit_pair(ctx, result, name)


def random_pair_opt(ctx: GrowthContext) -> float:
    """Append the best pair with A built from the newest neurons."""
    return _random_pair(ctx, extended=False, name='random_pair_opt')


def random_pair_ext(ctx: GrowthContext) -> float:
    """Append the best pair drawn from the whole graph."""
    return _random_pair(ctx, extended=True, name='random_pair_ext')


# =============================================================================
# Parallel pair search
# =============================================================================

def _random_pair_worker(job: Dict[str, Any]) -> Dict[str, Any]:
    """
    Worker function for parallel random pair search.

    This is a module-level function to enable pickling for multiprocessing.
    """
    state = worker_state()
    lcg = LinearCongruentialGenerator(worker_seed(job['base_seed'], job['worker_id']))
    result = scan_random_pairs(
        state['vectors'],
        state['target'],
        tuple(tuple(r) for r in job['ranges']),
        job['iterations'],
        _lcg_draw(lcg),
        global_min=state['global_min'],
        vectorized=job['vectorized'],
    )
    return result.to_dict()


def _random_pair_parallel(ctx: GrowthContext, extended: bool, name: str) -> float:
    ranges, budget = pair_ranges(ctx, extended)
    if not ctx.use_parallel(budget):
        return _random_pair(ctx, extended, name.replace('_parallel', ''))
    per_worker = iterations_per_worker(budget, ctx.n_workers, ctx.min_pair_worker_iterations)
    base_seed = ctx.next_seed()
    jobs = [
        {
            'worker_id': w,
            'base_seed': base_seed,
            'iterations': per_worker,
            'ranges': ranges,
            'vectorized': ctx.use_simd,
        }
        for w in range(ctx.n_workers)
    ]
    vectors = ctx.vectors()
    result = run_parallel(_random_pair_worker, jobs, vectors, ctx.target, ctx.n_workers)
    return _commit_pair(ctx, result, name)


def random_pair_opt_parallel(ctx: GrowthContext) -> float:
    return _random_pair_parallel(ctx, extended=False, name='random_pair_opt_parallel')


def random_pair_ext_parallel(ctx: GrowthContext) -> float:
    return _random_pair_parallel(ctx, extended=True, name='random_pair_ext_parallel')
