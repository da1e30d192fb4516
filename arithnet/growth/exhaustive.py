"""
Exhaustive growth operators - append the single best op(i, j).

Candidates are visited in lexicographic (i, j, op) order and only a
strictly better score replaces the best, so the first minimum wins no
matter how the i range is split across workers.

- exhaustive_full: 1 <= i < N, 0 <= j < i
- exhaustive_last: i = N - 1, 0 <= j < i
- combine_old_new: i < B, B <= j < N with B = N - 3 * classes
"""

from typing import Any, Dict, Iterable, Optional

import numpy as np

from ..core.operations import OP_COUNT, OPERATIONS, apply_all
from .base import (
    BIG,
    CANDIDATE_BATCH,
    GrowthContext,
    SearchResult,
    current_bound,
    squared_error,
)
from .parallel import publish_min, run_parallel, split_range, worker_state
from ..utils import get_logger

logger = get_logger(__name__)


def scan_pairs(
    vectors: np.ndarray,
    target: np.ndarray,
    rows: Iterable[int],
    j_start: int = 0,
    j_stop: Optional[int] = None,
    result: Optional[SearchResult] = None,
    global_min=None,
    vectorized: bool = True,
) -> SearchResult:
    """
    Score op(vectors[i], vectors[j]) for every i in rows and j in range.

    Args:
        vectors: (n_neurons, n_images) warmed neuron vectors
        target: Target vector
        rows: First operand ids, ascending
        j_start: First second-operand id
        j_stop: End of the second-operand range (None: up to i)
        result: Result to improve in place
        global_min: Shared minimum for cross-worker pruning

    Returns:
        The best (i, j, op) found, as a SearchResult
    """
    result = result or SearchResult()
    for i in rows:
        stop = i if j_stop is None else j_stop
        for lo in range(j_start, stop, CANDIDATE_BATCH):
            hi = min(stop, lo + CANDIDATE_BATCH)
            # (op, j, image) -> rows ordered by (j, op)
            combined = apply_all(vectors[i], vectors[lo:hi], vectorized=vectorized)
            candidates = combined.transpose(1, 0, 2).reshape(-1, vectors.shape[1])
            bound = current_bound(result.score, global_min)
            scores = squared_error(candidates, target, bound)
            k = int(np.argmin(scores))
            if result.offer(scores[k], (i, lo + k // OP_COUNT, k % OP_COUNT)):
                if global_min is not None:
                    publish_min(global_min, result.score)
    return result


def _commit(ctx: GrowthContext, result: SearchResult, name: str) -> float:
    if not result.found:
        logger.debug("%s: no candidate below %g", name, BIG)
        return BIG
    i, j, op = result.params
    node_id = ctx.graph.append(i, j, op)
    logger.debug("%s: min = %g, (%d) = (%d) %s (%d)",
                 name, result.score, node_id, i, OPERATIONS[op].name, j)
    return result.score


def _old_new_boundary(ctx: GrowthContext) -> int:
    return len(ctx.graph) - 3 * ctx.n_classes


# =============================================================================
# Serial operators
# =============================================================================

def exhaustive_full(ctx: GrowthContext) -> float:
    """Append the best op(i, j) over all pairs j < i."""
    vectors = ctx.vectors()
    n = len(ctx.graph)
    result = scan_pairs(vectors, ctx.target, range(1, n), vectorized=ctx.use_simd)
    return _commit(ctx, result, 'exhaustive_full')


def exhaustive_last(ctx: GrowthContext) -> float:
    """Append the best op(N - 1, j) over j < N - 1."""
    vectors = ctx.vectors()
    n = len(ctx.graph)
    result = scan_pairs(vectors, ctx.target, [n - 1], vectorized=ctx.use_simd)
    return _commit(ctx, result, 'exhaustive_last')


def combine_old_new(ctx: GrowthContext) -> float:
    """Append the best op(old, new) across the last 3 * classes neurons."""
    boundary = _old_new_boundary(ctx)
    if boundary <= 0:
        return exhaustive_full(ctx)
    vectors = ctx.vectors()
    n = len(ctx.graph)
    result = scan_pairs(vectors, ctx.target, range(boundary), boundary, n,
                        vectorized=ctx.use_simd)
    return _commit(ctx, result, 'combine_old_new')


# =============================================================================
# Parallel operators
# =============================================================================

def _exhaustive_worker(job: Dict[str, Any]) -> Dict[str, Any]:
    """
    Worker function for parallel exhaustive search.

    This is a module-level function to enable pickling for multiprocessing.
    """
    state = worker_state()
    result = scan_pairs(
        state['vectors'],
        state['target'],
        range(job['i_start'], job['i_stop']),
        job['j_start'],
        job['j_stop'],
        global_min=state['global_min'],
        vectorized=job['vectorized'],
    )
    return result.to_dict()


def exhaustive_jobs(mode: str, n_neurons: int, n_workers: int,
                    boundary: int = 0, vectorized: bool = True):
    """Partition an exhaustive search into worker jobs."""
    jobs = []
    if mode == 'full':
        for lo, hi in split_range(1, n_neurons, n_workers):
            jobs.append({'i_start': lo, 'i_stop': hi, 'j_start': 0, 'j_stop': None})
    elif mode == 'last':
        # A single row: split its second operand instead
        for lo, hi in split_range(0, n_neurons - 1, n_workers):
            jobs.append({'i_start': n_neurons - 1, 'i_stop': n_neurons,
                         'j_start': lo, 'j_stop': hi})
    elif mode == 'old_new':
        for lo, hi in split_range(0, boundary, n_workers):
            jobs.append({'i_start': lo, 'i_stop': hi,
                         'j_start': boundary, 'j_stop': n_neurons})
    else:
        raise ValueError(f"Unknown exhaustive mode: {mode}")
    for job in jobs:
        job['vectorized'] = vectorized
    return jobs


def _run_exhaustive_parallel(ctx: GrowthContext, mode: str, boundary: int = 0) -> SearchResult:
    vectors = ctx.vectors()
    jobs = exhaustive_jobs(mode, len(ctx.graph), ctx.n_workers, boundary, ctx.use_simd)
    return run_parallel(_exhaustive_worker, jobs, vectors, ctx.target, ctx.n_workers)


def exhaustive_full_parallel(ctx: GrowthContext) -> float:
    n = len(ctx.graph)
    budget = n * (n - 1) // 2 * OP_COUNT
    if not ctx.use_parallel(budget):
        return exhaustive_full(ctx)
    result = _run_exhaustive_parallel(ctx, 'full')
    return _commit(ctx, result, 'exhaustive_full_parallel')


def exhaustive_last_parallel(ctx: GrowthContext) -> float:
    budget = (len(ctx.graph) - 1) * OP_COUNT
    if not ctx.use_parallel(budget):
        return exhaustive_last(ctx)
    result = _run_exhaustive_parallel(ctx, 'last')
    return _commit(ctx, result, 'exhaustive_last_parallel')


def combine_old_new_parallel(ctx: GrowthContext) -> float:
    boundary = _old_new_boundary(ctx)
    if boundary <= 0:
        return exhaustive_full_parallel(ctx)
    budget = boundary * (len(ctx.graph) - boundary) * OP_COUNT
    if not ctx.use_parallel(budget):
        return combine_old_new(ctx)
    result = _run_exhaustive_parallel(ctx, 'old_new', boundary)
    return _commit(ctx, result, 'combine_old_new_parallel')
