"""
Triplet growth operator - the default way a class grows.

Appends A, B and C = op(A, B). A starts as a random op(i, j). Every
iteration draws the operands of B and tries all (B.op, C.op) pairs; each
strict improvement is recorded and B becomes the new A, so later
iterations keep building on whatever just helped.

The chain is evaluated in batches over the flattened
(iteration, B.op, C.op) stream. After an improvement the batch is
discarded and evaluation resumes right after the adopted position with
the new A.
"""

from typing import Any, Callable, Dict, Tuple

import numpy as np

from ..core.operations import OP_COUNT, OPERATIONS, apply_rowwise
from .base import (
    BIG,
    GrowthContext,
    SearchResult,
    current_bound,
    first_improvement,
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

# Positions of the (iteration, B.op, C.op) stream scored per batch
TRIPLET_BATCH = 1024

OPS_PER_ITERATION = OP_COUNT * OP_COUNT


def triplet_budget(ctx: GrowthContext) -> int:
    return len(ctx.graph) * ctx.graph.receptors * 4


def search_triplet(
    vectors: np.ndarray,
    target: np.ndarray,
    a_params: Tuple[int, int, int],
    b_pairs: np.ndarray,
    global_min=None,
    vectorized: bool = True,
    batch: int = TRIPLET_BATCH,
) -> SearchResult:
    """
    Run the greedy triplet chain over pre-drawn B operands.

    Args:
        vectors: Warmed neuron vectors
        target: Target vector
        a_params: Initial A as (left, right, op)
        b_pairs: (iterations, 2) B operands in draw order
        global_min: Shared minimum for cross-worker pruning

    Returns:
        SearchResult with params (A.left, A.right, A.op, B.left, B.right, B.op, C.op)
    """
    result = SearchResult()
    a_left, a_right, a_op = (int(p) for p in a_params)
    a_vec = OPERATIONS[a_op].apply(vectors[a_left], vectors[a_right], vectorized=vectorized)

    total = len(b_pairs) * OPS_PER_ITERATION
    position = 0
    while position < total:
        stop = min(total, position + batch)
        flat = np.arange(position, stop)
        iteration = flat // OPS_PER_ITERATION
        b_op = (flat // OP_COUNT) % OP_COUNT
        c_op = flat % OP_COUNT
        b_left = b_pairs[iteration, 0]
        b_right = b_pairs[iteration, 1]

        b_vecs = apply_rowwise(b_op, vectors[b_left], vectors[b_right], vectorized)
        c_vecs = apply_rowwise(c_op, a_vec, b_vecs, vectorized)
        bound = current_bound(result.score, global_min)
        scores = squared_error(c_vecs, target, bound)
        k = first_improvement(scores, result.score)
        if k < 0:
            position = stop
            continue

        result.offer(scores[k], (
            a_left, a_right, a_op,
            b_left[k], b_right[k], b_op[k], c_op[k],
        ))
        if global_min is not None:
            publish_min(global_min, result.score)
        # B becomes the new A
        a_left, a_right, a_op = int(b_left[k]), int(b_right[k]), int(b_op[k])
        a_vec = b_vecs[k].copy()
        position += k + 1
    return result


def _commit_triplet(ctx: GrowthContext, result: SearchResult, name: str) -> float:
    if not result.found:
        logger.debug("%s: no improvement", name)
        return BIG
    a_left, a_right, a_op, b_left, b_right, b_op, c_op = result.params
    a_id = ctx.graph.append(a_left, a_right, a_op)
    b_id = ctx.graph.append(b_left, b_right, b_op)
    c_id = ctx.graph.append(a_id, b_id, c_op)
    logger.debug("%s: min = %g, (%d) = (%d) %s (%d)",
                 name, result.score, c_id, a_id, OPERATIONS[c_op].name, b_id)
    return result.score


def _draw_chain(draw: Callable[[int, int], np.ndarray], n: int, iterations: int):
    a_params = (int(draw(n, 1)[0]), int(draw(n, 1)[0]), int(draw(OP_COUNT, 1)[0]))
    b_pairs = draw(n, 2 * iterations).reshape(iterations, 2)
    return a_params, b_pairs


def triplet(ctx: GrowthContext) -> float:
    """Append the best A, B, C = op(A, B) found by the greedy chain."""
    n = len(ctx.graph)
    iterations = triplet_budget(ctx)
    a_params, b_pairs = _draw_chain(
        lambda high, size: ctx.rng.integers(0, high, size=size), n, iterations
    )
    result = search_triplet(ctx.vectors(), ctx.target, a_params, b_pairs,
                            vectorized=ctx.use_simd)
    return _commit_triplet(ctx, result, 'triplet')


def _triplet_worker(job: Dict[str, Any]) -> Dict[str, Any]:
    """
    Worker function for parallel triplet search.

    This is a module-level function to enable pickling for multiprocessing.
    """
    state = worker_state()
    lcg = LinearCongruentialGenerator(worker_seed(job['base_seed'], job['worker_id']))
    a_params, b_pairs = _draw_chain(lcg.integers, job['n_neurons'], job['iterations'])
    result = search_triplet(
        state['vectors'],
        state['target'],
        a_params,
        b_pairs,
        global_min=state['global_min'],
        vectorized=job['vectorized'],
    )
    return result.to_dict()


def triplet_parallel(ctx: GrowthContext) -> float:
    """Triplet search split across worker processes."""
    budget = triplet_budget(ctx)
    if not ctx.use_parallel(budget):
        return triplet(ctx)
    per_worker = iterations_per_worker(budget, ctx.n_workers, ctx.min_worker_iterations)
    base_seed = ctx.next_seed()
    jobs = [
        {
            'worker_id': w,
            'base_seed': base_seed,
            'iterations': per_worker,
            'n_neurons': len(ctx.graph),
            'vectorized': ctx.use_simd,
        }
        for w in range(ctx.n_workers)
    ]
    vectors = ctx.vectors()
    result = run_parallel(_triplet_worker, jobs, vectors, ctx.target, ctx.n_workers)
    return _commit_triplet(ctx, result, 'triplet_parallel')
