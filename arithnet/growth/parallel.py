"""
Parallel dispatch for growth searches.

A growth call warms the vector caches, then runs its jobs on a process
pool created for that call only. Workers receive the stacked neuron
vectors, the target and a shared global minimum once, through the pool
initializer, and read them from module state. They return plain dicts;
the caller merges them and appends to the graph.
"""

import math
import signal
from multiprocessing import Pool, Value
from typing import Any, Callable, Dict, List

import numpy as np

from .base import BIG, SearchResult


# Per-process state installed by _init_worker
_WORKER_STATE: Dict[str, Any] = {}


def _init_worker(vectors: np.ndarray, target: np.ndarray, global_min) -> None:
    # Ctrl+C belongs to the parent
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    _WORKER_STATE['vectors'] = vectors
    _WORKER_STATE['target'] = target
    _WORKER_STATE['global_min'] = global_min


def worker_state() -> Dict[str, Any]:
    """Vectors, target and shared minimum of the current worker process."""
    return _WORKER_STATE


def publish_min(global_min, score: float) -> None:
    """Lower the shared minimum to score if it is smaller."""
    with global_min.get_lock():
        if score < global_min.value:
            global_min.value = score


def split_range(start: int, stop: int, n_parts: int) -> List[tuple]:
    """Split [start, stop) into at most n_parts contiguous non-empty ranges."""
    total = stop - start
    if total <= 0:
        return []
    chunk = math.ceil(total / max(1, n_parts))
    return [
        (lo, min(stop, lo + chunk))
        for lo in range(start, stop, chunk)
    ]


def iterations_per_worker(budget: int, n_workers: int, minimum: int) -> int:
    """ceil(budget / n_workers), floored at the per-worker quota."""
    return max(minimum, math.ceil(budget / max(1, n_workers)))


def merge_results(results: List[Dict[str, Any]]) -> SearchResult:
    """Smallest score wins; ties go to the lowest worker index."""
    best = SearchResult()
    for data in results:
        result = SearchResult.from_dict(data)
        if result.found:
            best.offer(result.score, result.params)
    return best


def run_parallel(
    worker_fn: Callable[[Dict[str, Any]], Dict[str, Any]],
    jobs: List[Dict[str, Any]],
    vectors: np.ndarray,
    target: np.ndarray,
    n_workers: int,
    initial_min: float = BIG,
) -> SearchResult:
    """
    Run jobs on a fresh process pool and merge their results.

    Args:
        worker_fn: Module-level function taking one job dict
        jobs: Job descriptors, in worker-id order
        vectors: Warmed neuron vectors, (n_neurons, n_images)
        target: Target vector
        n_workers: Pool size
        initial_min: Starting value of the shared minimum

    Returns:
        Merged SearchResult
    """
    if not jobs:
        return SearchResult()
    global_min = Value('d', initial_min)
    processes = max(1, min(n_workers, len(jobs)))
    with Pool(
        processes=processes,
        initializer=_init_worker,
        initargs=(vectors, target, global_min),
    ) as pool:
        results = pool.map(worker_fn, jobs)
    return merge_results(results)

