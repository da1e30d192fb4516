"""Shared fixtures for the arithnet test suite."""

import logging
import sys
from multiprocessing import Value
from pathlib import Path

import numpy as np
import pytest

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from arithnet.core.interrupt import clear_interrupt
from arithnet.core.network import NeuronGraph
from arithnet.growth.base import BIG
from arithnet.growth.parallel import merge_results, worker_state
from arithnet.datasets.config import TrainingSetConfig


def pytest_addoption(parser):
    parser.addoption(
        '--runslow', action='store_true', default=False,
        help='Run long training regressions'
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption('--runslow'):
        return
    skip_slow = pytest.mark.skip(reason='needs --runslow')
    for item in items:
        if 'slow' in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def reset_process_state():
    """Clear the interrupt flag and CLI log handlers around every test."""
    clear_interrupt()
    yield
    clear_interrupt()
    logger = logging.getLogger('arithnet')
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def two_image_graph():
    """
    One receptor, two images: ' ' (0.125) and '@' (0.25).

    Ids: 0 receptor, 1..7 basis 0.125 .. 8, 8..14 basis -0.125 .. -8.
    """
    graph = NeuronGraph(receptors=1)
    graph.set_images(np.array([[0.125], [0.25]], dtype=np.float32))
    return graph


@pytest.fixture
def random_graph():
    """Three receptors, twelve random images, grown to 50 neurons."""
    rng = np.random.default_rng(1234)
    graph = NeuronGraph(receptors=3)
    graph.set_images(rng.uniform(0.1, 0.5, size=(12, 3)).astype(np.float32))
    while len(graph) < 50:
        n = len(graph)
        graph.append(int(rng.integers(0, n)), int(rng.integers(0, n)), int(rng.integers(0, 4)))
    return graph


@pytest.fixture
def random_target():
    rng = np.random.default_rng(99)
    return rng.uniform(0.0, 1.0, size=12).astype(np.float32)


@pytest.fixture
def tiny_config():
    """Receptor width 1: class 0 is ' ', class 1 is '@'."""
    return TrainingSetConfig.from_dict({
        'receptors': 1,
        'classes': [{'id': 0, 'word': ''}, {'id': 1, 'word': '@'}],
        'funcs': ['exhaustive_full'],
    })


def clone_graph(graph: NeuronGraph) -> NeuronGraph:
    """Fresh graph with the same neurons and images, caches empty."""
    copy = NeuronGraph(graph.receptors, basis=graph.basis, max_neurons=graph.max_neurons)
    for node_id in range(graph.inputs, len(graph)):
        copy.append(*graph.links(node_id))
    if graph.images is not None:
        copy.set_images(graph.images)
    return copy


def run_inline(worker_fn, jobs, vectors, target, initial_min=BIG):
    """Run pool worker jobs in this process, one after another, and merge them."""
    state = worker_state()
    saved = dict(state)
    state.update(vectors=vectors, target=target, global_min=Value('d', initial_min))
    try:
        results = [worker_fn(job) for job in jobs]
    finally:
        state.clear()
        state.update(saved)
    return merge_results(results)
