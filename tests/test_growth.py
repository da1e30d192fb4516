"""
Tests for the growth operators, their parallel forms and the registry.

Run with: python -m pytest tests/test_growth.py -v
"""

import logging
from multiprocessing import Value

import numpy as np
import pytest

from arithnet.growth import (
    BIG,
    DEFAULT_GROWTH,
    GROWTH_FUNCTIONS,
    GrowthContext,
    SearchResult,
    combine_old_new,
    combine_old_new_parallel,
    exhaustive_full,
    exhaustive_full_parallel,
    exhaustive_last,
    exhaustive_last_parallel,
    get_growth_function,
    list_growth_functions,
    random_from_inputs,
    random_pair_ext,
    random_pair_opt,
    random_pair_opt_parallel,
    random_single,
    resolve_sequence,
    squared_error,
    triplet,
    triplet_parallel,
)
from arithnet.growth.exhaustive import _exhaustive_worker, exhaustive_jobs, scan_pairs
from arithnet.growth.parallel import (
    iterations_per_worker,
    merge_results,
    publish_min,
    run_parallel,
    split_range,
)
from arithnet.growth.random_search import _random_pair_worker, pair_ranges
from arithnet.growth.rng import LinearCongruentialGenerator, worker_seed
from arithnet.growth.triplet import search_triplet
from conftest import clone_graph, run_inline


def make_context(graph, target, **kwargs):
    kwargs.setdefault('rng', np.random.default_rng(7))
    kwargs.setdefault('use_multiprocessing', False)
    return GrowthContext(graph=graph, target=target, **kwargs)


def parallel_context(graph, target, **kwargs):
    return make_context(graph, target, n_workers=3, use_multiprocessing=True,
                        min_parallel_budget=0, **kwargs)


@pytest.fixture
def with_node(two_image_graph):
    """two_image_graph plus neuron 15 = 0.25 - x0, i.e. [0.125, 0]."""
    two_image_graph.append(0, 2, 2)
    return two_image_graph


TARGET = np.array([1.0, 0.0], dtype=np.float32)


class TestScoring:
    """Tests for squared_error and SearchResult."""

    def test_squared_error(self):
        candidates = np.array([[1.0, 2.0], [0.0, 0.0]], dtype=np.float32)
        target = np.array([1.0, 0.0], dtype=np.float32)
        scores = squared_error(candidates, target)
        assert scores.dtype == np.float64
        np.testing.assert_array_equal(scores, [4.0, 1.0])

    def test_bound_prunes_rows(self):
        candidates = np.array([[3.0], [1.0], [2.0]], dtype=np.float32)
        scores = squared_error(candidates, np.zeros(1, dtype=np.float32), bound=4.0)
        np.testing.assert_array_equal(scores, [np.inf, 1.0, 4.0])

    def test_pruning_across_blocks(self):
        """A row is dropped as soon as its running sum passes the bound."""
        candidates = np.ones((2, 200), dtype=np.float32)
        candidates[1, :] = 0.0
        scores = squared_error(candidates, np.zeros(200, dtype=np.float32), bound=10.0)
        assert scores[0] == np.inf
        assert scores[1] == 0.0

    def test_nan_scores_are_inf(self):
        candidates = np.array([[np.nan, 0.0]], dtype=np.float32)
        assert squared_error(candidates, np.zeros(2, dtype=np.float32))[0] == np.inf

    def test_offer_is_strict(self):
        result = SearchResult()
        assert result.offer(2.0, (1, 2, 3))
        assert not result.offer(2.0, (4, 5, 6))
        assert result.params == (1, 2, 3)
        assert result.offer(1.0, (7, 8, 9))
        assert result.found

    def test_round_trip_dict(self):
        result = SearchResult(0.5, (1, 2), True)
        assert SearchResult.from_dict(result.to_dict()) == result


class TestExhaustive:
    """Tests for exhaustive growth on a two-image graph."""

    def test_full(self, with_node):
        ctx = make_context(with_node, TARGET)
        assert exhaustive_full(ctx) == 0.0
        assert with_node.links(16) == (15, 7, 3)

    def test_last(self, with_node):
        ctx = make_context(with_node, TARGET)
        assert exhaustive_last(ctx) == 0.0
        assert with_node.links(16) == (15, 7, 3)

    def test_combine_old_new(self, with_node):
        ctx = make_context(with_node, TARGET, n_classes=1)
        assert combine_old_new(ctx) == 0.0
        assert with_node.links(16) == (7, 15, 3)

    def test_combine_falls_back_to_full(self, with_node):
        ctx = make_context(with_node, TARGET, n_classes=10)
        assert combine_old_new(ctx) == 0.0
        assert with_node.links(16) == (15, 7, 3)

    def test_nothing_found(self, two_image_graph):
        ctx = make_context(two_image_graph, np.array([np.nan, np.nan]))
        assert exhaustive_full(ctx) == BIG
        assert len(two_image_graph) == 15

    def test_score_matches_appended_node(self, random_graph, random_target):
        ctx = make_context(random_graph, random_target)
        score = exhaustive_full(ctx)
        assert score == pytest.approx(ctx.score_node(len(random_graph) - 1))

    def test_scalar_kernels_agree(self, random_graph, random_target):
        other = clone_graph(random_graph)
        fast = exhaustive_full(make_context(random_graph, random_target))
        slow = exhaustive_full(make_context(other, random_target, use_simd=False))
        assert fast == slow
        assert random_graph.links(50) == other.links(50)


class TestRandomOperators:
    """Tests for the random growth operators."""

    def test_random_single(self, with_node):
        ctx = make_context(with_node, TARGET)
        score = random_single(ctx)
        assert len(with_node) == 17
        assert score == ctx.score_node(16)

    def test_random_from_inputs(self, random_graph, random_target):
        ctx = make_context(random_graph, random_target)
        for _ in range(20):
            random_from_inputs(ctx)
            i, j, _ = random_graph.links(len(random_graph) - 1)
            assert i < random_graph.inputs
            assert j < random_graph.receptors

    def test_pair_ranges(self, random_graph, random_target):
        ctx = make_context(random_graph, random_target)
        ranges, budget = pair_ranges(ctx, extended=False)
        assert ranges == ((40, 50), (0, 40), (0, random_graph.inputs))
        assert budget == random_graph.inputs * 50 * 10
        ranges, budget = pair_ranges(ctx, extended=True)
        assert ranges == ((0, 50), (0, 50), (0, 50))
        assert budget == 6 * 50 * 50

    @pytest.mark.parametrize('operator', [random_pair_opt, random_pair_ext])
    def test_pair_appends_two(self, random_graph, random_target, operator):
        ctx = make_context(random_graph, random_target)
        score = operator(ctx)
        assert len(random_graph) == 52
        a_id = 50
        assert random_graph.links(51)[0] == a_id
        assert score == pytest.approx(ctx.score_node(51))

    def test_pair_reproducible(self, random_graph, random_target):
        other = clone_graph(random_graph)
        first = random_pair_opt(make_context(random_graph, random_target))
        second = random_pair_opt(make_context(other, random_target))
        assert first == second
        assert random_graph.links(51) == other.links(51)


class TestTriplet:
    """Tests for the greedy triplet chain."""

    def test_appends_chain(self, with_node):
        ctx = make_context(with_node, TARGET)
        score = triplet(ctx)
        assert score < BIG
        assert len(with_node) == 19
        assert with_node.links(18)[:2] == (16, 17)
        assert score == pytest.approx(ctx.score_node(18))

    def test_nothing_found(self, two_image_graph):
        ctx = make_context(two_image_graph, np.array([np.nan, np.nan]))
        assert triplet(ctx) == BIG
        assert len(two_image_graph) == 15

    def test_chain_advances(self, random_graph, random_target):
        """Every recorded improvement lowers the score."""
        vectors = random_graph.vector_matrix()
        rng = np.random.default_rng(3)
        pairs = rng.integers(0, 50, size=(200, 2))
        full = search_triplet(vectors, random_target, (1, 2, 0), pairs)
        short = search_triplet(vectors, random_target, (1, 2, 0), pairs[:20])
        assert full.found and short.found
        assert full.score <= short.score

    def test_batch_size_does_not_matter(self, random_graph, random_target):
        vectors = random_graph.vector_matrix()
        pairs = np.random.default_rng(11).integers(0, 50, size=(300, 2))
        big = search_triplet(vectors, random_target, (3, 4, 1), pairs, batch=4096)
        small = search_triplet(vectors, random_target, (3, 4, 1), pairs, batch=7)
        assert big == small

    def test_pruned_by_global_min(self, random_graph, random_target):
        vectors = random_graph.vector_matrix()
        pairs = np.random.default_rng(2).integers(0, 50, size=(100, 2))
        result = search_triplet(vectors, random_target, (1, 2, 0), pairs,
                                global_min=Value('d', 0.0))
        assert not result.found


class TestWorkerRandom:
    """Tests for the per-worker LCG."""

    def test_known_sequence(self):
        lcg = LinearCongruentialGenerator(1)
        assert [lcg.next_raw() for _ in range(5)] == [16838, 5758, 10113, 17515, 31051]

    def test_bulk_matches_stream(self):
        one = LinearCongruentialGenerator(12345)
        bulk = LinearCongruentialGenerator(12345)
        expected = [one.next_raw() for _ in range(1000)]
        assert bulk.raw(600).tolist() + bulk.raw(400).tolist() == expected
        assert one.state == bulk.state

    def test_integers_in_range(self):
        lcg = LinearCongruentialGenerator(9)
        small = lcg.integers(7, 500)
        large = lcg.integers(100000, 500)
        assert small.min() >= 0 and small.max() < 7
        assert large.min() >= 0 and large.max() < 100000
        assert large.max() > 32768

    def test_worker_seeds_differ(self):
        seeds = {worker_seed(42, w) for w in range(16)}
        assert len(seeds) == 16
        assert worker_seed(42, 0) == 42


class TestParallelHelpers:
    """Tests for job partitioning and result merging."""

    def test_split_range(self):
        assert split_range(1, 11, 3) == [(1, 5), (5, 9), (9, 11)]
        assert split_range(0, 2, 5) == [(0, 1), (1, 2)]
        assert split_range(3, 3, 4) == []

    def test_iterations_per_worker(self):
        assert iterations_per_worker(10000, 4, 1000) == 2500
        assert iterations_per_worker(100, 4, 1000) == 1000

    def test_merge_prefers_lowest_worker_on_ties(self):
        merged = merge_results([
            SearchResult(2.0, (0,), True).to_dict(),
            SearchResult(1.0, (1,), True).to_dict(),
            SearchResult(1.0, (2,), True).to_dict(),
            SearchResult().to_dict(),
        ])
        assert merged.params == (1,)

    def test_publish_min(self):
        shared = Value('d', 5.0)
        publish_min(shared, 7.0)
        assert shared.value == 5.0
        publish_min(shared, 2.0)
        assert shared.value == 2.0

    def test_context_budget_gate(self, random_graph, random_target):
        ctx = make_context(random_graph, random_target, n_workers=4,
                           use_multiprocessing=True)
        assert not ctx.use_parallel(1999)
        assert ctx.use_parallel(2000)
        ctx.n_workers = 1
        assert not ctx.use_parallel(10 ** 9)

    @pytest.mark.parametrize('mode', ['full', 'last', 'old_new'])
    def test_partition_matches_serial(self, random_graph, random_target, mode):
        vectors = random_graph.vector_matrix()
        n = len(random_graph)
        if mode == 'full':
            serial = scan_pairs(vectors, random_target, range(1, n))
        elif mode == 'last':
            serial = scan_pairs(vectors, random_target, [n - 1])
        else:
            serial = scan_pairs(vectors, random_target, range(35), 35, n)
        jobs = exhaustive_jobs(mode, n, 4, boundary=35)
        merged = run_inline(_exhaustive_worker, jobs, vectors, random_target)
        assert merged == serial


class TestParallelOperators:
    """Tests that run real worker pools."""

    @pytest.mark.parametrize('serial_fn, parallel_fn, n_classes', [
        (exhaustive_full, exhaustive_full_parallel, 1),
        (exhaustive_last, exhaustive_last_parallel, 1),
        (combine_old_new, combine_old_new_parallel, 5),
    ])
    def test_exhaustive_matches_serial(self, random_graph, random_target,
                                       serial_fn, parallel_fn, n_classes):
        other = clone_graph(random_graph)
        serial = serial_fn(make_context(other, random_target, n_classes=n_classes))
        parallel = parallel_fn(parallel_context(random_graph, random_target,
                                                n_classes=n_classes))
        assert parallel == serial
        assert random_graph.links(50) == other.links(50)

    def test_small_budget_runs_serially(self, random_graph, random_target):
        other = clone_graph(random_graph)
        ctx = make_context(random_graph, random_target, n_workers=3,
                           use_multiprocessing=True, min_parallel_budget=10 ** 9)
        assert exhaustive_full_parallel(ctx) == exhaustive_full(make_context(other, random_target))

    def test_random_pair_pool_matches_inline(self, random_graph, random_target):
        ctx = parallel_context(random_graph, random_target)
        ranges, _ = pair_ranges(ctx, extended=False)
        vectors = random_graph.vector_matrix()
        jobs = [
            {'worker_id': w, 'base_seed': 1234, 'iterations': 500,
             'ranges': ranges, 'vectorized': True}
            for w in range(3)
        ]
        pooled = run_parallel(_random_pair_worker, jobs, vectors, random_target, 3)
        inline = run_inline(_random_pair_worker, jobs, vectors, random_target)
        assert pooled == inline

    def test_random_pair_parallel_appends(self, random_graph, random_target):
        ctx = parallel_context(random_graph, random_target)
        score = random_pair_opt_parallel(ctx)
        assert len(random_graph) == 52
        assert score == pytest.approx(ctx.score_node(51))

    def test_triplet_parallel_appends(self, random_graph, random_target):
        ctx = parallel_context(random_graph, random_target)
        score = triplet_parallel(ctx)
        assert score < BIG
        assert len(random_graph) == 53
        assert random_graph.links(52)[:2] == (50, 51)
        assert score == pytest.approx(ctx.score_node(52))


class TestRegistry:
    """Tests for growth function lookup."""

    def test_names(self):
        names = list_growth_functions()
        assert DEFAULT_GROWTH == 'triplet_parallel'
        assert len(names) == 14
        assert 'random_single' in names and 'random_single_parallel' not in names

    def test_legacy_names(self):
        assert get_growth_function('rod').name == 'exhaustive_full'
        assert get_growth_function('rod3_parallel').name == 'combine_old_new_parallel'
        assert get_growth_function('rndrod4').func is triplet

    def test_appends(self):
        assert GROWTH_FUNCTIONS['triplet'].appends == 3
        assert GROWTH_FUNCTIONS['random_pair_ext_parallel'].appends == 2
        assert GROWTH_FUNCTIONS['combine_old_new'].appends == 1

    def test_unknown(self):
        with pytest.raises(ValueError, match="Unknown growth function"):
            get_growth_function('grow_faster')

    def test_resolve_sequence(self, caplog):
        with caplog.at_level(logging.WARNING):
            sequence = resolve_sequence(['rod', 'nope', 'triplet'])
        assert [g.name for g in sequence] == ['exhaustive_full', 'triplet']
        assert 'nope' in caplog.text

    def test_resolve_falls_back_to_default(self):
        assert [g.name for g in resolve_sequence([])] == [DEFAULT_GROWTH]
        assert [g.name for g in resolve_sequence(['nope'])] == [DEFAULT_GROWTH]

    def test_call(self, with_node):
        ctx = make_context(with_node, TARGET)
        assert get_growth_function('rod')(ctx) == 0.0
