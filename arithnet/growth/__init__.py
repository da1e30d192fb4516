"""Growth operators: how the neuron graph gains neurons."""

from .base import BIG, GrowthContext, SearchResult, squared_error
from .exhaustive import (
    exhaustive_full,
    exhaustive_last,
    combine_old_new,
    exhaustive_full_parallel,
    exhaustive_last_parallel,
    combine_old_new_parallel,
)
from .random_search import (
    random_single,
    random_from_inputs,
    random_pair_opt,
    random_pair_ext,
    random_pair_opt_parallel,
    random_pair_ext_parallel,
)
from .triplet import triplet, triplet_parallel
from .registry import (
    DEFAULT_GROWTH,
    GROWTH_FUNCTIONS,
    LEGACY_NAMES,
    GrowthFunction,
    get_growth_function,
    list_growth_functions,
    resolve_sequence,
)

__all__ = [
    'BIG',
    'GrowthContext',
    'SearchResult',
    'squared_error',
    'exhaustive_full',
    'exhaustive_last',
    'combine_old_new',
    'exhaustive_full_parallel',
    'exhaustive_last_parallel',
    'combine_old_new_parallel',
    'random_single',
    'random_from_inputs',
    'random_pair_opt',
    'random_pair_ext',
    'random_pair_opt_parallel',
    'random_pair_ext_parallel',
    'triplet',
    'triplet_parallel',
    'DEFAULT_GROWTH',
    'GROWTH_FUNCTIONS',
    'LEGACY_NAMES',
    'GrowthFunction',
    'get_growth_function',
    'list_growth_functions',
    'resolve_sequence',
]
