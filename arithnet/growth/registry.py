"""
Registry of growth operators, keyed by stable name.

Older configuration files use the short legacy names (rod, rndrod4, ...);
both spellings resolve to the same entry.
"""

from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .base import GrowthContext
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
from ..utils import get_logger

logger = get_logger(__name__)

DEFAULT_GROWTH = 'triplet_parallel'


@dataclass(frozen=True)
class GrowthFunction:
    """A named growth operator."""
    name: str
    func: Callable[[GrowthContext], float]
    legacy_name: str
    family: str
    appends: int
    description: str
    parallel: bool = False

    def __call__(self, ctx: GrowthContext) -> float:
        return self.func(ctx)


def _serial_and_parallel(name, serial, parallel, legacy, family, appends, description):
    return [
        GrowthFunction(name, serial, legacy, family, appends, description),
        GrowthFunction(f"{name}_parallel", parallel, f"{legacy}_parallel", family,
                       appends, f"{description} (parallel)", parallel=True),
    ]


_ENTRIES: List[GrowthFunction] = [
    *_serial_and_parallel(
        'exhaustive_full', exhaustive_full, exhaustive_full_parallel, 'rod',
        'exhaustive', 1, 'Best op(i, j) over every pair of neurons'),
    *_serial_and_parallel(
        'exhaustive_last', exhaustive_last, exhaustive_last_parallel, 'rod2',
        'exhaustive', 1, 'Best op(last, j) over every earlier neuron'),
    *_serial_and_parallel(
        'combine_old_new', combine_old_new, combine_old_new_parallel, 'rod3',
        'exhaustive', 1, 'Best op(old, new) across the newest 3 * classes neurons'),
    GrowthFunction('random_single', random_single, 'rndrod0', 'random', 1,
                   'One random op(i, j), no search'),
    GrowthFunction('random_from_inputs', random_from_inputs, 'rndrod', 'random', 1,
                   'One random op(input, receptor), no search'),
    *_serial_and_parallel(
        'random_pair_opt', random_pair_opt, random_pair_opt_parallel, 'rndrod2',
        'random', 2, 'Best random pair built on the newest neurons'),
    *_serial_and_parallel(
        'random_pair_ext', random_pair_ext, random_pair_ext_parallel, 'rndrod3',
        'random', 2, 'Best random pair over the whole graph'),
    *_serial_and_parallel(
        'triplet', triplet, triplet_parallel, 'rndrod4',
        'triplet', 3, 'Greedy chain of random triplets A, B, C = op(A, B)'),
]

GROWTH_FUNCTIONS: Dict[str, GrowthFunction] = {g.name: g for g in _ENTRIES}
LEGACY_NAMES: Dict[str, str] = {g.legacy_name: g.name for g in _ENTRIES}


def get_growth_function(name: str) -> GrowthFunction:
    """Get a growth operator by stable or legacy name."""
    key = LEGACY_NAMES.get(name, name)
    if key not in GROWTH_FUNCTIONS:
        available = ', '.join(GROWTH_FUNCTIONS.keys())
        raise ValueError(f"Unknown growth function: {name}. Available: {available}")
    return GROWTH_FUNCTIONS[key]


def list_growth_functions() -> List[str]:
    """List all stable growth operator names."""
    return list(GROWTH_FUNCTIONS.keys())


def resolve_sequence(names: Optional[Sequence[str]]) -> List[GrowthFunction]:
    """
    Resolve a configured sequence, skipping unknown names.

    An empty result falls back to the default operator.
    """
    sequence = []
    for name in names or []:
        try:
            sequence.append(get_growth_function(name))
        except ValueError:
            logger.warning("Unknown growth function '%s', skipping", name)
    if not sequence:
        sequence.append(GROWTH_FUNCTIONS[DEFAULT_GROWTH])
    return sequence
