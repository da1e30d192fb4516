"""
Training driver - grows the neuron graph class by class.

Classes are visited round-robin. A class whose error is still above the
tolerance gets one step: its target vector is rebuilt and the configured
growth operators run in order until one brings the error under the
tolerance. Training ends when the summed error drops below
classes * tolerance, or earlier on interrupt or when the graph is full.
"""

import time
from dataclasses import dataclass, field, asdict
from multiprocessing import cpu_count
from typing import Any, Callable, Dict, List, Optional

import numpy as np

from .interrupt import interrupt_requested
from .network import MAX_NEURONS, Network
from ..datasets.config import TrainingSetConfig
from ..datasets.words import WordDataset
from ..exceptions import CapacityExhaustedError, ConfigMismatchError
from ..growth import BIG, GrowthContext, resolve_sequence
from ..utils import get_logger

logger = get_logger(__name__)


@dataclass
class TrainingConfig:
    """Configuration for training."""
    tolerance: float = 0.01
    funcs: List[str] = field(default_factory=list)  # empty: triplet_parallel
    max_neurons: int = MAX_NEURONS
    capacity_margin: int = 10
    n_workers: Optional[int] = None  # None: all CPUs
    use_multiprocessing: bool = True
    use_simd: bool = True
    seed: Optional[int] = None
    min_parallel_budget: int = 2000
    min_worker_iterations: int = 1000
    min_pair_worker_iterations: int = 100
    max_iterations: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StepRecord:
    """One class step of the training loop."""
    iteration: int
    class_id: int
    error_before: float
    error_after: float
    neurons: int
    growth: List[str] = field(default_factory=list)

    @property
    def improved(self) -> bool:
        return self.error_after < self.error_before


@dataclass
class TrainingResult:
    """Outcome of Trainer.train()."""
    class_errors: List[float]
    iterations: int
    stop_reason: str  # converged, interrupted, capacity, max_iterations
    neurons_created: int
    elapsed_seconds: float
    history: List[StepRecord] = field(default_factory=list)

    @property
    def converged(self) -> bool:
        return self.stop_reason == 'converged'

    @property
    def interrupted(self) -> bool:
        return self.stop_reason == 'interrupted'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Trainer:
    """
    Round-robin trainer for a network.

    Classes that already have an output neuron count as trained (error 0);
    only pending classes are grown.

    Args:
        network: Network to grow
        dataset: Training images
        config: Training configuration
    """

    def __init__(
        self,
        network: Network,
        dataset: WordDataset,
        config: Optional[TrainingConfig] = None,
    ):
        self.network = network
        self.dataset = dataset
        self.config = config or TrainingConfig()

        if dataset.receptors != network.receptors:
            raise ConfigMismatchError(
                f"dataset has {dataset.receptors} receptors, network has {network.receptors}"
            )
        for class_id in sorted(set(dataset.class_ids.tolist())):
            network.ensure_class(class_id)

        graph = network.graph
        graph.max_neurons = max(self.config.max_neurons, len(graph))
        graph.set_images(dataset.encode())

        self.growth = resolve_sequence(self.config.funcs)
        self.rng = np.random.default_rng(self.config.seed)
        self.class_errors: List[float] = [
            0.0 if slot.trained else BIG for slot in network.classes
        ]
        self.context = GrowthContext(
            graph=graph,
            target=np.zeros(len(dataset), dtype=np.float32),
            n_classes=network.n_classes,
            rng=self.rng,
            n_workers=self.config.n_workers or cpu_count(),
            use_multiprocessing=self.config.use_multiprocessing,
            use_simd=self.config.use_simd,
            min_parallel_budget=self.config.min_parallel_budget,
            min_worker_iterations=self.config.min_worker_iterations,
            min_pair_worker_iterations=self.config.min_pair_worker_iterations,
        )

    def pending_indices(self) -> List[int]:
        tol = self.config.tolerance
        return [i for i, err in enumerate(self.class_errors) if err > tol]

    def _capacity_reached(self) -> bool:
        graph = self.network.graph
        return len(graph) >= graph.max_neurons - self.config.capacity_margin

    def _grow_class(self, index: int, iteration: int) -> StepRecord:
        slot = self.network.classes[index]
        graph = self.network.graph
        tol = self.config.tolerance
        self.context.target = self.dataset.targets(slot.id)

        record = StepRecord(iteration, slot.id, self.class_errors[index],
                            self.class_errors[index], len(graph))
        for growth in self.growth:
            if not graph.room_for(growth.appends):
                raise CapacityExhaustedError(graph.max_neurons)
            score = growth(self.context)
            record.growth.append(growth.name)
            if score < self.class_errors[index]:
                self.class_errors[index] = score
                slot.output_node = len(graph) - 1
            if self.class_errors[index] <= tol:
                break
        record.error_after = self.class_errors[index]
        record.neurons = len(graph)
        return record

    def train(
        self,
        callbacks: Optional[List[Callable]] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> TrainingResult:
        """
        Run the training loop.

        Args:
            callbacks: Called as callback(trainer, step_record) after each class step
            should_stop: Polled before every step (default: the interrupt flag)

        Returns:
            TrainingResult
        """
        should_stop = should_stop or interrupt_requested
        callbacks = callbacks or []
        classes = self.network.classes
        graph = self.network.graph
        tol = self.config.tolerance
        n_classes = len(classes)

        start_time = time.perf_counter()
        start_neurons = len(graph)
        history: List[StepRecord] = []
        iterations = 0

        pending = self.pending_indices()
        kept = n_classes - len(pending)
        if kept:
            logger.info("%d of %d classes already trained", kept, n_classes)
        logger.info("Training %d classes on %d images with %s",
                    len(pending), len(self.dataset),
                    ', '.join(g.name for g in self.growth))

        index = pending[0] if pending else 0
        stop_reason = 'converged'
        while pending:
            if should_stop():
                stop_reason = 'interrupted'
                break
            if self.config.max_iterations is not None and iterations >= self.config.max_iterations:
                stop_reason = 'max_iterations'
                break
            iterations += 1

            if self.class_errors[index] > tol:
                try:
                    record = self._grow_class(index, iterations)
                except CapacityExhaustedError as e:
                    logger.warning("Stopping: %s", e)
                    stop_reason = 'capacity'
                    break
                history.append(record)
                logger.info("class %d '%s': err %.6g (neurons %d)",
                            record.class_id, classes[index].name,
                            record.error_after, record.neurons)
                for callback in callbacks:
                    callback(self, record)

            index = (index + 1) % n_classes

            if self._capacity_reached():
                logger.warning("Stopping: %d neurons, limit %d", len(graph), graph.max_neurons)
                stop_reason = 'capacity'
                break
            if sum(self.class_errors) < n_classes * tol or not self.pending_indices():
                break

        if stop_reason != 'converged':
            self._release_unconverged()
        result = TrainingResult(
            class_errors=list(self.class_errors),
            iterations=iterations,
            stop_reason=stop_reason,
            neurons_created=len(graph) - start_neurons,
            elapsed_seconds=time.perf_counter() - start_time,
            history=history,
        )
        logger.info("Training stopped (%s) after %d iterations, %d neurons created",
                    stop_reason, iterations, result.neurons_created)
        return result

    def _release_unconverged(self) -> None:
        # Early stops only: a converged run keeps every output neuron
        tol = self.config.tolerance
        for slot, err in zip(self.network.classes, self.class_errors):
            if err > tol and slot.output_node is not None:
                logger.info("class %d '%s' not trained (err %.6g), left pending",
                            slot.id, slot.name, err)
                slot.output_node = None


def build_network(config: TrainingSetConfig, max_neurons: int = MAX_NEURONS) -> Network:
    """Fresh network with the classes of a training-set configuration."""
    return Network.create(config.receptors, config.class_names, max_neurons=max_neurons)


def prepare_retraining(network: Network, config: TrainingSetConfig) -> WordDataset:
    """
    Merge a configuration into a loaded network for further training.

    The class table is extended to cover the configuration and names fill
    empty slots. The returned dataset holds the configuration's images.

    Raises:
        ConfigMismatchError: If receptor counts differ
    """
    if config.receptors != network.receptors:
        raise ConfigMismatchError(
            f"config has {config.receptors} receptors, model has {network.receptors}"
        )
    for class_id, name in enumerate(config.class_names):
        network.ensure_class(class_id, name)
    for slot in network.classes:
        if slot.trained:
            logger.info("class %d '%s' kept (output neuron %d)",
                        slot.id, slot.name, slot.output_node)
        else:
            logger.info("class %d '%s' pending", slot.id, slot.name)
    return config.dataset()
