"""
Neuron graph - an append-only DAG of two-input arithmetic neurons.

Node ids are positions in a single list:

- 0 .. receptors: receptor neurons, fed by one character of the input
- receptors .. inputs: basis neurons, fixed constants
- inputs .. len(graph): computed neurons, op(left, right) with both
  links pointing at lower ids

Each neuron memoizes two values: its vector over the current training
images and its scalar for the current single input. Evaluation walks an
explicit stack, so chains of any depth are fine.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from .operations import OPERATIONS, OP_COUNT
from ..exceptions import CapacityExhaustedError


BASIS: List[float] = [
    0.125, 0.25, 0.5, 1.0, 2.0, 4.0, 8.0,
    -0.125, -0.25, -0.5, -1.0, -2.0, -4.0, -8.0,
]
BASIS_LEN = len(BASIS)
MAX_NEURONS = 64000


class Neuron:
    """A node record: links, operation and the two caches."""

    __slots__ = ('left', 'right', 'op', 'vector', 'value')

    def __init__(self, left: int = 0, right: int = 0, op: int = 0):
        self.left = left
        self.right = right
        self.op = op
        self.vector: Optional[np.ndarray] = None
        self.value: Optional[np.float32] = None

    def __repr__(self) -> str:
        return f"Neuron(left={self.left}, right={self.right}, op={self.op})"


class NeuronGraph:
    """
    Append-only neuron DAG with memoized vector and scalar evaluation.

    Args:
        receptors: Number of receptor neurons (input width)
        basis: Constant values of the basis neurons
        max_neurons: Hard limit on the total number of neurons
    """

    def __init__(
        self,
        receptors: int,
        basis: Optional[Sequence[float]] = None,
        max_neurons: int = MAX_NEURONS,
    ):
        if receptors < 1:
            raise ValueError(f"receptors must be positive, got {receptors}")
        self.receptors = receptors
        self.basis = np.asarray(BASIS if basis is None else basis, dtype=np.float32)
        self.inputs = receptors + len(self.basis)
        if max_neurons < self.inputs:
            raise ValueError(f"max_neurons {max_neurons} is below the input count {self.inputs}")
        self.max_neurons = max_neurons

        self.neurons: List[Neuron] = [Neuron() for _ in range(self.inputs)]

        self._images: Optional[np.ndarray] = None
        self.net_input = np.zeros(self.inputs, dtype=np.float32)
        self.net_input[receptors:] = self.basis

    def __len__(self) -> int:
        return len(self.neurons)

    @property
    def n_computed(self) -> int:
        return len(self.neurons) - self.inputs

    @property
    def n_images(self) -> int:
        return 0 if self._images is None else self._images.shape[0]

    @property
    def images(self) -> Optional[np.ndarray]:
        return self._images

    def is_receptor(self, node_id: int) -> bool:
        return 0 <= node_id < self.receptors

    def is_basis(self, node_id: int) -> bool:
        return self.receptors <= node_id < self.inputs

    def is_computed(self, node_id: int) -> bool:
        return self.inputs <= node_id < len(self.neurons)

    # =========================================================================
    # Structure
    # =========================================================================

    def append(self, left: int, right: int, op: int) -> int:
        """
        Append a computed neuron.

        Returns:
            The new neuron id

        Raises:
            CapacityExhaustedError: If the graph is full
            ValueError: If a link does not point at an existing neuron
        """
        node_id = len(self.neurons)
        if node_id >= self.max_neurons:
            raise CapacityExhaustedError(self.max_neurons)
        if not (0 <= left < node_id and 0 <= right < node_id):
            raise ValueError(f"neuron {node_id} cannot link to ({left}, {right})")
        if not 0 <= op < OP_COUNT:
            raise ValueError(f"operation index {op} outside [0, {OP_COUNT})")
        self.neurons.append(Neuron(int(left), int(right), int(op)))
        return node_id

    def room_for(self, count: int) -> bool:
        """Whether `count` more neurons fit under max_neurons."""
        return len(self.neurons) + count <= self.max_neurons

    def links(self, node_id: int) -> tuple:
        node = self.neurons[node_id]
        return node.left, node.right, node.op

    def computed_records(self) -> List[Dict[str, int]]:
        """Computed neurons in append order as {i, j, op} records."""
        return [
            {'i': n.left, 'j': n.right, 'op': n.op}
            for n in self.neurons[self.inputs:]
        ]

    def describe(self, node_id: int, max_depth: int = 4) -> str:
        """Human-readable formula of a neuron, elided below max_depth."""
        if node_id < self.receptors:
            return f"x{node_id}"
        if node_id < self.inputs:
            return f"{float(self.basis[node_id - self.receptors]):g}"
        if max_depth <= 0:
            return f"n{node_id}"
        node = self.neurons[node_id]
        return OPERATIONS[node.op].describe(
            self.describe(node.left, max_depth - 1),
            self.describe(node.right, max_depth - 1),
        )

    # =========================================================================
    # Vector evaluation (training images)
    # =========================================================================

    def set_images(self, images: np.ndarray) -> None:
        """
        Install the encoded training images and drop every vector cache.

        Args:
            images: (n_images, receptors) float32 matrix
        """
        images = np.ascontiguousarray(images, dtype=np.float32)
        if images.ndim != 2 or images.shape[1] != self.receptors:
            raise ValueError(
                f"images must have shape (n, {self.receptors}), got {images.shape}"
            )
        self._images = images
        self.invalidate_vectors()

    def invalidate_vectors(self) -> None:
        for node in self.neurons:
            node.vector = None

    def vector(self, node_id: int, vectorized: bool = True) -> np.ndarray:
        """Memoized value of a neuron over all training images (read-only)."""
        node = self.neurons[node_id]
        if node.vector is not None:
            return node.vector
        if self._images is None:
            raise RuntimeError("no training images installed")

        stack = [node_id]
        while stack:
            current = stack[-1]
            n = self.neurons[current]
            if n.vector is not None:
                stack.pop()
                continue
            if current < self.receptors:
                vec = self._images[:, current].copy()
            elif current < self.inputs:
                vec = np.full(self.n_images, self.basis[current - self.receptors], dtype=np.float32)
            else:
                left = self.neurons[n.left].vector
                right = self.neurons[n.right].vector
                if left is None or right is None:
                    if left is None:
                        stack.append(n.left)
                    if right is None:
                        stack.append(n.right)
                    continue
                vec = OPERATIONS[n.op].apply(left, right, vectorized=vectorized)
            vec.flags.writeable = False
            n.vector = vec
            stack.pop()
        return node.vector

    def vector_matrix(self, vectorized: bool = True) -> np.ndarray:
        """Warm every vector cache and stack them into (len(graph), n_images)."""
        matrix = np.empty((len(self.neurons), self.n_images), dtype=np.float32)
        for node_id in range(len(self.neurons)):
            matrix[node_id] = self.vector(node_id, vectorized=vectorized)
        return matrix

    # =========================================================================
    # Scalar evaluation (single input)
    # =========================================================================

    def set_input(self, values: np.ndarray) -> None:
        """Set the receptor values for the next classification."""
        values = np.asarray(values, dtype=np.float32)
        if values.shape != (self.receptors,):
            raise ValueError(f"input must have {self.receptors} values, got {values.shape}")
        self.net_input[:self.receptors] = values
        self.clear_scalar_caches()

    def clear_scalar_caches(self) -> None:
        for node in self.neurons:
            node.value = None

    def scalar(self, node_id: int) -> np.float32:
        """Memoized value of a neuron for the current input."""
        if node_id < self.inputs:
            return self.net_input[node_id]
        node = self.neurons[node_id]
        if node.value is not None:
            return node.value

        stack = [node_id]
        while stack:
            current = stack[-1]
            n = self.neurons[current]
            if n.value is not None:
                stack.pop()
                continue
            pending = [
                link for link in (n.left, n.right)
                if link >= self.inputs and self.neurons[link].value is None
            ]
            if pending:
                stack.extend(pending)
                continue
            left = self.net_input[n.left] if n.left < self.inputs else self.neurons[n.left].value
            right = self.net_input[n.right] if n.right < self.inputs else self.neurons[n.right].value
            n.value = OPERATIONS[n.op].scalar(left, right)
            stack.pop()
        return node.value


@dataclass
class ClassSlot:
    """A class of the classifier and the neuron that scores it."""
    id: int
    name: str = ''
    output_node: Optional[int] = None

    @property
    def trained(self) -> bool:
        return self.output_node is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'output_neuron': -1 if self.output_node is None else self.output_node,
        }


@dataclass
class Network:
    """A neuron graph plus the class table that reads from it."""
    graph: NeuronGraph
    classes: List[ClassSlot] = field(default_factory=list)
    description: str = 'Trained neural network model'

    @classmethod
    def create(
        cls,
        receptors: int,
        class_names: Sequence[str] = (),
        basis: Optional[Sequence[float]] = None,
        max_neurons: int = MAX_NEURONS,
    ) -> 'Network':
        graph = NeuronGraph(receptors, basis=basis, max_neurons=max_neurons)
        classes = [ClassSlot(i, name) for i, name in enumerate(class_names)]
        return cls(graph=graph, classes=classes)

    @property
    def receptors(self) -> int:
        return self.graph.receptors

    @property
    def n_classes(self) -> int:
        return len(self.classes)

    @property
    def class_names(self) -> List[str]:
        return [c.name for c in self.classes]

    def ensure_class(self, class_id: int, name: str = '') -> ClassSlot:
        """Grow the class table to cover class_id; fill an empty name."""
        while len(self.classes) <= class_id:
            self.classes.append(ClassSlot(len(self.classes)))
        slot = self.classes[class_id]
        if not slot.name and name:
            slot.name = name
        return slot

    def trained_classes(self) -> List[ClassSlot]:
        return [c for c in self.classes if c.trained]

    def pending_classes(self) -> List[ClassSlot]:
        return [c for c in self.classes if not c.trained]
