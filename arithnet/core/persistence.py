"""
Model files - JSON snapshots of a network.

    {
      "version": "1.0",
      "receptors": 20, "base_size": 14, "inputs": 34, "neurons_count": 40,
      "basis": [...],
      "classes": [{"id": 0, "name": "", "output_neuron": 39}, ...],
      "neurons": [{"i": 3, "j": 21, "op": 3}, ...],
      "description": "Trained neural network model"
    }

Neurons are listed in append order starting at id `inputs`; output
neurons are absolute ids, -1 for pending classes.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict

from filelock import FileLock

from .network import BASIS_LEN, MAX_NEURONS, ClassSlot, Network, NeuronGraph
from .operations import OP_COUNT
from ..exceptions import ModelFormatError
from ..utils import get_logger

logger = get_logger(__name__)

MODEL_VERSION = '1.0'


def network_to_dict(network: Network) -> Dict[str, Any]:
    """Convert a network to its JSON-serializable form."""
    graph = network.graph
    return {
        'version': MODEL_VERSION,
        'receptors': graph.receptors,
        'base_size': len(graph.basis),
        'inputs': graph.inputs,
        'neurons_count': len(graph),
        'basis': [float(v) for v in graph.basis],
        'classes': [slot.to_dict() for slot in network.classes],
        'neurons': graph.computed_records(),
        'description': network.description,
    }


def _require_int(data: Dict[str, Any], key: str) -> int:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ModelFormatError(f"model field '{key}' must be an integer")
    return value


def network_from_dict(data: Dict[str, Any], max_neurons: int = MAX_NEURONS) -> Network:
    """
    Rebuild a network from its JSON form.

    Out-of-range operation indices are replaced by 0 with a warning.

    Raises:
        ModelFormatError: If counts disagree or a link or output id is invalid
    """
    if not isinstance(data, dict):
        raise ModelFormatError("model must be a JSON object")

    receptors = _require_int(data, 'receptors')
    if receptors < 1:
        raise ModelFormatError(f"invalid receptor count {receptors}")
    basis = data.get('basis')
    if not isinstance(basis, list) or not basis:
        raise ModelFormatError("model field 'basis' must be a non-empty list")
    base_size = data.get('base_size', len(basis))
    if base_size != len(basis):
        raise ModelFormatError(f"base_size {base_size} does not match {len(basis)} basis values")
    if base_size != BASIS_LEN:
        logger.warning("Basis size mismatch: file has %d, default is %d", base_size, BASIS_LEN)

    inputs = data.get('inputs', receptors + base_size)
    if inputs != receptors + base_size:
        raise ModelFormatError(f"inputs {inputs} != receptors {receptors} + base_size {base_size}")

    records = data.get('neurons', [])
    if not isinstance(records, list):
        raise ModelFormatError("model field 'neurons' must be a list")
    count = data.get('neurons_count', inputs + len(records))
    if count != inputs + len(records):
        raise ModelFormatError(
            f"neurons_count {count} != inputs {inputs} + {len(records)} listed neurons"
        )

    graph = NeuronGraph(receptors, basis=basis, max_neurons=max(max_neurons, count))
    for n, record in enumerate(records):
        node_id = inputs + n
        try:
            left, right, op = int(record['i']), int(record['j']), int(record['op'])
        except (KeyError, TypeError, ValueError) as e:
            raise ModelFormatError(f"neuron {node_id} is malformed: {record!r}") from e
        if not (0 <= left < node_id and 0 <= right < node_id):
            raise ModelFormatError(f"neuron {node_id} links to ({left}, {right})")
        if not 0 <= op < OP_COUNT:
            logger.warning("Neuron %d has operation index %d outside [0, %d), using 0",
                           node_id, op, OP_COUNT)
            op = 0
        graph.append(left, right, op)

    classes = []
    for n, entry in enumerate(data.get('classes', [])):
        if not isinstance(entry, dict):
            raise ModelFormatError(f"class entry {n} is not an object")
        class_id = entry.get('id', n)
        if class_id != n:
            raise ModelFormatError(f"class entry {n} has id {class_id}")
        output = entry.get('output_neuron', -1)
        if isinstance(output, bool) or not isinstance(output, int):
            raise ModelFormatError(f"class {n} output_neuron must be an integer")
        if output < 0:
            output = None
        elif not graph.is_computed(output):
            raise ModelFormatError(
                f"class {n} output_neuron {output} is not a computed neuron id "
                f"(expected {inputs} .. {len(graph) - 1})"
            )
        classes.append(ClassSlot(class_id, str(entry.get('name', '')), output))

    description = data.get('description') or 'Trained neural network model'
    return Network(graph=graph, classes=classes, description=description)


def save_network(network: Network, path) -> Path:
    """
    Write a network to a JSON model file.

    The file is replaced atomically under a lock file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    text = json.dumps(network_to_dict(network), indent=2)
    with FileLock(str(path) + '.lock'):
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=path.name, suffix='.tmp')
        try:
            with os.fdopen(fd, 'w') as f:
                f.write(text)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    logger.info("Saved model to %s (%d neurons, %d classes)",
                path, len(network.graph), network.n_classes)
    return path


def load_network(path, max_neurons: int = MAX_NEURONS) -> Network:
    """
    Read a network from a JSON model file.

    Raises:
        ModelFormatError: If the file is unreadable or invalid
    """
    path = Path(path)
    try:
        text = path.read_text()
    except OSError as e:
        raise ModelFormatError(f"cannot read model file {path}: {e}") from e
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ModelFormatError(f"invalid JSON in {path}: {e}") from e
    network = network_from_dict(data, max_neurons=max_neurons)
    logger.info("Loaded model from %s (%d neurons, %d classes)",
                path, len(network.graph), network.n_classes)
    return network
