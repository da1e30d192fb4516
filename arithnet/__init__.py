"""
arithnet - classifiers grown as graphs of arithmetic neurons.

Each class is scored by one neuron of an append-only DAG whose neurons
add, subtract or multiply earlier neurons, starting from character
receptors and a small set of constants.
"""

__version__ = '1.0.0'

from .core.network import Network, NeuronGraph, ClassSlot
from .core.training import Trainer, TrainingConfig, TrainingResult
from .core.inference import Classifier
from .core.persistence import load_network, save_network
from .datasets.config import TrainingSetConfig

__all__ = [
    '__version__',
    'Network',
    'NeuronGraph',
    'ClassSlot',
    'Trainer',
    'TrainingConfig',
    'TrainingResult',
    'Classifier',
    'load_network',
    'save_network',
    'TrainingSetConfig',
]
