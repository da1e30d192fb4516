"""Core neuron graph framework."""

from .operations import OPERATIONS, OP_COUNT, get_operation, list_operations
from .network import BASIS, BASIS_LEN, MAX_NEURONS, ClassSlot, Network, NeuronGraph
from .persistence import load_network, save_network
from .interrupt import clear_interrupt, interrupt_requested, request_interrupt

__all__ = [
    'OPERATIONS',
    'OP_COUNT',
    'get_operation',
    'list_operations',
    'BASIS',
    'BASIS_LEN',
    'MAX_NEURONS',
    'ClassSlot',
    'Network',
    'NeuronGraph',
    'load_network',
    'save_network',
    'clear_interrupt',
    'interrupt_requested',
    'request_interrupt',
]
