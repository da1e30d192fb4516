"""
Error kinds raised by arithnet.

Numeric degeneracies (NaN, inf) are not errors: they flow through the
operators and are neutralized by the inference clamp.
"""


class ArithNetError(Exception):
    """Base class for all arithnet errors."""


class ConfigParseError(ArithNetError):
    """A training configuration file is missing, malformed or incomplete."""


class ConfigMismatchError(ArithNetError):
    """A configuration is incompatible with a loaded model (receptor count)."""


class ModelFormatError(ArithNetError):
    """A model file cannot be read or violates the graph layout."""


class CapacityExhaustedError(ArithNetError):
    """The neuron graph reached its configured maximum size."""

    def __init__(self, limit: int):
        super().__init__(f"neuron graph is full ({limit} neurons)")
        self.limit = limit
