"""
Classification of single words with a trained network.

Every class output is a plain float; the presentation layer turns it
into a whole percent and maps NaN and infinities to 0.
"""

import math
from dataclasses import dataclass
from typing import List

import numpy as np

from .network import Network
from ..datasets.words import encode_text, pad_word


def clamp_percent(raw) -> int:
    """Whole percent in [0, 100] for an already scaled value; NaN/inf give 0."""
    raw = float(raw)
    if not math.isfinite(raw):
        return 0
    return int(math.floor(min(100.0, max(0.0, raw))))


def confidence_percent(value) -> int:
    """Percent for a raw class output (value * 100, in float32)."""
    with np.errstate(all='ignore'):
        raw = np.float32(value) * np.float32(100.0)
    return clamp_percent(raw)


@dataclass
class Prediction:
    """Classification of one word."""
    text: str
    padded: str
    scores: List[float]
    percents: List[int]
    best_class: int

    @property
    def best_percent(self) -> int:
        return self.percents[self.best_class] if self.best_class >= 0 else 0


class Classifier:
    """Evaluate the class outputs of a network for single inputs."""

    def __init__(self, network: Network):
        self.network = network

    def raw_scores(self, text: str) -> np.ndarray:
        """Class outputs for text; NaN for pending classes."""
        graph = self.network.graph
        graph.set_input(encode_text(text, graph.receptors))
        scores = np.full(self.network.n_classes, np.nan, dtype=np.float32)
        for slot in self.network.classes:
            if slot.output_node is not None:
                scores[slot.id] = graph.scalar(slot.output_node)
        return scores

    def percents(self, text: str) -> List[int]:
        return [confidence_percent(v) for v in self.raw_scores(text)]

    def predict(self, text: str) -> int:
        """Class with the highest output; -1 if no class has a finite output."""
        return best_class(self.raw_scores(text))

    def classify(self, text: str) -> Prediction:
        scores = self.raw_scores(text)
        return Prediction(
            text=text,
            padded=pad_word(text, self.network.receptors),
            scores=[float(v) for v in scores],
            percents=[confidence_percent(v) for v in scores],
            best_class=best_class(scores),
        )


def best_class(scores: np.ndarray) -> int:
    """Argmax over finite scores, first wins ties; -1 if none."""
    finite = np.where(np.isfinite(scores), scores, -np.inf)
    if not np.any(np.isfinite(scores)):
        return -1
    return int(np.argmax(finite))
