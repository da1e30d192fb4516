#!/usr/bin/env python3
"""
Quick Start - Minimal example to get started with arithnet.

Grows a small classifier for two words and classifies a few inputs.
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from arithnet.core.inference import Classifier
from arithnet.core.training import Trainer, TrainingConfig, build_network
from arithnet.datasets.config import TrainingSetConfig

print("arithnet - Quick Start")
print("="*40)

# Empty input, 'yes' and 'no' slid across an 8-character field
data = TrainingSetConfig.from_dict({
    'receptors': 8,
    'classes': [
        {'id': 0, 'word': ''},
        {'id': 1, 'word': 'yes'},
        {'id': 2, 'word': 'no'},
    ],
})
print(f"\nDataset: {data.n_classes} classes, {len(data.images)} images")

network = build_network(data)
config = TrainingConfig(seed=7, use_multiprocessing=False, max_iterations=300)

print("\nTraining...")
result = Trainer(network, data.dataset(), config).train()
print(f"Stopped: {result.stop_reason} after {result.iterations} iterations, "
      f"{result.neurons_created} neurons")

classifier = Classifier(network)
for word in ['yes', '   yes', 'no', '  no', '']:
    prediction = classifier.classify(word)
    name = network.classes[prediction.best_class].name if prediction.best_class >= 0 else '-'
    print(f"  '{prediction.padded}' -> {name!r} {prediction.percents}")

print("\nTry other words, or more receptors!")
