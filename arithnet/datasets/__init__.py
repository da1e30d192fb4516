"""Word datasets and training-set configuration."""

from .words import (
    DEFAULT_RECEPTORS,
    DEFAULT_WORDS,
    Image,
    WordDataset,
    build_images,
    encode_text,
    normalize,
    pad_word,
    shifted_words,
)
from .config import TrainingSetConfig

__all__ = [
    'DEFAULT_RECEPTORS',
    'DEFAULT_WORDS',
    'Image',
    'WordDataset',
    'build_images',
    'encode_text',
    'normalize',
    'pad_word',
    'shifted_words',
    'TrainingSetConfig',
]
