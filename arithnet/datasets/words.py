"""
Word images - fixed-width strings and their receptor encoding.

A word is normalized to exactly `receptors` bytes (UTF-8, truncated or
space padded; a NUL ends the word) and each byte b becomes b / 256.
"""

from dataclasses import dataclass
from typing import Dict, List, Sequence

import numpy as np


PAD_BYTE = 0x20
DEFAULT_RECEPTORS = 20
DEFAULT_WORDS = ['', 'time', 'hour', 'main']


def normalize(text: str, receptors: int) -> bytes:
    """Clip or space-pad text to exactly `receptors` bytes."""
    raw = text.encode('utf-8')
    nul = raw.find(b'\0')
    if nul >= 0:
        raw = raw[:nul]
    raw = raw[:receptors]
    return raw + bytes([PAD_BYTE]) * (receptors - len(raw))


def pad_word(text: str, receptors: int) -> str:
    """Printable form of a normalized word."""
    return normalize(text, receptors).decode('utf-8', errors='replace')


def encode_text(text: str, receptors: int) -> np.ndarray:
    """Encode text into receptor values (float32, byte / 256)."""
    data = np.frombuffer(normalize(text, receptors), dtype=np.uint8)
    return data.astype(np.float32) / np.float32(256.0)


def shifted_words(word: str, receptors: int) -> List[str]:
    """
    Slide a word across the receptor field.

    The left-aligned word comes first, followed by shifts 1 .. receptors - len.
    An empty word or one that does not fit yields a single image.
    """
    if not word:
        return [' ' * receptors]
    positions = max(0, receptors - len(word))
    return [' ' * shift + word for shift in range(positions + 1)]


@dataclass
class Image:
    """A training word and the class it belongs to."""
    word: str
    class_id: int

    def to_dict(self) -> Dict:
        return {'id': self.class_id, 'word': self.word}


class WordDataset:
    """
    Encoded training images.

    Args:
        images: Training images
        receptors: Input width
    """

    def __init__(self, images: Sequence[Image], receptors: int):
        self.images = list(images)
        self.receptors = receptors
        self._encoded = None

    def __len__(self) -> int:
        return len(self.images)

    @property
    def class_ids(self) -> np.ndarray:
        return np.array([img.class_id for img in self.images], dtype=np.int64)

    def encode(self) -> np.ndarray:
        """(n_images, receptors) float32 matrix of receptor values."""
        if self._encoded is None:
            if self.images:
                rows = [encode_text(img.word, self.receptors) for img in self.images]
                self._encoded = np.stack(rows)
            else:
                self._encoded = np.zeros((0, self.receptors), dtype=np.float32)
        return self._encoded

    def targets(self, class_id: int) -> np.ndarray:
        """1.0 where the image belongs to class_id, 0.0 elsewhere."""
        return (self.class_ids == class_id).astype(np.float32)

    def count_for(self, class_id: int) -> int:
        return int(np.sum(self.class_ids == class_id))


def build_images(words: Dict[int, str], receptors: int, generate_shifts: bool = True) -> List[Image]:
    """Images for a class-id -> word table, in class-id order."""
    images = []
    for class_id in sorted(words):
        word = words[class_id]
        if generate_shifts:
            variants = shifted_words(word, receptors)
        else:
            variants = [word]
        images.extend(Image(w, class_id) for w in variants)
    return images
