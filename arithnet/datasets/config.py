"""
Training-set configuration files.

Two layouts are accepted:

    {"receptors": 20, "classes": [{"id": 1, "word": "time"}, ...],
     "generate_shifts": true, "funcs": ["triplet_parallel"]}

    {"receptors": 20, "images": [{"id": 1, "word": "  time"}, ...]}

With "classes" every word is slid across the receptor field (unless
generate_shifts is false). With "images" the words are used as given.
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

from .words import (
    DEFAULT_RECEPTORS,
    DEFAULT_WORDS,
    Image,
    WordDataset,
    build_images,
)
from ..exceptions import ConfigParseError
from ..utils import get_logger

logger = get_logger(__name__)

KNOWN_KEYS = {'receptors', 'classes', 'images', 'generate_shifts', 'funcs', 'description'}


@dataclass
class TrainingSetConfig:
    """A parsed training-set configuration."""
    receptors: int = DEFAULT_RECEPTORS
    class_names: List[str] = field(default_factory=list)
    images: List[Image] = field(default_factory=list)
    generate_shifts: bool = True
    funcs: List[str] = field(default_factory=list)
    description: Optional[str] = None
    source: Optional[str] = None

    @property
    def n_classes(self) -> int:
        return len(self.class_names)

    def dataset(self) -> WordDataset:
        return WordDataset(self.images, self.receptors)

    @classmethod
    def default(cls, receptors: int = DEFAULT_RECEPTORS) -> 'TrainingSetConfig':
        """Built-in four-class set: '', time, hour, main."""
        words = dict(enumerate(DEFAULT_WORDS))
        return cls(
            receptors=receptors,
            class_names=list(DEFAULT_WORDS),
            images=build_images(words, receptors, True),
            generate_shifts=True,
            description='Default configuration',
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], source: Optional[str] = None) -> 'TrainingSetConfig':
        """
        Parse a configuration mapping.

        Raises:
            ConfigParseError: If required fields are missing or invalid
        """
        where = f" in {source}" if source else ''
        if not isinstance(data, dict):
            raise ConfigParseError(f"configuration must be a JSON object{where}")
        for key in data:
            if key not in KNOWN_KEYS:
                logger.warning("Ignoring unknown configuration key '%s'%s", key, where)

        receptors = data.get('receptors', DEFAULT_RECEPTORS)
        if isinstance(receptors, bool) or not isinstance(receptors, int) or receptors < 1:
            raise ConfigParseError(f"'receptors' must be a positive integer{where}")

        generate_shifts = data.get('generate_shifts', True)
        if not isinstance(generate_shifts, bool):
            raise ConfigParseError(f"'generate_shifts' must be true or false{where}")

        funcs = data.get('funcs', [])
        if not isinstance(funcs, list) or not all(isinstance(f, str) for f in funcs):
            raise ConfigParseError(f"'funcs' must be a list of names{where}")

        if 'images' in data:
            entries = _parse_entries(data['images'], 'images', where)
            images = [Image(word, class_id) for class_id, word in entries]
            n_classes = max((cid for cid, _ in entries), default=-1) + 1
            names = [''] * n_classes
            for class_id, word in entries:
                if not names[class_id]:
                    names[class_id] = word.rstrip(' ')
        elif 'classes' in data:
            entries = _parse_entries(data['classes'], 'classes', where)
            words = {}
            for class_id, word in entries:
                if class_id in words:
                    raise ConfigParseError(f"class id {class_id} listed twice{where}")
                words[class_id] = word
            n_classes = max(words, default=-1) + 1
            names = [words.get(i, '') for i in range(n_classes)]
            images = build_images(words, receptors, generate_shifts)
        else:
            raise ConfigParseError(f"configuration needs 'classes' or 'images'{where}")

        if not images:
            raise ConfigParseError(f"configuration defines no images{where}")

        return cls(
            receptors=receptors,
            class_names=names,
            images=images,
            generate_shifts=generate_shifts,
            funcs=list(funcs),
            description=data.get('description'),
            source=source,
        )

    @classmethod
    def load(cls, path) -> 'TrainingSetConfig':
        """Read a configuration file."""
        path = Path(path)
        try:
            text = path.read_text()
        except OSError as e:
            raise ConfigParseError(f"cannot read config file {path}: {e}") from e
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise ConfigParseError(f"invalid JSON in {path}: {e}") from e
        config = cls.from_dict(data, source=str(path))
        logger.info("Loaded %s: %d classes, %d images, %d receptors",
                    path, config.n_classes, len(config.images), config.receptors)
        return config

    def to_dict(self) -> Dict[str, Any]:
        """Images layout, which reproduces the image list exactly."""
        data: Dict[str, Any] = {
            'receptors': self.receptors,
            'images': [img.to_dict() for img in self.images],
        }
        if self.funcs:
            data['funcs'] = list(self.funcs)
        if self.description:
            data['description'] = self.description
        return data


def _parse_entries(raw: Any, key: str, where: str) -> List[tuple]:
    if not isinstance(raw, list):
        raise ConfigParseError(f"'{key}' must be a list{where}")
    entries = []
    for n, item in enumerate(raw):
        if not isinstance(item, dict) or 'id' not in item or 'word' not in item:
            raise ConfigParseError(f"'{key}[{n}]' needs 'id' and 'word'{where}")
        class_id, word = item['id'], item['word']
        if isinstance(class_id, bool) or not isinstance(class_id, int) or class_id < 0:
            raise ConfigParseError(f"'{key}[{n}].id' must be a non-negative integer{where}")
        if not isinstance(word, str):
            raise ConfigParseError(f"'{key}[{n}].word' must be a string{where}")
        entries.append((class_id, word))
    return entries
