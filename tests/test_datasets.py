"""
Tests for word encoding and training-set configuration.

Run with: python -m pytest tests/test_datasets.py -v
"""

import json
import logging

import numpy as np
import pytest

from arithnet.datasets import (
    TrainingSetConfig,
    WordDataset,
    build_images,
    encode_text,
    normalize,
    pad_word,
    shifted_words,
)
from arithnet.datasets.words import Image
from arithnet.exceptions import ConfigParseError


class TestEncoding:
    """Tests for the byte / 256 receptor encoding."""

    def test_space_and_at(self):
        np.testing.assert_array_equal(encode_text('@', 2), [0.25, 0.125])
        np.testing.assert_array_equal(encode_text('', 3), [0.125] * 3)

    def test_truncates_long_words(self):
        assert normalize('abcdef', 4) == b'abcd'
        assert pad_word('abcdef', 4) == 'abcd'

    def test_pads_short_words(self):
        assert normalize('ab', 4) == b'ab  '

    def test_nul_ends_word(self):
        assert normalize('ab\0cd', 4) == b'ab  '

    def test_values_below_one(self):
        values = encode_text('\xff~', 4)
        assert values.dtype == np.float32
        assert np.all(values < 1.0)
        assert values[0] == np.float32(0xC3 / 256)


class TestShifts:
    """Tests for sliding words across the receptor field."""

    def test_empty_word(self):
        assert shifted_words('', 5) == ['     ']

    def test_shift_count(self):
        variants = shifted_words('time', 6)
        assert variants == ['time', ' time', '  time']

    def test_word_fills_field(self):
        assert shifted_words('abcd', 4) == ['abcd']
        assert shifted_words('abcdef', 4) == ['abcdef']

    def test_build_images_order(self):
        images = build_images({1: 'ab', 0: ''}, 3)
        assert [(img.class_id, img.word) for img in images] == [
            (0, '   '), (1, 'ab'), (1, ' ab'),
        ]

    def test_build_images_without_shifts(self):
        images = build_images({0: 'ab', 1: 'c'}, 3, generate_shifts=False)
        assert [img.word for img in images] == ['ab', 'c']


class TestWordDataset:
    """Tests for encoded datasets and targets."""

    def test_encode_shape(self):
        dataset = WordDataset([Image('a', 0), Image('b', 1), Image('a', 1)], 3)
        assert dataset.encode().shape == (3, 3)
        assert len(dataset) == 3

    def test_targets(self):
        dataset = WordDataset([Image('a', 0), Image('b', 1), Image('c', 1)], 3)
        np.testing.assert_array_equal(dataset.targets(1), [0.0, 1.0, 1.0])
        np.testing.assert_array_equal(dataset.targets(5), [0.0, 0.0, 0.0])
        assert dataset.count_for(1) == 2

    def test_empty_dataset(self):
        assert WordDataset([], 4).encode().shape == (0, 4)


class TestTrainingSetConfig:
    """Tests for configuration parsing."""

    def test_default(self):
        config = TrainingSetConfig.default()
        assert config.receptors == 20
        assert config.class_names == ['', 'time', 'hour', 'main']
        assert len(config.images) == 1 + 3 * 17

    def test_classes_layout(self):
        config = TrainingSetConfig.from_dict({
            'receptors': 6,
            'classes': [{'id': 0, 'word': ''}, {'id': 1, 'word': 'time'}],
            'funcs': ['exhaustive_full'],
        })
        assert config.n_classes == 2
        assert len(config.images) == 1 + 3
        assert config.funcs == ['exhaustive_full']

    def test_sparse_class_ids(self):
        config = TrainingSetConfig.from_dict({
            'receptors': 4,
            'classes': [{'id': 0, 'word': ''}, {'id': 3, 'word': 'x'}],
        })
        assert config.class_names == ['', '', '', 'x']

    def test_images_layout(self):
        config = TrainingSetConfig.from_dict({
            'receptors': 4,
            'images': [
                {'id': 1, 'word': ' yes'},
                {'id': 1, 'word': 'yes'},
                {'id': 0, 'word': '    '},
            ],
        })
        assert [img.word for img in config.images] == [' yes', 'yes', '    ']
        assert config.class_names == ['', ' yes']

    def test_duplicate_class(self):
        with pytest.raises(ConfigParseError, match='twice'):
            TrainingSetConfig.from_dict({
                'classes': [{'id': 1, 'word': 'a'}, {'id': 1, 'word': 'b'}],
            })

    @pytest.mark.parametrize('data', [
        {'receptors': 0, 'classes': [{'id': 0, 'word': ''}]},
        {'receptors': 'wide', 'classes': [{'id': 0, 'word': ''}]},
        {'classes': [{'id': -1, 'word': ''}]},
        {'classes': [{'word': 'a'}]},
        {'classes': [{'id': 0, 'word': 5}]},
        {'classes': 'time'},
        {'classes': []},
        {'receptors': 4},
        {'classes': [{'id': 0, 'word': ''}], 'funcs': 'triplet'},
        {'classes': [{'id': 0, 'word': ''}], 'generate_shifts': 'yes'},
    ])
    def test_invalid(self, data):
        with pytest.raises(ConfigParseError):
            TrainingSetConfig.from_dict(data)

    def test_unknown_key_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            TrainingSetConfig.from_dict({'classes': [{'id': 0, 'word': ''}], 'colour': 'red'})
        assert 'colour' in caplog.text

    def test_load(self, tmp_path):
        path = tmp_path / 'set.json'
        path.write_text(json.dumps({
            'receptors': 5,
            'classes': [{'id': 0, 'word': ''}, {'id': 1, 'word': 'ab'}],
        }))
        config = TrainingSetConfig.load(path)
        assert config.source == str(path)
        assert len(config.images) == 5

    def test_load_errors(self, tmp_path):
        with pytest.raises(ConfigParseError, match='cannot read'):
            TrainingSetConfig.load(tmp_path / 'missing.json')
        bad = tmp_path / 'bad.json'
        bad.write_text('{"receptors": ')
        with pytest.raises(ConfigParseError, match='invalid JSON'):
            TrainingSetConfig.load(bad)

    def test_to_dict_reproduces_images(self):
        config = TrainingSetConfig.from_dict({
            'receptors': 4,
            'classes': [{'id': 0, 'word': ''}, {'id': 1, 'word': 'ab'}],
        })
        again = TrainingSetConfig.from_dict(config.to_dict())
        assert [(i.class_id, i.word) for i in again.images] == \
            [(i.class_id, i.word) for i in config.images]
