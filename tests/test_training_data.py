import json

import numpy as np
import pytest

from fingerspell.errors import MalformedMetadataError
from fingerspell.training_data import LabelIndex, TrainingDataStore


def _vec(v=0.0):
    return np.full(73, v)


def test_append_and_stats():
    store = TrainingDataStore()
    store.append(_vec(), 'A')
    store.append(_vec(), 'a')
    store.append(_vec(), 'B')
    assert store.stats() == {'A': 2, 'B': 1}
    assert len(store) == 3


@pytest.mark.parametrize('features, label', [
    (None, 'A'), ([], 'A'), (_vec(), ''), (_vec(), None),
])
def test_append_rejects_missing_input(features, label):
    store = TrainingDataStore()
    assert store.append(features, label) is False
    assert len(store) == 0
    assert len(store.label_index) == 0


def test_append_rejects_non_finite_features():
    store = TrainingDataStore()
    bad = _vec(0.5)
    bad[10] = np.nan
    assert store.append(bad, 'A') is False
    assert store.append(_vec(np.inf), 'A') is False
    assert len(store) == 0
    assert store.append(_vec(0.5), 'A') is True


def test_label_index_is_first_seen_and_stable():
    store = TrainingDataStore()
    for label in ['M', 'C', 'M', 'A', 'C']:
        store.append(_vec(), label)
    assert store.label_index.index_of('M') == 0
    assert store.label_index.forward == {'M': 0, 'C': 1, 'A': 2}
    assert store.label_index.reverse == {0: 'M', 1: 'C', 2: 'A'}
    assert store.label_index.labels == ['M', 'C', 'A']


def test_clear_empties_everything():
    store = TrainingDataStore()
    store.append(_vec(), 'A')
    store.clear()
    assert store.stats() == {}
    assert len(store.label_index) == 0
    store.append(_vec(), 'Z')
    assert store.label_index.index_of('Z') == 0


def test_serialize_round_trip():
    store = TrainingDataStore()
    for i, label in enumerate('QAQBQ'):
        store.append(_vec(i), label)

    data = json.loads(json.dumps(store.serialize()))
    assert set(data) == {'labelMap', 'trainingData', 'labels'}
    assert len(data['trainingData'][0]) == 73

    restored = TrainingDataStore.from_serialized(data)
    assert restored.stats() == store.stats()
    assert restored.label_index.forward == store.label_index.forward
    assert restored.label_index.reverse == store.label_index.reverse
    np.testing.assert_array_equal(restored.features[3], _vec(3))


def test_snapshot_is_independent_of_later_appends():
    store = TrainingDataStore()
    store.append(_vec(), 'A')
    features, labels, index = store.snapshot()
    store.append(_vec(), 'B')
    assert labels == ['A']
    assert 'B' not in index


@pytest.mark.parametrize('data', [
    None,
    {'trainingData': [], 'labels': []},
    {'labelMap': {}, 'labels': []},
    {'labelMap': {}, 'trainingData': []},
    {'labelMap': {'A': 0}, 'trainingData': [[1.0]], 'labels': []},
    {'labelMap': {'A': 0}, 'trainingData': [[1.0]], 'labels': ['B']},
    {'labelMap': {'A': 'zero'}, 'trainingData': [[1.0]], 'labels': ['A']},
    {'labelMap': {'A': 1}, 'trainingData': [[1.0]], 'labels': ['A']},
    {'labelMap': {'A': 0}, 'trainingData': [['x']], 'labels': ['A']},
    {'labelMap': {'A': 0}, 'trainingData': [[float('nan')]], 'labels': ['A']},
])
def test_deserialize_rejects_malformed(data):
    with pytest.raises(MalformedMetadataError):
        TrainingDataStore().deserialize(data)


def test_failed_deserialize_keeps_state():
    store = TrainingDataStore()
    store.append(_vec(), 'A')
    with pytest.raises(MalformedMetadataError):
        store.deserialize({'labels': []})
    assert store.stats() == {'A': 1}


def test_label_index_from_mapping_inverts():
    index = LabelIndex.from_mapping({'B': 1, 'A': 0})
    assert index.label_of(1) == 'B'
    assert list(index) == ['A', 'B']
