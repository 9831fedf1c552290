import numpy as np
import pytest

from fingerspell.classifier import LandmarkClassifier
from fingerspell.errors import InsufficientDataError, MalformedMetadataError, TrainingFailure
from fingerspell.features import extract_features
from fingerspell.training_data import LabelIndex

from conftest import fist_hand, flat_hand, noisy_samples


def test_nine_samples_is_not_enough(two_label_samples):
    with pytest.raises(InsufficientDataError):
        LandmarkClassifier.fit(two_label_samples[:9])


def test_ten_samples_two_labels_trains(two_label_samples):
    clf = LandmarkClassifier.fit(two_label_samples)
    label, confidence = clf.predict(extract_features(fist_hand()))
    assert label in clf.label_index
    assert 0.0 <= confidence <= 1.0
    assert clf.n_samples == 10
    assert clf.validation_accuracy is not None


def test_probabilities_cover_every_label_and_sum_to_one(two_label_samples):
    clf = LandmarkClassifier.fit(two_label_samples)
    proba = clf.predict_proba(extract_features(flat_hand()))
    assert set(proba) == {'A', 'B'}
    assert sum(proba.values()) == pytest.approx(1.0)


def test_learns_separable_shapes():
    samples = noisy_samples(fist_hand(), 'A', 20, seed=3) + noisy_samples(flat_hand(), 'B', 20, seed=4)
    clf = LandmarkClassifier.fit(samples)
    assert clf.predict(extract_features(fist_hand()))[0] == 'A'
    assert clf.predict(extract_features(flat_hand()))[0] == 'B'


def test_outputs_follow_given_label_index(two_label_samples):
    index = LabelIndex()
    index.add('B')
    index.add('A')
    clf = LandmarkClassifier.fit(two_label_samples, label_index=index)
    assert clf.label_index.index_of('B') == 0
    assert set(clf.model.classes_) <= {0, 1}


def test_single_label_predicts_it():
    clf = LandmarkClassifier.fit(noisy_samples(fist_hand(), 'Q', 10))
    assert clf.predict(extract_features(flat_hand())) == ('Q', pytest.approx(1.0))


def test_predict_without_features():
    clf = LandmarkClassifier.fit(noisy_samples(fist_hand(), 'Q', 10))
    assert clf.predict(None) is None
    assert clf.predict_proba(None) is None


def test_wrong_feature_length_raises(two_label_samples):
    clf = LandmarkClassifier.fit(two_label_samples)
    with pytest.raises(ValueError):
        clf.predict(np.zeros(63))


def test_non_finite_data_is_a_training_failure(two_label_samples):
    samples = list(two_label_samples)
    samples[0] = (np.full(73, np.nan), 'A')
    with pytest.raises(TrainingFailure):
        LandmarkClassifier.fit(samples)


def test_ragged_data_is_a_training_failure(two_label_samples):
    samples = list(two_label_samples)
    samples[0] = (np.zeros(10), 'A')
    with pytest.raises(TrainingFailure):
        LandmarkClassifier.fit(samples)


def test_split_error_is_a_training_failure(two_label_samples, monkeypatch):
    def broken_split(*args, **kwargs):
        raise ValueError("test_size too large")

    monkeypatch.setattr('fingerspell.classifier.train_test_split', broken_split)
    with pytest.raises(TrainingFailure):
        LandmarkClassifier.fit(two_label_samples)


def test_weights_round_trip(two_label_samples):
    clf = LandmarkClassifier.fit(two_label_samples)
    weights = clf.get_weights()
    assert weights['coef_0'].shape == (73, 128)
    assert weights['coef_1'].shape == (128, 64)
    assert weights['coef_2'].shape[0] == 64

    clf.set_weights({k: np.zeros_like(v) for k, v in weights.items()})
    assert clf.predict_proba(extract_features(fist_hand()))['A'] == pytest.approx(0.5)


def test_weights_with_wrong_shape_are_rejected(two_label_samples):
    clf = LandmarkClassifier.fit(two_label_samples)
    weights = clf.get_weights()
    weights['coef_0'] = np.zeros((10, 10))
    with pytest.raises(MalformedMetadataError):
        clf.set_weights(weights)
