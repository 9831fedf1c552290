import json

import pytest

from fingerspell.cli import main
from fingerspell.evaluate import cross_val_evaluate, evaluate, per_class_accuracy
from fingerspell.errors import InsufficientDataError
from fingerspell.training_data import TrainingDataStore

from conftest import fist_hand, flat_hand, l_hand, noisy_samples


@pytest.fixture
def metadata_file(tmp_path, filled_store):
    path = tmp_path / 'metadata.json'
    path.write_text(json.dumps(filled_store.serialize()))
    return path


@pytest.fixture
def larger_store():
    store = TrainingDataStore()
    for features, label in (noisy_samples(fist_hand(), 'A', 10, seed=5) +
                            noisy_samples(flat_hand(), 'B', 10, seed=6)):
        store.append(features, label)
    return store


def test_stats_command(metadata_file, capsys):
    assert main(['stats', str(metadata_file)]) == 0
    out = capsys.readouterr().out
    assert 'A: 5' in out
    assert 'Total: 10' in out


def test_train_command_writes_model(metadata_file, tmp_path):
    out_dir = tmp_path / 'model'
    assert main(['train', str(metadata_file), '--out', str(out_dir)]) == 0
    assert {p.name for p in out_dir.iterdir()} == {'model.pkl', 'weights.npz', 'metadata.json'}


def test_train_command_reports_errors(tmp_path):
    path = tmp_path / 'metadata.json'
    path.write_text(json.dumps({'labelMap': {}, 'trainingData': [], 'labels': []}))
    assert main(['train', str(path), '--out', str(tmp_path / 'out')]) == 1


def test_missing_metadata_file(tmp_path):
    assert main(['stats', str(tmp_path / 'nope.json')]) == 1


def test_cross_validation(larger_store):
    y_true, y_pred, folds = cross_val_evaluate(larger_store, n_splits=3)
    assert len(y_true) == len(y_pred) == 20
    assert len(folds) == 3
    assert all(0.0 <= acc <= 1.0 for acc in folds)


def test_cross_validation_needs_data():
    with pytest.raises(InsufficientDataError):
        cross_val_evaluate(TrainingDataStore())


def test_evaluate_writes_plots(larger_store, tmp_path):
    summary = evaluate(larger_store, tmp_path, n_splits=2)
    assert set(summary['per_class_accuracy']) == {'A', 'B'}
    for path in summary['files'].values():
        assert path.exists()


def test_per_class_accuracy():
    import numpy as np
    acc = per_class_accuracy(np.array(['A', 'A', 'B']), np.array(['A', 'B', 'B']), ['A', 'B', 'C'])
    assert acc == {'A': 0.5, 'B': 1.0, 'C': 0.0}


@pytest.fixture
def fake_camera(monkeypatch):
    """Images named after a hand shape; 'empty' has no hand."""
    shapes = {'l.png': l_hand(), 'fist.png': fist_hand(), 'empty.png': None}
    monkeypatch.setattr('fingerspell.cli._read_image', lambda path: path)
    monkeypatch.setattr('fingerspell.detector.detect_landmarks', lambda frame: shapes[frame])


def test_predict_command(fake_camera, capsys):
    assert main(['predict', 'l.png', 'fist.png', 'empty.png']) == 0
    out = capsys.readouterr().out.splitlines()
    assert out == ['l.png: L (0.80)', 'fist.png: A (0.80)', 'empty.png: no hand']


def test_predict_with_missing_model_dir(fake_camera, tmp_path):
    assert main(['predict', 'l.png', '--model', str(tmp_path / 'none')]) == 1
