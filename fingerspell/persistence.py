"""
persistence.py
==============
Save / load a trained classifier as three artifacts:

  model.pkl      pickled scaler + estimator (scikit-learn's native format)
  weights.npz    the network's layer weights
  metadata.json  labelMap, trainingData and labels from the training store

All three are required to load; the label map in metadata.json decides the
order of the model's outputs.
"""

import json
import logging
import os
import pickle
from contextlib import contextmanager
from pathlib import Path

import numpy as np

from fingerspell.classifier import LandmarkClassifier
from fingerspell.config import METADATA_FILE, MODEL_FILE, WEIGHTS_FILE
from fingerspell.errors import MalformedMetadataError, MissingArtifactError
from fingerspell.training_data import LabelIndex, TrainingDataStore

log = logging.getLogger(__name__)


def artifact_paths(directory):
    directory = Path(directory)
    return {
        'model'   : directory / MODEL_FILE,
        'weights' : directory / WEIGHTS_FILE,
        'metadata': directory / METADATA_FILE,
    }


@contextmanager
def _open_binary(source):
    """Yield a readable binary stream for a path or an already-open file."""
    if hasattr(source, 'read'):
        yield source
    else:
        with open(source, 'rb') as f:
            yield f


def save_model(directory, classifier, store):
    """Write the three artifacts into directory and return their paths."""
    if classifier is None:
        raise ValueError("No model to save")

    paths = artifact_paths(directory)
    Path(directory).mkdir(parents=True, exist_ok=True)

    model_data = {
        'model'              : classifier.model,
        'scaler'             : classifier.scaler,
        'validation_accuracy': classifier.validation_accuracy,
        'n_samples'          : classifier.n_samples,
        'trained_at'         : classifier.trained_at,
    }
    with open(paths['model'], 'wb') as f:
        pickle.dump(model_data, f)

    np.savez(paths['weights'], **classifier.get_weights())

    # The store's label map only ever grows, so it still covers every model output.
    metadata = store.serialize()
    with open(paths['metadata'], 'w', encoding='utf-8') as f:
        json.dump(metadata, f)

    log.info("[MODEL] Saved to %s | %d classes | %d samples",
             directory, len(classifier.label_index), len(metadata['labels']))
    return paths


def load_model(model=None, weights=None, metadata=None):
    """
    Load a classifier and its training store from the three artifacts.

    Each argument is a path or a binary file object. Returns
    (LandmarkClassifier, TrainingDataStore). model.pkl is a pickle, so
    only load artifacts this process (or another trusted one) wrote.
    """
    supplied = {'model': model, 'weights': weights, 'metadata': metadata}
    missing = [name for name, src in supplied.items()
               if src is None or (not hasattr(src, 'read') and not os.path.isfile(src))]
    if missing:
        raise MissingArtifactError(
            f"Missing required model file(s): {', '.join(missing)}. "
            f"Supply {MODEL_FILE}, {WEIGHTS_FILE} and {METADATA_FILE} together.")

    with _open_binary(metadata) as f:
        try:
            meta = json.loads(f.read().decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise MalformedMetadataError(f"metadata is not valid JSON: {e}") from e
    store = TrainingDataStore.from_serialized(meta)

    with _open_binary(model) as f:
        try:
            model_data = pickle.load(f)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError) as e:
            raise MalformedMetadataError(f"model artifact is corrupt: {e}") from e
    if not isinstance(model_data, dict) or 'model' not in model_data or 'scaler' not in model_data:
        raise MalformedMetadataError("model artifact does not hold a model and scaler")

    label_index = LabelIndex.from_mapping(store.label_index.forward)
    classes = getattr(model_data['model'], 'classes_', [])
    if any(int(c) >= len(label_index) for c in classes):
        raise MalformedMetadataError("model outputs do not match labelMap")

    classifier = LandmarkClassifier(
        model_data['model'],
        model_data['scaler'],
        label_index,
        validation_accuracy=model_data.get('validation_accuracy'),
        n_samples=model_data.get('n_samples', len(store)),
        trained_at=model_data.get('trained_at'),
    )

    with _open_binary(weights) as f:
        try:
            with np.load(f) as payload:
                classifier.set_weights({name: payload[name] for name in payload.files})
        except (ValueError, OSError) as e:
            raise MalformedMetadataError(f"weights artifact is corrupt: {e}") from e

    log.info("[MODEL] Loaded | %d classes: %s", len(label_index), label_index.labels)
    return classifier, store


def load_model_dir(directory):
    paths = artifact_paths(directory)
    return load_model(paths['model'], paths['weights'], paths['metadata'])
