"""
classifier.py
=============
Trainable letter classifier: StandardScaler + scikit-learn MLP over the
73-element feature vectors, with outputs ordered by the store's LabelIndex.
"""

import logging
import math
import time
import warnings

import numpy as np
from sklearn.dummy import DummyClassifier
from sklearn.exceptions import ConvergenceWarning
from sklearn.metrics import accuracy_score
from sklearn.model_selection import train_test_split
from sklearn.neural_network import MLPClassifier
from sklearn.preprocessing import StandardScaler

from fingerspell.config import (
    BATCH_SIZE, DROPOUT_ALPHA, EPOCHS, HIDDEN_LAYERS, MIN_TRAINING_SAMPLES,
    RANDOM_STATE, VAL_FRACTION,
)
from fingerspell.errors import InsufficientDataError, MalformedMetadataError, TrainingFailure
from fingerspell.training_data import LabelIndex

log = logging.getLogger(__name__)


def build_mlp(hidden_layers=HIDDEN_LAYERS, epochs=EPOCHS, batch_size=BATCH_SIZE,
              random_state=RANDOM_STATE):
    """Two ReLU hidden layers, softmax output, Adam, one pass over the data per iteration."""
    return MLPClassifier(
        hidden_layer_sizes=hidden_layers,
        activation='relu',
        solver='adam',
        alpha=DROPOUT_ALPHA,
        batch_size=batch_size,
        max_iter=epochs,
        shuffle=True,
        early_stopping=False,
        random_state=random_state,
    )


def _split(X, y, val_fraction, random_state):
    """Hold out val_fraction of the samples, stratified when every label allows it."""
    n_val = math.ceil(len(y) * val_fraction)
    if n_val == 0 or n_val >= len(y):
        return X, X[:0], y, y[:0]

    _, counts = np.unique(y, return_counts=True)
    can_stratify = counts.min() >= 2 and n_val >= len(counts) and len(y) - n_val >= len(counts)
    return train_test_split(
        X, y,
        test_size=n_val,
        random_state=random_state,
        shuffle=True,
        stratify=y if can_stratify else None,
    )


class LandmarkClassifier:
    """
    A fitted model plus the LabelIndex it was trained against.

    Instances are never mutated after fit(); retraining builds a new one so
    a reader always sees a complete model.
    """

    def __init__(self, model, scaler, label_index, validation_accuracy=None,
                 n_samples=0, trained_at=None):
        self.model = model
        self.scaler = scaler
        self.label_index = label_index
        self.validation_accuracy = validation_accuracy
        self.n_samples = n_samples
        self.trained_at = trained_at if trained_at is not None else time.time()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    @classmethod
    def fit(cls, samples, label_index=None, epochs=EPOCHS, batch_size=BATCH_SIZE,
            val_fraction=VAL_FRACTION, random_state=RANDOM_STATE):
        """
        Train on a list of (features, label) pairs.

        Raises InsufficientDataError below MIN_TRAINING_SAMPLES and
        TrainingFailure for anything that goes wrong while fitting.
        """
        samples = list(samples)
        if len(samples) < MIN_TRAINING_SAMPLES:
            raise InsufficientDataError(
                f"Need at least {MIN_TRAINING_SAMPLES} training samples, have {len(samples)}")

        if label_index is None:
            label_index = LabelIndex()
            for _, label in samples:
                label_index.add(label)

        try:
            X = np.array([np.asarray(f, dtype=np.float64) for f, _ in samples])
            y = np.array([label_index.index_of(label) for _, label in samples])
        except (KeyError, ValueError) as e:
            raise TrainingFailure(f"Could not assemble training matrix: {e}") from e

        if X.ndim != 2:
            raise TrainingFailure("Training samples have inconsistent feature lengths")
        if not np.all(np.isfinite(X)):
            raise TrainingFailure("Training data contains non-finite values")

        try:
            X_train, X_val, y_train, y_val = _split(X, y, val_fraction, random_state)
            log.info("[TRAIN] %d samples (%d train / %d val), %d labels",
                     len(y), len(y_train), len(y_val), len(label_index))

            scaler = StandardScaler()
            X_train_scaled = scaler.fit_transform(X_train)

            if len(np.unique(y_train)) < 2:
                model = DummyClassifier(strategy='prior')
                model.fit(X_train_scaled, y_train)
            else:
                model = build_mlp(epochs=epochs, batch_size=batch_size,
                                  random_state=random_state)
                with warnings.catch_warnings():
                    warnings.simplefilter('ignore', ConvergenceWarning)
                    model.fit(X_train_scaled, y_train)
                if not np.isfinite(model.loss_):
                    raise TrainingFailure(f"Training diverged (loss={model.loss_})")
                log.info("[TRAIN] %d passes, final loss %.4f", model.n_iter_, model.loss_)
        except TrainingFailure:
            raise
        except (ValueError, MemoryError, FloatingPointError) as e:
            raise TrainingFailure(f"Training failed: {e}") from e

        val_acc = None
        if len(y_val):
            val_acc = float(accuracy_score(y_val, model.predict(scaler.transform(X_val))))
            log.info("[TRAIN] Validation accuracy: %.1f%%", val_acc * 100)

        return cls(model, scaler, label_index, validation_accuracy=val_acc, n_samples=len(y))

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    @property
    def n_features(self):
        return int(self.scaler.n_features_in_)

    def _probabilities(self, features):
        arr = np.asarray(features, dtype=np.float64).reshape(1, -1)
        if arr.shape[1] != self.n_features:
            raise ValueError(f"expected {self.n_features} features, got {arr.shape[1]}")

        proba = self.model.predict_proba(self.scaler.transform(arr))[0]
        # Columns follow model.classes_, which may miss labels absent from the train split.
        full = np.zeros(len(self.label_index))
        for col, cls in enumerate(self.model.classes_):
            full[int(cls)] = proba[col]
        return full

    def predict_proba(self, features):
        """Mapping label -> probability over every label in the LabelIndex."""
        if features is None:
            return None
        probs = self._probabilities(features)
        return {self.label_index.label_of(i): float(p) for i, p in enumerate(probs)}

    def predict(self, features):
        """Returns (label, confidence) or None when there is no hand."""
        if features is None:
            return None
        probs = self._probabilities(features)
        idx = int(np.argmax(probs))
        return self.label_index.label_of(idx), float(probs[idx])

    # ------------------------------------------------------------------
    # Weight payload
    # ------------------------------------------------------------------

    def get_weights(self):
        """Flat name -> array mapping of the network's layer weights."""
        weights = {}
        for i, (coef, intercept) in enumerate(zip(getattr(self.model, 'coefs_', []),
                                                  getattr(self.model, 'intercepts_', []))):
            weights[f'coef_{i}'] = coef
            weights[f'intercept_{i}'] = intercept
        return weights

    def set_weights(self, weights):
        """Load a get_weights() payload back into the network, checking every shape."""
        coefs = getattr(self.model, 'coefs_', [])
        intercepts = getattr(self.model, 'intercepts_', [])
        expected = 2 * len(coefs)
        if len(weights) != expected:
            raise MalformedMetadataError(
                f"weight payload has {len(weights)} arrays, model expects {expected}")

        new_coefs, new_intercepts = [], []
        for i, (coef, intercept) in enumerate(zip(coefs, intercepts)):
            try:
                c = np.asarray(weights[f'coef_{i}'], dtype=np.float64)
                b = np.asarray(weights[f'intercept_{i}'], dtype=np.float64)
            except KeyError as e:
                raise MalformedMetadataError(f"weight payload is missing {e}") from e
            if c.shape != coef.shape or b.shape != intercept.shape:
                raise MalformedMetadataError(f"layer {i} weight shape does not match the model")
            new_coefs.append(c)
            new_intercepts.append(b)

        if coefs:
            self.model.coefs_ = new_coefs
            self.model.intercepts_ = new_intercepts

    def summary(self):
        return {
            'model_type'         : type(self.model).__name__,
            'labels'             : self.label_index.labels,
            'num_classes'        : len(self.label_index),
            'n_samples'          : self.n_samples,
            'validation_accuracy': self.validation_accuracy,
            'trained_at'         : self.trained_at,
        }
