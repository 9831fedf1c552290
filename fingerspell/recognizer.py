"""
recognizer.py
=============
GestureRecognizer ties the letter rules, the trainable classifier and the
training store together.

Prediction priority order:
  1. Rule-based letters scoring above RULE_MIN_CONF
  2. The trained classifier, only when strictly more confident than (1)

The two confidences are not calibrated against each other; the comparison
is a plain "larger number wins".
"""

import logging
import threading
from concurrent.futures import Future

from fingerspell import persistence
from fingerspell.classifier import LandmarkClassifier
from fingerspell.config import MIN_TRAINING_SAMPLES
from fingerspell.errors import (
    FingerspellError, InsufficientDataError, TrainingDiscarded, TrainingFailure,
    TrainingInProgressError,
)
from fingerspell.letter_rules import LetterRules
from fingerspell.training_data import TrainingDataStore

log = logging.getLogger(__name__)


class GestureRecognizer:

    def __init__(self, store=None, rules=None, classifier_factory=None):
        self.store = store if store is not None else TrainingDataStore()
        self.rules = rules if rules is not None else LetterRules()
        self.classifier_factory = classifier_factory or LandmarkClassifier.fit

        # Only ever replaced by a single assignment.
        self.model = None

        self._train_lock = threading.Lock()
        self._training = False
        # Bumped whenever the store is cleared or replaced.
        self._generation = 0

    # ------------------------------------------------------------------
    # Prediction
    # ------------------------------------------------------------------

    def predict(self, features):
        """Returns (letter, confidence) or None."""
        if features is None:
            return None

        best = self.rules.classify_all(features)
        best_conf = best[1] if best else 0.0

        model = self.model
        if model is not None:
            try:
                learned = model.predict(features)
            except ValueError as e:
                log.warning("[PREDICT] ML prediction failed: %s", e)
            else:
                if learned is not None and learned[1] > best_conf:
                    best = learned

        return best

    # ------------------------------------------------------------------
    # Training data
    # ------------------------------------------------------------------

    def add_training_data(self, features, label):
        return self.store.append(features, label)

    def get_training_stats(self):
        return self.store.stats()

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    @property
    def is_training(self):
        return self._training

    def _check_enough_data(self):
        total = len(self.store)
        if total < MIN_TRAINING_SAMPLES:
            raise InsufficientDataError(
                f"Please collect at least {MIN_TRAINING_SAMPLES} training samples "
                f"before training the model (have {total}).")

    def _fit_snapshot(self):
        features, labels, label_index = self.store.snapshot()
        return self.classifier_factory(list(zip(features, labels)), label_index=label_index)

    def train(self):
        """Train synchronously and install the new model. Returns it."""
        return self.train_async().result()

    def train_async(self, on_complete=None, on_error=None):
        """
        Start a training run on a background thread over a snapshot of the
        current samples. Returns a Future resolving to the new classifier.

        Raises TrainingInProgressError if a run is already in flight and
        InsufficientDataError straight away when there is too little data.
        Samples appended while the run is going are not part of it; a
        clear() or load during the run discards its result with
        TrainingDiscarded.
        """
        with self._train_lock:
            if self._training:
                raise TrainingInProgressError("A training run is already in progress")
            self._check_enough_data()
            self._training = True
            generation = self._generation

        future = Future()
        future.set_running_or_notify_cancel()

        def _run():
            classifier, error = None, None
            try:
                classifier = self._fit_snapshot()
                with self._train_lock:
                    if self._generation != generation:
                        raise TrainingDiscarded(
                            "Training data was cleared or replaced during the run")
                    self.model = classifier
                log.info("[MODEL] Training completed")
            except FingerspellError as e:
                error = e
            except Exception as e:
                error = TrainingFailure(f"Training failed: {e}")
                error.__cause__ = e
            finally:
                with self._train_lock:
                    self._training = False

            if error is not None:
                log.error("[TRAIN] Training failed: %s", error)

            callback, outcome = (on_complete, classifier) if error is None else (on_error, error)
            try:
                if callback:
                    callback(outcome)
            except Exception:
                log.exception("[TRAIN] Training callback raised")
            finally:
                if error is None:
                    future.set_result(classifier)
                else:
                    future.set_exception(error)

        threading.Thread(target=_run, name='fingerspell-train', daemon=True).start()
        return future

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save_model(self, directory):
        if self.model is None:
            raise FingerspellError("No model to save")
        return persistence.save_model(directory, self.model, self.store)

    def load_model(self, model=None, weights=None, metadata=None):
        classifier, store = persistence.load_model(model, weights, metadata)
        with self._train_lock:
            self._generation += 1
            self.store.deserialize(store.serialize())
            self.model = classifier
        return classifier

    def load_model_dir(self, directory):
        paths = persistence.artifact_paths(directory)
        return self.load_model(paths['model'], paths['weights'], paths['metadata'])

    def clear(self):
        """Drop every sample, the label index and the installed model."""
        with self._train_lock:
            self._generation += 1
            self.store.clear()
            self.model = None

    def get_status(self):
        return {
            'is_trained'  : self.model is not None,
            'is_training' : self._training,
            'letters'     : self.rules.letters,
            'total_samples': len(self.store),
            'training_data': self.store.stats(),
            'model'       : self.model.summary() if self.model is not None else None,
            'model_type'  : 'sklearn MLP + rule-based letters'
                            if self.model is not None else 'rule-based letters only',
        }
