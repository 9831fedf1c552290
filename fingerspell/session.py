"""
session.py
==========
Per-frame driver for the recognizer plus the state a front-end renders:
the active sample-capture session and the recent prediction history.

Nothing here draws anything; callers read the returned dicts.
"""

import logging
import re
import threading
import time
from collections import deque

from fingerspell.config import (
    DISPLAY_CONFIDENCE, HISTORY_CONFIDENCE, MAX_HISTORY, SAMPLES_PER_SESSION,
)
from fingerspell.errors import NoHandDetected
from fingerspell.features import extract_features
from fingerspell.recognizer import GestureRecognizer

log = logging.getLogger(__name__)

_LETTER = re.compile(r'^[A-Z]$')


class TrainingSession:
    """
    Captures samples for one letter at a time into the training store and
    stops by itself after `target` captures.

    Frames may arrive on several server threads at once; the lock keeps the
    count and the auto-stop exact so on_complete fires once per session.
    """

    def __init__(self, store, target=SAMPLES_PER_SESSION, on_complete=None):
        self.store = store
        self.target = target
        self.on_complete = on_complete
        self.current_label = ''
        self.sample_count = 0
        self._active = False
        self._lock = threading.Lock()

    def start_training(self, label):
        label = (label or '').strip().upper()
        if not _LETTER.match(label):
            raise ValueError("Please enter a single letter (A-Z) for the gesture label.")
        with self._lock:
            self._active = True
            self.current_label = label
            self.sample_count = 0
        log.info("[COLLECT] Started training for gesture: %s", label)

    def stop_training(self):
        with self._lock:
            self._stop()
        log.info("[COLLECT] Stopped training")

    def _stop(self):
        self._active = False
        self.current_label = ''

    def is_training_active(self):
        return self._active

    def capture_sample(self, features):
        """Store one sample for the active label. Returns True if it was kept."""
        if features is None:
            return False

        with self._lock:
            if not self._active:
                return False
            label = self.current_label
            if not self.store.append(features, label):
                return False
            self.sample_count += 1
            finished = self.sample_count >= self.target
            if finished:
                count = self.sample_count
                self._stop()
                self.sample_count = 0

        if finished:
            log.info("[COLLECT] Collected %d samples for '%s'", count, label)
            if self.on_complete:
                self.on_complete(label, count)
        return True

    def status(self):
        with self._lock:
            return {
                'active'      : self._active,
                'label'       : self.current_label,
                'sample_count': self.sample_count,
                'target'      : self.target,
            }


class PredictionHistory:
    """Last few confident predictions, without consecutive repeats."""

    def __init__(self, max_length=MAX_HISTORY, min_confidence=HISTORY_CONFIDENCE):
        self.min_confidence = min_confidence
        self._items = deque(maxlen=max_length)

    def add(self, letter, confidence):
        if confidence <= self.min_confidence:
            return False
        if self._items and self._items[-1]['letter'] == letter:
            return False
        self._items.append({
            'letter'    : letter,
            'confidence': float(confidence),
            'timestamp' : time.time(),
        })
        return True

    def items(self):
        return list(self._items)

    def spelled_word(self):
        return ''.join(item['letter'] for item in self._items)

    def clear(self):
        self._items.clear()

    def stats(self):
        n = len(self._items)
        return {
            'totalPredictions' : n,
            'averageConfidence': sum(i['confidence'] for i in self._items) / n if n else 0.0,
            'uniqueLetters'    : len({i['letter'] for i in self._items}),
        }

    def __len__(self):
        return len(self._items)


class FingerspellSession:
    """
    Front door for a live front-end: feed it one detection per frame.
    """

    def __init__(self, recognizer=None, on_capture_complete=None):
        self.recognizer = recognizer if recognizer is not None else GestureRecognizer()
        self.training = TrainingSession(self.recognizer.store, on_complete=on_capture_complete)
        self.history = PredictionHistory()
        self.current = None
        self.last_features = None

    def process_frame(self, landmarks):
        """
        Handle one detection result (21 landmarks, or None for no hand).
        Returns {'letter', 'confidence'} while a prediction is shown, else None.
        """
        features = extract_features(landmarks)
        if features is None:
            self.current = None
            self.last_features = None
            return None
        return self.process_features(features)

    def process_features(self, features):
        self.last_features = features
        prediction = self.recognizer.predict(features)

        if prediction and prediction[1] > DISPLAY_CONFIDENCE:
            letter, confidence = prediction
            self.current = {'letter': letter, 'confidence': float(confidence)}
            self.history.add(letter, confidence)
        else:
            self.current = None

        if self.training.is_training_active():
            self.training.capture_sample(features)

        return self.current

    def capture_current(self, label):
        """Store the most recent hand as one sample for label (single-shot capture)."""
        if self.last_features is None:
            raise NoHandDetected("No hand detected. Please show your hand to the camera.")
        label = (label or '').strip().upper()
        if not _LETTER.match(label):
            raise ValueError("Please enter a single letter (A-Z) for the gesture label.")
        return self.recognizer.add_training_data(self.last_features, label)

    def get_spelled_word(self):
        return self.history.spelled_word()

    def clear_history(self):
        self.history.clear()

    def get_training_stats(self):
        return self.recognizer.get_training_stats()

    def get_stats(self):
        stats = self.history.stats()
        stats['trainingDataStats'] = self.get_training_stats()
        return stats
