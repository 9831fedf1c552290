"""
training_data.py
================
Append-only store of (feature vector, label) samples and the label index
the trainable classifier's output layer is ordered by.
"""

import logging
import threading
from collections import Counter

import numpy as np

from fingerspell.errors import MalformedMetadataError

log = logging.getLogger(__name__)


class LabelIndex:
    """Label <-> dense index, assigned in first-seen order and never reshuffled."""

    def __init__(self):
        self._forward = {}
        self._reverse = {}

    def add(self, label):
        if label not in self._forward:
            idx = len(self._forward)
            self._forward[label] = idx
            self._reverse[idx] = label
        return self._forward[label]

    def index_of(self, label):
        return self._forward[label]

    def label_of(self, index):
        return self._reverse[index]

    @property
    def forward(self):
        return dict(self._forward)

    @property
    def reverse(self):
        return dict(self._reverse)

    @property
    def labels(self):
        return [self._reverse[i] for i in range(len(self._reverse))]

    @classmethod
    def from_mapping(cls, mapping):
        """Rebuild from a {label: index} mapping, inverting it for the reverse side."""
        index = cls()
        for label, idx in mapping.items():
            if isinstance(idx, bool) or not isinstance(idx, (int, np.integer)):
                raise MalformedMetadataError(f"labelMap index for {label!r} is not an integer: {idx!r}")
            idx = int(idx)
            if idx in index._reverse:
                raise MalformedMetadataError(f"labelMap index {idx} is assigned twice")
            index._forward[label] = idx
            index._reverse[idx] = label
        if sorted(index._reverse) != list(range(len(index._reverse))):
            raise MalformedMetadataError("labelMap indices are not dense from 0")
        return index

    def __contains__(self, label):
        return label in self._forward

    def __len__(self):
        return len(self._forward)

    def __iter__(self):
        return iter(self.labels)

    def __eq__(self, other):
        return isinstance(other, LabelIndex) and self._forward == other._forward

    def __repr__(self):
        return f"LabelIndex({self._forward})"


class TrainingDataStore:
    """
    Owns the collected samples and their LabelIndex.

    Appends are allowed while a training run works on a snapshot().
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._features = []
        self._labels = []
        self.label_index = LabelIndex()

    def append(self, features, label):
        """
        Add a sample. Missing features or label is a silent no-op, as is a
        vector holding NaN or inf (it would poison every later fit).
        """
        if features is None or len(features) == 0 or not label:
            return False

        label = str(label).strip().upper()
        if not label:
            return False

        arr = np.array(features, dtype=np.float64)
        if not np.all(np.isfinite(arr)):
            log.warning("[DATA] Dropped non-finite sample for %s", label)
            return False

        with self._lock:
            self._features.append(arr)
            self._labels.append(label)
            self.label_index.add(label)
            total = len(self._labels)

        log.debug("[DATA] Added sample for %s. Total samples: %d", label, total)
        return True

    def stats(self):
        with self._lock:
            return dict(Counter(self._labels))

    def snapshot(self):
        """Consistent copy of (features, labels, label_index) for a training run."""
        with self._lock:
            index = LabelIndex.from_mapping(self.label_index.forward)
            return list(self._features), list(self._labels), index

    @property
    def labels(self):
        with self._lock:
            return list(self._labels)

    @property
    def features(self):
        with self._lock:
            return list(self._features)

    def clear(self):
        with self._lock:
            self._features = []
            self._labels = []
            self.label_index = LabelIndex()
        log.info("[DATA] Training data cleared")

    def __len__(self):
        with self._lock:
            return len(self._labels)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def serialize(self):
        """JSON-compatible dict with labelMap, trainingData and labels."""
        with self._lock:
            return {
                'labelMap'    : self.label_index.forward,
                'trainingData': [[float(v) for v in feat] for feat in self._features],
                'labels'      : list(self._labels),
            }

    def deserialize(self, data):
        """Replace the current contents with a serialize() payload."""
        if not isinstance(data, dict):
            raise MalformedMetadataError("metadata must be a JSON object")
        missing = [k for k in ('labelMap', 'trainingData', 'labels') if k not in data]
        if missing:
            raise MalformedMetadataError(f"metadata is missing field(s): {', '.join(missing)}")

        label_map = data['labelMap']
        raw_features = data['trainingData']
        labels = data['labels']
        if not isinstance(label_map, dict):
            raise MalformedMetadataError("labelMap must be an object")
        if not isinstance(raw_features, list) or not isinstance(labels, list):
            raise MalformedMetadataError("trainingData and labels must be arrays")
        if len(raw_features) != len(labels):
            raise MalformedMetadataError(
                f"trainingData has {len(raw_features)} rows but labels has {len(labels)}")

        index = LabelIndex.from_mapping(label_map)
        unknown = sorted(set(labels) - set(index.labels))
        if unknown:
            raise MalformedMetadataError(f"labels not present in labelMap: {unknown}")

        try:
            features = [np.array(row, dtype=np.float64) for row in raw_features]
        except (TypeError, ValueError) as e:
            raise MalformedMetadataError(f"trainingData is not numeric: {e}") from e
        if len({len(row) for row in features}) > 1:
            raise MalformedMetadataError("trainingData rows have different lengths")
        if not all(np.all(np.isfinite(row)) for row in features):
            raise MalformedMetadataError("trainingData contains NaN or infinite values")

        with self._lock:
            self._features = features
            self._labels = list(labels)
            self.label_index = index

        log.info("[DATA] Restored %d samples, %d labels", len(labels), len(index))

    @classmethod
    def from_serialized(cls, data):
        store = cls()
        store.deserialize(data)
        return store
