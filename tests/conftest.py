import numpy as np
import pytest

from fingerspell.features import extract_features
from fingerspell.recognizer import GestureRecognizer
from fingerspell.session import FingerspellSession
from fingerspell.training_data import TrainingDataStore

WRIST = (0.5, 0.8)
BASES = {
    'thumb' : (0.42, 0.72),
    'index' : (0.45, 0.60),
    'middle': (0.50, 0.58),
    'ring'  : (0.55, 0.60),
    'pinky' : (0.60, 0.63),
}
CHAINS = {
    'thumb' : (1, 2, 3, 4),
    'index' : (5, 6, 7, 8),
    'middle': (9, 10, 11, 12),
    'ring'  : (13, 14, 15, 16),
    'pinky' : (17, 18, 19, 20),
}
UP = (0.0, -1.0)


def _unit(d):
    d = np.asarray(d, dtype=float)
    return d / np.linalg.norm(d)


def make_hand(lengths, directions=None, bend=None, z=0.0):
    """
    Build 21 (x, y, z) landmarks.

    lengths: finger -> tip-to-base length. Fingers are straight along
    `directions[finger]` (default up) unless `bend` is given, in which case
    every finger goes up to its DIP joint and then kinks by `bend` radians.
    """
    directions = directions or {}
    pts = [None] * 21
    pts[0] = np.array(WRIST)
    for finger, (c0, c1, c2, c3) in CHAINS.items():
        base = np.array(BASES[finger])
        length = lengths[finger]
        if finger == 'thumb':
            pts[c0] = (pts[0] + base) / 2
            pts[c1] = base
            if bend is None:
                d = _unit(directions.get(finger, UP))
                pts[c2] = base + d * length * 0.5
                pts[c3] = base + d * length
            else:
                pts[c2] = base + np.array(UP) * length
                pts[c3] = pts[c2] + 0.06 * np.array([np.sin(bend), np.cos(bend)])
        else:
            pts[c0] = base
            if bend is None:
                d = _unit(directions.get(finger, UP))
                pts[c1] = base + d * length / 3
                pts[c2] = base + d * 2 * length / 3
                pts[c3] = base + d * length
            else:
                pts[c1] = base + np.array(UP) * length / 2
                pts[c2] = base + np.array(UP) * length
                pts[c3] = pts[c2] + 0.06 * np.array([np.sin(bend), np.cos(bend)])
    return [(float(p[0]), float(p[1]), z) for p in pts]


CLOSED = 0.08
OPEN = 0.3


def fist_hand():
    return make_hand({'thumb': 0.1, 'index': CLOSED, 'middle': CLOSED,
                      'ring': CLOSED, 'pinky': CLOSED},
                     directions={'thumb': (1, -1)})


def flat_hand():
    return make_hand({'thumb': 0.05, 'index': OPEN, 'middle': OPEN,
                      'ring': OPEN, 'pinky': OPEN})


def point_hand():
    return make_hand({'thumb': 0.05, 'index': OPEN, 'middle': CLOSED,
                      'ring': CLOSED, 'pinky': CLOSED})


def y_hand():
    return make_hand({'thumb': 0.25, 'index': CLOSED, 'middle': CLOSED,
                      'ring': CLOSED, 'pinky': 0.25},
                     directions={'thumb': (-1, 0)})


def l_hand():
    # Index points down and the thumb up, so thumb tip -> index tip is ~pi/2.
    return make_hand({'thumb': 0.25, 'index': OPEN, 'middle': CLOSED,
                      'ring': CLOSED, 'pinky': CLOSED},
                     directions={'index': (0, 1), 'thumb': (0, -1)})


def ambiguous_hand():
    return make_hand({f: 0.17 for f in BASES})


def curled_hand(bend, reach=0.1):
    return make_hand({f: reach for f in BASES}, bend=bend)


@pytest.fixture
def hands():
    return {
        'A': fist_hand(),
        'B': flat_hand(),
        'D': point_hand(),
        'L': l_hand(),
        'Y': y_hand(),
    }


def noisy_samples(hand, label, n, seed=0):
    rng = np.random.default_rng(seed)
    base = extract_features(hand)
    return [(base + rng.normal(0, 0.01, size=base.shape), label) for _ in range(n)]


@pytest.fixture
def two_label_samples():
    return noisy_samples(fist_hand(), 'A', 5, seed=1) + noisy_samples(flat_hand(), 'B', 5, seed=2)


@pytest.fixture
def filled_store(two_label_samples):
    store = TrainingDataStore()
    for features, label in two_label_samples:
        store.append(features, label)
    return store


@pytest.fixture
def recognizer(filled_store):
    return GestureRecognizer(store=filled_store)


@pytest.fixture
def session():
    return FingerspellSession()
