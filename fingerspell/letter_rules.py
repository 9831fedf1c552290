"""
letter_rules.py
===============
Hand-written geometric detectors for a handful of ASL letters.

Each detector takes a feature vector and returns a confidence in [0, 1]:
a fixed high score when its shape matches, RULE_LOW_SCORE otherwise, and 0
when the vector is missing the 63-coordinate landmark block.
"""

import numpy as np

from fingerspell.config import (
    C_CURVATURE, CLOSED_DIST, EXTENDED_DIST, FINGER_TIPS, MOVED_DIST,
    O_CURVATURE, PARTIAL_DIST, RIGHT_ANGLE_TOL, RULE_LOW_SCORE, RULE_MIN_CONF,
)
from fingerspell.features import finger_angle, finger_distance, is_usable, point

THUMB, INDEX, MIDDLE, RING, PINKY = range(5)


# ── Finger state helpers ────────────────────────────────────────────────────

def _extended(f, finger, threshold=EXTENDED_DIST):
    return finger_distance(f, finger) > threshold


def _closed(f, finger):
    return finger_distance(f, finger) < CLOSED_DIST


def _all_closed(f, *fingers):
    return all(_closed(f, finger) for finger in fingers)


def hand_curvature(features):
    """
    Mean bend at each finger's middle joint, in radians [0, pi].

    For every fingertip the angle between (base - mid) and (tip - mid) is
    wrapped to [0, pi]; mid is the joint just below the tip, base is landmark
    2 for the thumb and tip - 3 for the other fingers.
    """
    if not is_usable(features):
        return 0.0

    total = 0.0
    for tip_id in FINGER_TIPS:
        base_id = 2 if tip_id == 4 else tip_id - 3
        mid_id = tip_id - 1
        tip, mid, base = point(features, tip_id), point(features, mid_id), point(features, base_id)

        a1 = np.arctan2(base[1] - mid[1], base[0] - mid[0])
        a2 = np.arctan2(tip[1] - mid[1], tip[0] - mid[0])
        diff = abs(a2 - a1)
        total += min(diff, 2 * np.pi - diff)
    return float(total / len(FINGER_TIPS))


# ════════════════════════════════════════════════════════════════════════════
# Letter detectors
# ════════════════════════════════════════════════════════════════════════════

def detect_a(f):
    """A: closed fist, thumb resting alongside."""
    if not is_usable(f):
        return 0.0
    if _all_closed(f, INDEX, MIDDLE, RING, PINKY):
        return 0.8
    return RULE_LOW_SCORE


def detect_b(f):
    """B: four fingers straight up, thumb folded across the palm."""
    if not is_usable(f):
        return 0.0
    if (_extended(f, INDEX) and _extended(f, MIDDLE) and
            _extended(f, RING) and _extended(f, PINKY) and
            _closed(f, THUMB)):
        return 0.75
    return RULE_LOW_SCORE


def detect_c(f):
    """C: moderately curved hand."""
    if not is_usable(f):
        return 0.0
    low, high = C_CURVATURE
    if low < hand_curvature(f) < high:
        return 0.7
    return RULE_LOW_SCORE


def detect_d(f):
    """D: index up, the other three fingers closed."""
    if not is_usable(f):
        return 0.0
    if _extended(f, INDEX) and _all_closed(f, MIDDLE, RING, PINKY):
        return 0.75
    return RULE_LOW_SCORE


def detect_l(f):
    """L: index and thumb out at roughly a right angle, rest closed."""
    if not is_usable(f):
        return 0.0
    right_angle = abs(finger_angle(f, THUMB, INDEX) - np.pi / 2) < RIGHT_ANGLE_TOL
    if (_extended(f, INDEX) and _extended(f, THUMB, PARTIAL_DIST) and
            _all_closed(f, MIDDLE, RING, PINKY) and right_angle):
        return 0.8
    return RULE_LOW_SCORE


def detect_o(f):
    """O: strongly curved hand with every finger lifted off the palm."""
    if not is_usable(f):
        return 0.0
    low, high = O_CURVATURE
    fingers_moved = all(_extended(f, finger, MOVED_DIST)
                        for finger in (INDEX, MIDDLE, RING, PINKY))
    if low < hand_curvature(f) < high and fingers_moved:
        return 0.7
    return RULE_LOW_SCORE


def detect_y(f):
    """Y: thumb and pinky out, the middle three fingers closed."""
    if not is_usable(f):
        return 0.0
    if (_extended(f, THUMB, PARTIAL_DIST) and _extended(f, PINKY, PARTIAL_DIST) and
            _all_closed(f, INDEX, MIDDLE, RING)):
        return 0.75
    return RULE_LOW_SCORE


# Registry order is also the tie-break order.
LETTER_RULES = [
    ('A', detect_a),
    ('B', detect_b),
    ('C', detect_c),
    ('D', detect_d),
    ('L', detect_l),
    ('O', detect_o),
    ('Y', detect_y),
]


# ════════════════════════════════════════════════════════════════════════════
# LetterRules
# ════════════════════════════════════════════════════════════════════════════

class LetterRules:
    """
    Runs an ordered table of (letter, detector) rows over a feature vector.
    Pass a different table to add or drop letters.
    """

    def __init__(self, rules=None, min_confidence=RULE_MIN_CONF):
        self.rules = list(LETTER_RULES if rules is None else rules)
        self.min_confidence = min_confidence

    @property
    def letters(self):
        return [letter for letter, _ in self.rules]

    def scores(self, features):
        return {letter: detector(features) for letter, detector in self.rules}

    def classify_all(self, features):
        """
        Returns (letter, confidence) for the best detector scoring above
        min_confidence, or None. The first detector reaching the maximum wins.
        """
        if features is None:
            return None

        best_letter, best_conf = None, 0.0
        for letter, detector in self.rules:
            conf = detector(features)
            if conf > self.min_confidence and conf > best_conf:
                best_letter, best_conf = letter, conf

        if best_letter is None:
            return None
        return best_letter, best_conf
