"""
features.py
===========
Landmark → feature-vector conversion plus the small geometry helpers the
letter rules read back out of a feature vector.

Feature layout (73 floats):
  [0:63]   21 landmarks as (x - wrist.x, y - wrist.y, z)
  [63:73]  per finger (thumb, index, middle, ring, pinky):
           tip-to-base distance, wrist-to-tip angle (radians)
"""

import numpy as np

from fingerspell.config import (
    BASE_FEATURES, COORDS, FINGER_BASES, FINGER_TIPS, NUM_LANDMARKS, WRIST,
)


def _coords(landmark):
    """Pull (x, y, z) out of a tuple, a dict or a MediaPipe landmark."""
    if isinstance(landmark, dict):
        x, y, z = landmark.get('x'), landmark.get('y'), landmark.get('z')
    elif hasattr(landmark, 'x'):
        x, y, z = landmark.x, landmark.y, getattr(landmark, 'z', None)
    else:
        x, y = landmark[0], landmark[1]
        z = landmark[2] if len(landmark) > 2 else None
    return float(x), float(y), float(z or 0.0)


def landmarks_to_array(landmarks):
    """
    Returns a (21, 3) float array, or None when there is no complete hand.
    Accepts a list of landmarks or a MediaPipe NormalizedLandmarkList.
    """
    if landmarks is None:
        return None
    if hasattr(landmarks, 'landmark'):
        landmarks = landmarks.landmark
    if isinstance(landmarks, np.ndarray) and landmarks.ndim == 1:
        return None
    if len(landmarks) < NUM_LANDMARKS:
        return None
    return np.array([_coords(lm) for lm in list(landmarks)[:NUM_LANDMARKS]],
                    dtype=np.float64)


def extract_features(landmarks):
    """
    Convert one hand observation into the 73-element feature vector.

    Returns None for a missing or incomplete hand (< 21 landmarks). Only x
    and y are made wrist-relative, so the vector is unchanged by a global
    shift of the hand in the image plane.
    """
    pts = landmarks_to_array(landmarks)
    if pts is None:
        return None

    wrist = pts[WRIST]
    relative = pts.copy()
    relative[:, 0] -= wrist[0]
    relative[:, 1] -= wrist[1]

    finger_feats = []
    for tip, base in zip(FINGER_TIPS, FINGER_BASES):
        dist = np.hypot(pts[tip, 0] - pts[base, 0], pts[tip, 1] - pts[base, 1])
        angle = np.arctan2(pts[tip, 1] - wrist[1], pts[tip, 0] - wrist[0])
        if angle <= -np.pi:
            angle = np.pi
        finger_feats.extend([dist, angle])

    return np.concatenate([relative.flatten(), np.array(finger_feats)])


def is_usable(features):
    """Feature vectors shorter than the 63-coordinate block are unusable."""
    return features is not None and len(features) >= BASE_FEATURES


# ── Feature-vector geometry ─────────────────────────────────────────────────

def point(features, landmark_id):
    i = landmark_id * COORDS
    return np.array(features[i:i + COORDS], dtype=np.float64)


def finger_tip(features, finger):
    return point(features, FINGER_TIPS[finger])


def finger_distance(features, finger):
    """2D distance between a finger's tip and its base joint."""
    tip = point(features, FINGER_TIPS[finger])
    base = point(features, FINGER_BASES[finger])
    return float(np.hypot(tip[0] - base[0], tip[1] - base[1]))


def finger_angle(features, finger_a, finger_b):
    """Direction (radians) of the line from tip of finger_a to tip of finger_b."""
    a = finger_tip(features, finger_a)
    b = finger_tip(features, finger_b)
    return float(np.arctan2(b[1] - a[1], b[0] - a[0]))
