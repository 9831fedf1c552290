"""
detector.py
===========
Adapter between MediaPipe's hand landmarker and the recognizer. MediaPipe
is optional (pip install fingerspell[camera]) and only imported on first use.
The `fingerspell predict` command runs photos through it.
"""

import logging
import os

import numpy as np

from fingerspell.config import NUM_LANDMARKS

log = logging.getLogger(__name__)

HAND_LANDMARKER_PATH = os.environ.get('FINGERSPELL_HAND_LANDMARKER', 'hand_landmarker.task')

_detector = None


def landmarks_from_hand(hand):
    """
    Convert one MediaPipe hand (list of NormalizedLandmark, or a
    NormalizedLandmarkList) into 21 (x, y, z) tuples, or None.
    """
    if hand is None:
        return None
    points = getattr(hand, 'landmark', hand)
    if len(points) != NUM_LANDMARKS:
        return None
    coords = [(float(lm.x), float(lm.y), float(getattr(lm, 'z', 0.0) or 0.0)) for lm in points]
    if not np.all(np.isfinite(coords)):
        return None
    return coords


def _get_detector(model_path=HAND_LANDMARKER_PATH):
    global _detector
    if _detector is not None:
        return _detector

    from mediapipe.tasks import python as mp_python
    from mediapipe.tasks.python import vision

    if not os.path.exists(model_path):
        raise FileNotFoundError(f"hand_landmarker.task not found at {model_path}")

    options = vision.HandLandmarkerOptions(
        base_options=mp_python.BaseOptions(model_asset_path=model_path),
        running_mode=vision.RunningMode.IMAGE,
        num_hands=1,
        min_hand_detection_confidence=0.5,
        min_hand_presence_confidence=0.5,
    )
    _detector = vision.HandLandmarker.create_from_options(options)
    log.info("[MEDIAPIPE] HandLandmarker initialised from %s", model_path)
    return _detector


def detect_landmarks(frame, detector=None):
    """
    Run the hand landmarker on a BGR frame. Returns 21 landmarks, or None
    when the frame is unusable or no hand is visible.
    """
    if not isinstance(frame, np.ndarray) or frame.ndim != 3 or frame.shape[2] != 3 or frame.size == 0:
        return None

    detector = detector or _get_detector()

    import mediapipe as mp
    rgb = np.ascontiguousarray(frame[:, :, ::-1])
    results = detector.detect(mp.Image(image_format=mp.ImageFormat.SRGB, data=rgb))
    if not results.hand_landmarks:
        return None
    return landmarks_from_hand(results.hand_landmarks[0])
