"""
config.py
=========
Tunable constants for the fingerspelling pipeline. Edit these to tune
thresholds and training; a few paths can be overridden from the environment.
"""

import os
from pathlib import Path

# ──────────────────────────────────────────────
# Landmarks / features
# ──────────────────────────────────────────────
NUM_LANDMARKS    = 21
COORDS           = 3
BASE_FEATURES    = NUM_LANDMARKS * COORDS          # 63 wrist-relative coords
FEATURE_DIM      = BASE_FEATURES + 5 * 2           # + distance & angle per finger

WRIST            = 0
FINGER_TIPS      = (4, 8, 12, 16, 20)              # thumb, index, middle, ring, pinky
FINGER_BASES     = (2, 5, 9, 13, 17)
FINGER_NAMES     = ('thumb', 'index', 'middle', 'ring', 'pinky')

# ──────────────────────────────────────────────
# Rule-based letters
# ──────────────────────────────────────────────
EXTENDED_DIST    = 0.20    # tip-to-base distance above this = extended
CLOSED_DIST      = 0.15    # below this = closed; in between is ambiguous
PARTIAL_DIST     = 0.15    # thumb / pinky extension used by L and Y
MOVED_DIST       = 0.10    # O: every finger has left the palm a little
RIGHT_ANGLE_TOL  = 0.5     # radians around pi/2
C_CURVATURE      = (0.3, 0.8)
O_CURVATURE      = (0.6, 0.9)
RULE_LOW_SCORE   = 0.1
RULE_MIN_CONF    = 0.5     # rule matches must beat this to count

# ──────────────────────────────────────────────
# Trainable classifier
# ──────────────────────────────────────────────
MIN_TRAINING_SAMPLES = 10
HIDDEN_LAYERS        = (128, 64)
DROPOUT_ALPHA        = 1e-3   # L2 penalty standing in for 0.3 dropout
EPOCHS               = 50
BATCH_SIZE           = 8
VAL_FRACTION         = 0.2
RANDOM_STATE         = 42

# ──────────────────────────────────────────────
# Session / UI-facing
# ──────────────────────────────────────────────
SAMPLES_PER_SESSION  = 50
DISPLAY_CONFIDENCE   = 0.3    # below this the current prediction is cleared
HISTORY_CONFIDENCE   = 0.6    # only confident predictions enter the history
MAX_HISTORY          = 10

# ──────────────────────────────────────────────
# Persistence
# ──────────────────────────────────────────────
MODEL_FILE     = 'model.pkl'
WEIGHTS_FILE   = 'weights.npz'
METADATA_FILE  = 'metadata.json'

MODEL_DIR   = Path(os.environ.get('FINGERSPELL_MODEL_DIR', 'gesture-model'))
REPORT_DIR  = Path(os.environ.get('FINGERSPELL_REPORT_DIR', 'reports'))

# ──────────────────────────────────────────────
# Server
# ──────────────────────────────────────────────
HOST = os.environ.get('FINGERSPELL_HOST', '127.0.0.1')
PORT = int(os.environ.get('FINGERSPELL_PORT', '5000'))
