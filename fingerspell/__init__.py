"""
fingerspell
===========
ASL fingerspelling from hand landmarks: rule-based letters, a trainable
classifier, sample collection and model persistence.
"""

from fingerspell.classifier import LandmarkClassifier
from fingerspell.errors import (
    FingerspellError, InsufficientDataError, MalformedMetadataError,
    MissingArtifactError, NoHandDetected, TrainingDiscarded, TrainingFailure,
    TrainingInProgressError,
)
from fingerspell.features import extract_features
from fingerspell.letter_rules import LETTER_RULES, LetterRules, hand_curvature
from fingerspell.recognizer import GestureRecognizer
from fingerspell.session import FingerspellSession, PredictionHistory, TrainingSession
from fingerspell.training_data import LabelIndex, TrainingDataStore

__version__ = '0.1.0'
