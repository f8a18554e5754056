"""Shared types, errors, events and the frame analyzer."""
from .errors import ClassifierError, InvalidInputShape, ModelUnavailable, InferenceError
from .types import LandmarkPoint, ClassificationResult, ClassifierState, LETTER_LABELS

__all__ = [
    "ClassifierError",
    "InvalidInputShape",
    "ModelUnavailable",
    "InferenceError",
    "LandmarkPoint",
    "ClassificationResult",
    "ClassifierState",
    "LETTER_LABELS",
]
