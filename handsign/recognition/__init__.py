"""Letter recognition: landmark encoding and TFLite classification."""
from .feature_encoder import FeatureEncoder, encode_landmarks
from .letter_classifier import LetterClassifier, LetterClassifierConfig

__all__ = [
    "FeatureEncoder",
    "encode_landmarks",
    "LetterClassifier",
    "LetterClassifierConfig",
]
