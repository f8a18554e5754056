"""
Letter Classifier
==================

TFLite-backed hand-sign letter recognition from 21 hand landmarks.

Pipeline per call:
    landmarks → FeatureEncoder (42 floats) → TFLiteEngine (21 scores)
    → argmax (lowest index wins ties) → confidence gate → letter or None

An instance is either READY (model loaded) or UNAVAILABLE (load failed or
closed). An UNAVAILABLE instance never retries the load; every graceful
classification call returns "no result".
"""

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence, Tuple

import numpy as np

from handsign.core.errors import InvalidInputShape, ModelUnavailable, InferenceError
from handsign.core.types import (
    LETTER_LABELS,
    FEATURE_DIM,
    DEFAULT_CONFIDENCE_THRESHOLD,
    ClassificationResult,
    ClassifierState,
)
from handsign.recognition.feature_encoder import FeatureEncoder

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent / "models" / "letter_classifier.tflite"


@dataclass
class LetterClassifierConfig:
    """Letter classifier configuration."""
    model_path: str = str(DEFAULT_MODEL_PATH)
    # Must match the class order used at training time
    labels: Tuple[str, ...] = LETTER_LABELS
    # A letter is accepted only if its score is strictly greater than this
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    # Set when the model outputs logits instead of probabilities
    apply_softmax: bool = False
    num_threads: Optional[int] = None
    # Candidates kept on each result for diagnostics
    top_k: int = 3

    def __post_init__(self):
        self.labels = tuple(str(label) for label in self.labels)
        if not self.labels:
            raise ValueError("Label set must not be empty")
        if len(set(self.labels)) != len(self.labels):
            raise ValueError("Label set contains duplicates: %s" % (self.labels,))
        if not 0.0 <= self.confidence_threshold <= 1.0:
            logger.warning("confidence_threshold %.3f is outside [0, 1]",
                           self.confidence_threshold)

    @classmethod
    def from_dict(cls, config: dict) -> "LetterClassifierConfig":
        """Create config from dictionary. Keys left empty in YAML take the default."""
        threshold = config.get("confidence_threshold")
        top_k = config.get("top_k")
        return cls(
            model_path=config.get("model_path") or str(DEFAULT_MODEL_PATH),
            labels=tuple(config.get("labels") or LETTER_LABELS),
            confidence_threshold=float(threshold) if threshold is not None else DEFAULT_CONFIDENCE_THRESHOLD,
            apply_softmax=bool(config.get("apply_softmax") or False),
            num_threads=config.get("num_threads"),
            top_k=int(top_k) if top_k is not None else 3,
        )


def _softmax(logits: np.ndarray) -> np.ndarray:
    exp_l = np.exp(logits - np.max(logits))
    return exp_l / exp_l.sum()


class LetterClassifier:
    """
    Hand-sign letter classifier over a pre-trained TFLite model.

    Two call styles are offered:

    - strict: ``predict_scores`` / ``evaluate`` raise ``InvalidInputShape``,
      ``ModelUnavailable`` or ``InferenceError``;
    - graceful: ``classify`` / ``classify_result`` never raise for those and
      report "no result" instead, for use inside the frame loop.

    Example:
        >>> classifier = LetterClassifier(LetterClassifierConfig(model_path="models/letters.tflite"))
        >>> letter = classifier.classify(points)
        >>> if letter is not None:
        ...     print("Detected", letter)
    """

    def __init__(self, config: Optional[LetterClassifierConfig] = None, engine=None):
        """
        Args:
            config: Classifier settings
            engine: Pre-built inference engine exposing ``predict``,
                ``input_size`` and ``num_classes``. When omitted a
                ``TFLiteEngine`` is loaded from ``config.model_path``.
        """
        self.config = config or LetterClassifierConfig()
        self._labels = self.config.labels
        self._encoder = FeatureEncoder()
        self._lock = threading.Lock()
        self._engine = None
        self._load_error: Optional[ModelUnavailable] = None

        try:
            if engine is None:
                from handsign.recognition.tflite_engine import TFLiteEngine
                engine = TFLiteEngine(self.config.model_path, num_threads=self.config.num_threads)
            self._check_engine(engine)
        except ModelUnavailable as e:
            self._load_error = e
        except Exception as e:
            self._load_error = ModelUnavailable("Letter model could not be loaded: %s" % e)
            self._load_error.__cause__ = e

        if self._load_error is not None:
            logger.error("Letter model unavailable: %s", self._load_error)
            return

        self._engine = engine
        logger.info("Letter model ready (%d classes): %s",
                    len(self._labels), ", ".join(self._labels))

    def _check_engine(self, engine) -> None:
        """Reject a model whose I/O does not fit 42 features → one score per label."""
        if engine.input_size != FEATURE_DIM:
            raise ModelUnavailable(
                "Model expects %d inputs, encoder produces %d" % (engine.input_size, FEATURE_DIM))
        if engine.num_classes != len(self._labels):
            raise ModelUnavailable(
                "Model has %d outputs but label set has %d entries"
                % (engine.num_classes, len(self._labels)))

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> ClassifierState:
        return ClassifierState.READY if self._engine is not None else ClassifierState.UNAVAILABLE

    @property
    def is_ready(self) -> bool:
        return self._engine is not None

    @property
    def load_error(self) -> Optional[ModelUnavailable]:
        """Why the model failed to load, if it did."""
        return self._load_error

    @property
    def labels(self) -> Tuple[str, ...]:
        return self._labels

    @property
    def threshold(self) -> float:
        return self.config.confidence_threshold

    # ------------------------------------------------------------------
    # Strict API
    # ------------------------------------------------------------------

    def predict_scores(self, features) -> np.ndarray:
        """Run the model on one feature vector.

        Args:
            features: 42 floats

        Returns:
            np.ndarray of shape (num_labels,), one score per label

        Raises:
            ModelUnavailable: classifier is not READY
            InvalidInputShape: feature vector is not 42 long
            InferenceError: the engine failed or returned unusable scores
        """
        engine = self._engine
        if engine is None:
            raise ModelUnavailable("Letter model is not loaded") from self._load_error

        try:
            features = np.asarray(features, dtype=np.float32).ravel()
        except (TypeError, ValueError) as e:
            raise InferenceError("Malformed feature buffer: %s" % e) from e
        if features.size != FEATURE_DIM:
            raise InvalidInputShape(FEATURE_DIM, features.size, what="features")

        with self._lock:
            try:
                output = engine.predict(features)
            except Exception as e:
                raise InferenceError("Inference failed: %s" % e) from e

        scores = np.asarray(output, dtype=np.float32).ravel()
        if scores.size != len(self._labels):
            raise InferenceError(
                "Model returned %d scores for %d labels" % (scores.size, len(self._labels)))
        if not np.all(np.isfinite(scores)):
            raise InferenceError("Model returned non-finite scores")

        if self.config.apply_softmax:
            scores = _softmax(scores)
        return scores

    def select(self, scores: Sequence[float]) -> ClassificationResult:
        """Pick the best label from a score vector and apply the threshold.

        Ties on the maximum resolve to the lowest index.
        """
        scores = np.asarray(scores, dtype=np.float64).ravel()
        if scores.size != len(self._labels):
            raise InferenceError(
                "Got %d scores for %d labels" % (scores.size, len(self._labels)))

        # np.argmax returns the first occurrence of the maximum
        best = int(np.argmax(scores))
        confidence = float(scores[best])
        top = self._top_candidates(scores)

        if logger.isEnabledFor(logging.DEBUG):
            logger.debug("Top %d: %s", len(top),
                         ", ".join("%s(%.3f)" % (label, score) for label, score in top))

        if confidence > self.config.confidence_threshold:
            logger.debug("Accepting %s (%.3f)", self._labels[best], confidence)
            return ClassificationResult(
                label=self._labels[best],
                confidence=confidence,
                index=best,
                top=top,
            )

        logger.debug("Confidence too low: %.3f <= %.3f", confidence, self.config.confidence_threshold)
        return ClassificationResult.none(
            reason="low_confidence", confidence=confidence, index=best, top=top)

    def evaluate(self, landmarks: Sequence) -> ClassificationResult:
        """Encode, infer and select in one strict call."""
        features = self._encoder.encode(landmarks)
        return self.select(self.predict_scores(features))

    def _top_candidates(self, scores: np.ndarray) -> Tuple[Tuple[str, float], ...]:
        k = max(0, min(self.config.top_k, scores.size))
        # Stable sort keeps lower indices first among equal scores
        order = np.argsort(-scores, kind="stable")[:k]
        return tuple((self._labels[i], float(scores[i])) for i in order)

    # ------------------------------------------------------------------
    # Graceful API
    # ------------------------------------------------------------------

    def classify_result(self, landmarks: Sequence) -> ClassificationResult:
        """Like ``evaluate`` but reports failures as a "no result" outcome."""
        try:
            return self.evaluate(landmarks)
        except InvalidInputShape as e:
            logger.warning("Rejected landmarks: %s", e)
            return ClassificationResult.none(reason="invalid_input")
        except ModelUnavailable:
            return ClassificationResult.none(reason="model_unavailable")
        except InferenceError as e:
            logger.warning("Letter inference error: %s", e)
            return ClassificationResult.none(reason="inference_error")

    def classify(self, landmarks: Sequence) -> Optional[str]:
        """Return the detected letter, or None."""
        return self.classify_result(landmarks).label

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def close(self) -> None:
        """Release the engine. The instance is UNAVAILABLE afterwards."""
        with self._lock:
            engine, self._engine = self._engine, None
        if engine is not None and hasattr(engine, "close"):
            engine.close()
        if self._load_error is None:
            self._load_error = ModelUnavailable("Classifier has been closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
