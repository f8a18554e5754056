"""
Shared domain types for the hand-sign recognizer.

Centralizes the label set, landmark point and classification result so the
encoder, classifier, analyzer and overlay agree on one definition.
"""

from enum import Enum
from typing import NamedTuple, Optional, Tuple
from dataclasses import dataclass, field


# =============================================================================
# Label Set
# =============================================================================

# Class order of the trained letter model. Output index i is LETTER_LABELS[i];
# reordering this tuple silently mislabels every prediction.
LETTER_LABELS: Tuple[str, ...] = (
    "A", "B", "C", "D", "E",
    "F", "G", "H", "I", "L",
    "M", "N", "O", "P", "R",
    "S", "T", "U", "V", "W", "Y",
)

NUM_LANDMARKS = 21
FEATURE_DIM = NUM_LANDMARKS * 2

DEFAULT_CONFIDENCE_THRESHOLD = 0.7


# =============================================================================
# Data Containers
# =============================================================================

class LandmarkPoint(NamedTuple):
    """One normalized hand keypoint as produced by the landmark detector."""
    x: float
    y: float


class ClassifierState(Enum):
    """Lifecycle of a letter classifier instance."""
    READY = "ready"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class ClassificationResult:
    """Outcome of classifying one landmark set.

    ``label`` is None when no letter cleared the confidence threshold or the
    classification could not run; ``confidence`` and ``index`` still describe
    the best candidate when scores were produced.
    """
    label: Optional[str]
    confidence: float = 0.0
    index: int = -1
    top: Tuple[Tuple[str, float], ...] = field(default_factory=tuple)
    reason: str = ""

    @property
    def accepted(self) -> bool:
        return self.label is not None

    @staticmethod
    def none(reason: str = "", confidence: float = 0.0, index: int = -1,
             top: Tuple[Tuple[str, float], ...] = ()) -> "ClassificationResult":
        """Create a "no result" outcome."""
        return ClassificationResult(
            label=None,
            confidence=confidence,
            index=index,
            top=tuple(top),
            reason=reason,
        )

    def __repr__(self):
        if self.label is None:
            return "ClassificationResult(none, reason=%r)" % self.reason
        return "ClassificationResult(%s, conf=%.2f)" % (self.label, self.confidence)
