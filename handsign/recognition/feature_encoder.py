"""
Feature encoding: 21-point hand landmarks → letter model input.

Feature layout (42 dimensions):
    [2i]    x of landmark i
    [2i+1]  y of landmark i

The letter model was trained on raw normalized detector coordinates, so no
centering, scaling, mirroring or axis swap is applied here. Screen-space
transforms belong to the overlay only.
"""

from typing import Iterable, Sequence

import numpy as np

from handsign.core.errors import InvalidInputShape, InferenceError
from handsign.core.types import NUM_LANDMARKS, FEATURE_DIM


def _point_xy(point):
    if hasattr(point, "x") and hasattr(point, "y"):
        x, y = point.x, point.y
    else:
        try:
            x, y = point
        except (TypeError, ValueError):
            raise InvalidInputShape(2, len(point) if hasattr(point, "__len__") else 1,
                                    what="coordinates per landmark")
    try:
        return float(x), float(y)
    except (TypeError, ValueError) as e:
        raise InferenceError("Malformed landmark coordinate: %s" % e) from e


class FeatureEncoder:
    """Flattens one hand's landmarks into the 42-float model input."""

    num_landmarks = NUM_LANDMARKS
    feature_dim = FEATURE_DIM

    def encode(self, landmarks: Sequence) -> np.ndarray:
        """Convert 21 landmarks to a (42,) float32 vector.

        Args:
            landmarks: 21 points, each either an object with ``x``/``y``
                attributes (``LandmarkPoint``, MediaPipe landmarks) or an
                ``(x, y)`` pair.

        Returns:
            np.ndarray of shape (42,), dtype float32

        Raises:
            InvalidInputShape: if there are not exactly 21 points
                (a non-iterable counts as zero points)
            InferenceError: if a coordinate is not a number
        """
        try:
            points = list(landmarks)
        except TypeError:
            raise InvalidInputShape(NUM_LANDMARKS, 0)
        if len(points) != NUM_LANDMARKS:
            raise InvalidInputShape(NUM_LANDMARKS, len(points))

        features = np.empty(FEATURE_DIM, dtype=np.float32)
        for i, point in enumerate(points):
            features[2 * i], features[2 * i + 1] = _point_xy(point)
        return features

    def encode_batch(self, batch: Iterable[Sequence]) -> np.ndarray:
        """Encode several hands into an (N, 42) array."""
        rows = [self.encode(landmarks) for landmarks in batch]
        if not rows:
            return np.zeros((0, FEATURE_DIM), dtype=np.float32)
        return np.stack(rows)


_default_encoder = FeatureEncoder()


def encode_landmarks(landmarks: Sequence) -> np.ndarray:
    """Module-level shortcut for ``FeatureEncoder().encode``."""
    return _default_encoder.encode(landmarks)
