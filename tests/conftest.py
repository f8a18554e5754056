"""
Shared fixtures: a scripted inference engine and landmark builders.
"""

import threading

import numpy as np
import pytest

from handsign.core.events import EventBus
from handsign.core.types import LETTER_LABELS, LandmarkPoint


class FakeEngine:
    """Stands in for TFLiteEngine; returns scripted scores and records inputs."""

    def __init__(self, scores=None, input_size=42, num_classes=len(LETTER_LABELS), error=None):
        self.input_size = input_size
        self.num_classes = num_classes
        self.scores = scores
        self.error = error
        self.inputs = []
        self.closed = False
        self._active = 0
        self._guard = threading.Lock()
        self.max_concurrency = 0

    def predict(self, features):
        with self._guard:
            self._active += 1
            self.max_concurrency = max(self.max_concurrency, self._active)
        try:
            self.inputs.append(np.array(features, copy=True))
            if self.error is not None:
                raise self.error
            if self.scores is None:
                return np.zeros(self.num_classes, dtype=np.float32)
            return np.asarray(self.scores, dtype=np.float32)
        finally:
            with self._guard:
                self._active -= 1

    def close(self):
        self.closed = True


def one_hot_scores(index, value=0.9, rest=0.0, size=len(LETTER_LABELS)):
    scores = [rest] * size
    scores[index] = value
    return scores


def make_points(n=21):
    """Distinct points exactly representable in float32."""
    return [LandmarkPoint(i / 64.0, (i + 21) / 64.0) for i in range(n)]


@pytest.fixture
def points():
    return make_points()


@pytest.fixture
def bus():
    bus = EventBus()
    bus.reset()
    yield bus
    bus.reset()
