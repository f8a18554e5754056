"""
Error taxonomy for the classification path.

None of these are fatal to the application: the frame analyzer turns every
one of them into "no letter this frame".
"""


class ClassifierError(Exception):
    """Base class for encoder and classifier failures."""


class InvalidInputShape(ClassifierError, ValueError):
    """Landmark count or feature vector length does not match the model."""

    def __init__(self, expected: int, actual: int, what: str = "landmarks"):
        self.expected = expected
        self.actual = actual
        super().__init__("Expected %d %s, got %d" % (expected, what, actual))


class ModelUnavailable(ClassifierError, RuntimeError):
    """The inference engine could not be initialized for this instance."""


class InferenceError(ClassifierError, RuntimeError):
    """A single inference call could not be completed."""
