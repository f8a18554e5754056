"""
TFLite inference engine for the letter model.

Loads a ``.tflite`` model exported from the training notebook and runs
single-sample inference on the CPU.

Requirements:
    - tensorflow (provides ``tf.lite.Interpreter``)
"""

import os
import logging
import numpy as np

logger = logging.getLogger(__name__)

try:
    import tensorflow as tf
    TFLITE_AVAILABLE = True
except ImportError:
    TFLITE_AVAILABLE = False
    logger.info("TensorFlow not available, TFLiteEngine disabled")


class TFLiteEngine:
    """Wraps a TFLite interpreter for single-batch inference.

    The interpreter is not reentrant; callers sharing one engine across
    threads must serialize ``predict``.
    """

    def __init__(self, model_path, num_threads=None):
        """Load a TFLite model.

        Args:
            model_path: Path to .tflite file
            num_threads: Interpreter CPU threads (None = TFLite default)

        Raises:
            FileNotFoundError: If the model file does not exist
            RuntimeError: If TensorFlow is missing or the model is unreadable
        """
        if not TFLITE_AVAILABLE:
            raise RuntimeError("TensorFlow is required to run the letter model.")

        if not os.path.isfile(model_path):
            raise FileNotFoundError("TFLite model not found: %s" % model_path)

        self._model_path = model_path
        try:
            self._interpreter = tf.lite.Interpreter(
                model_path=str(model_path), num_threads=num_threads
            )
            self._interpreter.allocate_tensors()
        except ValueError as e:
            raise RuntimeError("Failed to load TFLite model %s: %s" % (model_path, e)) from e

        self._input = self._interpreter.get_input_details()[0]
        self._output = self._interpreter.get_output_details()[0]

        logger.info("TFLite model loaded: %s (input %s, output %s)",
                    model_path, list(self._input["shape"]), list(self._output["shape"]))

    def predict(self, features):
        """Run inference on a single feature vector.

        Args:
            features: array-like with ``input_size`` elements

        Returns:
            np.ndarray of shape (num_classes,), float32, raw model output
        """
        if self._interpreter is None:
            raise RuntimeError("TFLite engine has been closed")

        features = np.asarray(features, dtype=np.float32).ravel()
        if features.size != self.input_size:
            raise ValueError("Expected %d input values, got %d" % (self.input_size, features.size))

        self._interpreter.set_tensor(
            self._input["index"],
            features.reshape(self._input["shape"]).astype(self._input["dtype"]),
        )
        self._interpreter.invoke()
        output = self._interpreter.get_tensor(self._output["index"])
        return np.array(output, dtype=np.float32).ravel()

    @property
    def input_size(self):
        """Number of input values per sample."""
        return int(np.prod(self._input["shape"][1:]))

    @property
    def num_classes(self):
        """Number of output classes."""
        return int(np.prod(self._output["shape"][1:]))

    @property
    def model_path(self):
        return self._model_path

    def close(self):
        """Release the interpreter."""
        self._interpreter = None
        logger.debug("TFLite engine closed: %s", self._model_path)
