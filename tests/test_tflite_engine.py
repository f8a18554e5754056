"""
Tests for the TFLite Engine
============================
"""

from types import SimpleNamespace

import numpy as np
import pytest

import handsign.recognition.tflite_engine as tflite_engine
from handsign.recognition.tflite_engine import TFLiteEngine


class FakeInterpreter:
    """Mimics tf.lite.Interpreter for a (1, 42) → (1, 21) model."""

    instances = []

    def __init__(self, model_path=None, num_threads=None):
        self.model_path = model_path
        self.num_threads = num_threads
        self.tensors = {}
        FakeInterpreter.instances.append(self)

    def allocate_tensors(self):
        with open(self.model_path, "rb") as f:
            header = f.read(8)
        if b"TFL3" not in header:
            raise ValueError("Model provided has model identifier 'junk'")

    def get_input_details(self):
        return [{"index": 0, "shape": np.array([1, 42]), "dtype": np.float32}]

    def get_output_details(self):
        return [{"index": 7, "shape": np.array([1, 21]), "dtype": np.float32}]

    def set_tensor(self, index, value):
        self.tensors[index] = value

    def invoke(self):
        x = self.tensors[0]
        out = np.zeros((1, 21), dtype=np.float32)
        out[0, 0] = x[0, 0]
        self.tensors[7] = out

    def get_tensor(self, index):
        return self.tensors[index]


@pytest.fixture
def fake_tf(monkeypatch):
    FakeInterpreter.instances = []
    monkeypatch.setattr(tflite_engine, "tf",
                        SimpleNamespace(lite=SimpleNamespace(Interpreter=FakeInterpreter)),
                        raising=False)
    monkeypatch.setattr(tflite_engine, "TFLITE_AVAILABLE", True)


@pytest.fixture
def model_file(tmp_path):
    path = tmp_path / "letters.tflite"
    path.write_bytes(b"TFL3" + b"\0" * 16)
    return str(path)


class TestTFLiteEngine:
    """Test suite for the interpreter wrapper."""

    def test_shapes(self, fake_tf, model_file):
        engine = TFLiteEngine(model_file, num_threads=2)

        assert engine.input_size == 42
        assert engine.num_classes == 21
        assert engine.model_path == model_file
        assert FakeInterpreter.instances[0].num_threads == 2

    def test_predict(self, fake_tf, model_file):
        engine = TFLiteEngine(model_file)
        features = np.zeros(42)
        features[0] = 0.75

        scores = engine.predict(features)

        assert scores.shape == (21,)
        assert scores.dtype == np.float32
        assert scores[0] == 0.75
        assert FakeInterpreter.instances[0].tensors[0].shape == (1, 42)

    def test_predict_wrong_size(self, fake_tf, model_file):
        engine = TFLiteEngine(model_file)

        with pytest.raises(ValueError):
            engine.predict(np.zeros(40))

    def test_missing_file(self, fake_tf, tmp_path):
        with pytest.raises(FileNotFoundError):
            TFLiteEngine(str(tmp_path / "nope.tflite"))

    def test_unreadable_model(self, fake_tf, tmp_path):
        path = tmp_path / "junk.tflite"
        path.write_bytes(b"junk")

        with pytest.raises(RuntimeError):
            TFLiteEngine(str(path))

    def test_tensorflow_missing(self, monkeypatch, model_file):
        monkeypatch.setattr(tflite_engine, "TFLITE_AVAILABLE", False)

        with pytest.raises(RuntimeError):
            TFLiteEngine(model_file)

    def test_closed(self, fake_tf, model_file):
        engine = TFLiteEngine(model_file)
        engine.close()

        with pytest.raises(RuntimeError):
            engine.predict(np.zeros(42))
