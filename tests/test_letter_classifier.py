"""
Tests for the Letter Classifier
================================
"""

import threading

import numpy as np
import pytest

from handsign.core.errors import InvalidInputShape, ModelUnavailable, InferenceError
from handsign.core.types import LETTER_LABELS, ClassifierState, DEFAULT_CONFIDENCE_THRESHOLD
from handsign.recognition.letter_classifier import LetterClassifier, LetterClassifierConfig

from conftest import FakeEngine, make_points, one_hot_scores


def make_classifier(scores=None, threshold=0.7, **engine_kwargs):
    engine = FakeEngine(scores=scores, **engine_kwargs)
    config = LetterClassifierConfig(confidence_threshold=threshold)
    return LetterClassifier(config, engine=engine), engine


class TestLetterClassifierConfig:
    """Test suite for classifier configuration."""

    def test_defaults(self):
        config = LetterClassifierConfig()

        assert config.labels == LETTER_LABELS
        assert config.confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD == 0.7
        assert config.apply_softmax is False
        assert config.top_k == 3

    def test_label_set_order(self):
        """Label order matches the trained model's classes."""
        assert len(LETTER_LABELS) == 21
        assert LETTER_LABELS[0] == "A"
        assert LETTER_LABELS[9] == "L"
        assert LETTER_LABELS[-1] == "Y"
        assert "J" not in LETTER_LABELS and "Z" not in LETTER_LABELS

    def test_from_dict(self):
        config = LetterClassifierConfig.from_dict({
            "model_path": "some/model.tflite",
            "confidence_threshold": 0.3,
            "apply_softmax": True,
            "top_k": 5,
        })

        assert config.model_path == "some/model.tflite"
        assert config.confidence_threshold == 0.3
        assert config.apply_softmax is True
        assert config.top_k == 5
        assert config.labels == LETTER_LABELS

    def test_from_dict_custom_labels(self):
        config = LetterClassifierConfig.from_dict({"labels": ["X", "Y"]})
        assert config.labels == ("X", "Y")

    @pytest.mark.parametrize("key", ["confidence_threshold", "top_k", "apply_softmax"])
    def test_from_dict_empty_values_use_defaults(self, key):
        """A key present in YAML but left empty falls back to its default."""
        config = LetterClassifierConfig.from_dict({key: None})

        assert config.confidence_threshold == DEFAULT_CONFIDENCE_THRESHOLD
        assert config.top_k == 3
        assert config.apply_softmax is False

    def test_duplicate_labels_rejected(self):
        with pytest.raises(ValueError):
            LetterClassifierConfig(labels=("A", "B", "A"))

    def test_empty_labels_rejected(self):
        with pytest.raises(ValueError):
            LetterClassifierConfig(labels=())


class TestSelection:
    """Argmax, tie-break and threshold on score vectors."""

    def test_unique_max_above_threshold(self):
        """The label at the argmax index is returned."""
        classifier, _ = make_classifier(one_hot_scores(4, 0.95))

        result = classifier.evaluate(make_points())

        assert result.accepted
        assert result.label == "E"
        assert result.index == 4
        assert result.confidence == pytest.approx(0.95)

    def test_scenario_first_label(self):
        """[0.9, 0.05, 0, ...] at threshold 0.7 → "A"."""
        scores = [0.9, 0.05] + [0.0] * 19
        classifier, _ = make_classifier(scores, threshold=0.7)

        assert classifier.classify(make_points()) == "A"

    def test_scenario_tie_breaks_to_lowest_index(self):
        """[0.5, 0.5, 0, ...] at threshold 0.3 → label at index 0."""
        scores = [0.5, 0.5] + [0.0] * 19
        classifier, _ = make_classifier(scores, threshold=0.3)

        assert classifier.classify(make_points()) == "A"

    def test_tie_is_deterministic(self):
        """Repeated calls with a tie always pick the lower index."""
        scores = [0.0] * 21
        scores[7] = scores[12] = scores[20] = 0.8
        classifier, _ = make_classifier(scores)

        letters = {classifier.classify(make_points()) for _ in range(25)}

        assert letters == {LETTER_LABELS[7]}

    def test_scenario_low_confidence(self):
        """Max 0.2 at threshold 0.7 → no result."""
        classifier, _ = make_classifier(one_hot_scores(3, 0.2))

        result = classifier.classify_result(make_points())

        assert classifier.classify(make_points()) is None
        assert not result.accepted
        assert result.reason == "low_confidence"
        assert result.index == 3
        assert result.confidence == pytest.approx(0.2)

    @pytest.mark.parametrize("index", [0, 10, 20])
    def test_max_equal_to_threshold_rejected(self, index):
        """A score must be strictly greater than the threshold."""
        classifier, _ = make_classifier(one_hot_scores(index, 0.5), threshold=0.5)

        assert classifier.classify(make_points()) is None

    def test_select_directly(self):
        classifier, _ = make_classifier()

        result = classifier.select(one_hot_scores(19, 0.99))

        assert result.label == "W"

    def test_select_wrong_length(self):
        classifier, _ = make_classifier()

        with pytest.raises(InferenceError):
            classifier.select([0.9, 0.1])

    def test_top_candidates(self):
        """Diagnostics list the best candidates, ties in index order."""
        scores = [0.0] * 21
        scores[2], scores[5], scores[1] = 0.6, 0.3, 0.3
        classifier, _ = make_classifier(scores, threshold=0.5)

        result = classifier.evaluate(make_points())

        assert [label for label, _ in result.top] == ["C", "B", "F"]

    def test_softmax_applied_to_logits(self):
        """With apply_softmax the gate sees probabilities, not logits."""
        logits = [0.0] * 21
        logits[8] = 10.0
        engine = FakeEngine(scores=logits)
        config = LetterClassifierConfig(apply_softmax=True)
        classifier = LetterClassifier(config, engine=engine)

        scores = classifier.predict_scores(np.zeros(42))
        result = classifier.evaluate(make_points())

        assert scores.sum() == pytest.approx(1.0, abs=1e-5)
        assert result.label == "I"
        assert result.confidence < 1.0


class TestInference:
    """Model invocation and error handling."""

    def test_engine_receives_raw_features(self):
        """The model sees x0, y0, x1, y1... with no transform."""
        classifier, engine = make_classifier(one_hot_scores(0))
        pts = make_points()

        classifier.classify(pts)

        assert len(engine.inputs) == 1
        expected = np.array([c for p in pts for c in (p.x, p.y)], dtype=np.float32)
        np.testing.assert_array_equal(engine.inputs[0], expected)

    def test_wrong_landmark_count(self):
        """Strict call raises; graceful call returns no result."""
        classifier, engine = make_classifier(one_hot_scores(0))

        with pytest.raises(InvalidInputShape):
            classifier.evaluate(make_points(20))
        result = classifier.classify_result(make_points(22))

        assert result.label is None
        assert result.reason == "invalid_input"
        assert engine.inputs == []

    @pytest.mark.parametrize("landmarks", [None, 7, 0.5])
    def test_non_iterable_landmarks(self, landmarks):
        """Anything that is not a point sequence gives no result."""
        classifier, engine = make_classifier(one_hot_scores(0))

        with pytest.raises(InvalidInputShape):
            classifier.evaluate(landmarks)
        result = classifier.classify_result(landmarks)

        assert classifier.classify(landmarks) is None
        assert result.reason == "invalid_input"
        assert engine.inputs == []

    def test_malformed_landmarks(self):
        """A non-numeric coordinate is an inference error, not a crash."""
        classifier, engine = make_classifier(one_hot_scores(0))
        pts = make_points()
        pts[4] = (None, 0.5)

        result = classifier.classify_result(pts)

        assert result.label is None
        assert result.reason == "inference_error"
        assert engine.inputs == []

    def test_wrong_feature_length(self):
        classifier, _ = make_classifier()

        with pytest.raises(InvalidInputShape):
            classifier.predict_scores(np.zeros(41))

    def test_engine_failure_is_inference_error(self):
        classifier, _ = make_classifier(error=RuntimeError("tensor arena exhausted"))

        with pytest.raises(InferenceError):
            classifier.evaluate(make_points())
        result = classifier.classify_result(make_points())

        assert result.label is None
        assert result.reason == "inference_error"

    def test_inference_failure_is_local_to_call(self):
        """A failed call does not affect the next one."""
        classifier, engine = make_classifier(one_hot_scores(1), error=ValueError("bad buffer"))

        assert classifier.classify(make_points()) is None
        engine.error = None

        assert classifier.classify(make_points()) == "B"
        assert classifier.state is ClassifierState.READY

    def test_wrong_output_size(self):
        classifier, _ = make_classifier(scores=[0.9] * 5)

        with pytest.raises(InferenceError):
            classifier.evaluate(make_points())
        assert classifier.classify(make_points()) is None

    def test_non_finite_scores(self):
        scores = one_hot_scores(0)
        scores[3] = float("nan")
        classifier, _ = make_classifier(scores)

        with pytest.raises(InferenceError):
            classifier.evaluate(make_points())
        assert classifier.classify(make_points()) is None

    def test_calls_are_serialized(self):
        """Concurrent callers never enter the engine at the same time."""
        classifier, engine = make_classifier(one_hot_scores(6))
        letters = []

        def worker():
            for _ in range(50):
                letters.append(classifier.classify(make_points()))

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert engine.max_concurrency == 1
        assert set(letters) == {"G"}
        assert len(letters) == 200


class TestLifecycle:
    """READY / UNAVAILABLE states."""

    def test_ready_with_engine(self):
        classifier, _ = make_classifier()

        assert classifier.state is ClassifierState.READY
        assert classifier.is_ready
        assert classifier.load_error is None

    def test_missing_model_is_unavailable(self, tmp_path):
        """A missing model file never raises from the constructor."""
        config = LetterClassifierConfig(model_path=str(tmp_path / "missing.tflite"))

        classifier = LetterClassifier(config)

        assert classifier.state is ClassifierState.UNAVAILABLE
        assert isinstance(classifier.load_error, ModelUnavailable)
        for _ in range(3):
            assert classifier.classify(make_points()) is None

    def test_corrupt_model_is_unavailable(self, tmp_path):
        model = tmp_path / "corrupt.tflite"
        model.write_bytes(b"not a flatbuffer")

        classifier = LetterClassifier(LetterClassifierConfig(model_path=str(model)))

        assert classifier.state is ClassifierState.UNAVAILABLE
        assert classifier.classify(make_points()) is None

    def test_unavailable_strict_call_raises(self, tmp_path):
        config = LetterClassifierConfig(model_path=str(tmp_path / "missing.tflite"))
        classifier = LetterClassifier(config)

        with pytest.raises(ModelUnavailable):
            classifier.evaluate(make_points())

        result = classifier.classify_result(make_points())
        assert result.reason == "model_unavailable"

    @pytest.mark.parametrize("kwargs", [
        {"input_size": 63},
        {"num_classes": 9},
    ])
    def test_mismatched_model_is_unavailable(self, kwargs):
        """A model whose I/O does not fit 42 features / 21 labels is rejected."""
        engine = FakeEngine(scores=one_hot_scores(0), **kwargs)

        classifier = LetterClassifier(LetterClassifierConfig(), engine=engine)

        assert classifier.state is ClassifierState.UNAVAILABLE
        assert classifier.classify(make_points()) is None
        assert engine.inputs == []

    def test_unavailable_never_retries_load(self, tmp_path, monkeypatch):
        """After a failed load the engine is not constructed again."""
        import handsign.recognition.tflite_engine as tflite_engine

        attempts = []

        class CountingEngine:
            def __init__(self, *args, **kwargs):
                attempts.append(args)
                raise RuntimeError("no interpreter")

        monkeypatch.setattr(tflite_engine, "TFLiteEngine", CountingEngine)
        classifier = LetterClassifier(LetterClassifierConfig(model_path=str(tmp_path / "m.tflite")))

        for _ in range(5):
            classifier.classify(make_points())

        assert len(attempts) == 1
        assert classifier.state is ClassifierState.UNAVAILABLE

    def test_close_releases_engine(self):
        classifier, engine = make_classifier(one_hot_scores(0))

        classifier.close()

        assert engine.closed
        assert classifier.state is ClassifierState.UNAVAILABLE
        assert classifier.classify(make_points()) is None

    def test_context_manager(self):
        engine = FakeEngine(scores=one_hot_scores(0))
        with LetterClassifier(LetterClassifierConfig(), engine=engine) as classifier:
            assert classifier.classify(make_points()) == "A"
        assert engine.closed
