"""
Frame analyzer: camera frame → hand landmarks → letter → UI.

Architecture:
    Camera -> SignAnalyzer.analyze -> HandDetector (async)
    -> SignAnalyzer.on_hands -> LetterClassifier -> UiDispatcher -> overlay

Detection results may arrive on the detector's own thread. Classification
runs synchronously inside ``on_hands`` on that thread; anything touching the
display is posted to the ``UiDispatcher`` and executed by the UI loop.
"""

import time
import queue
import logging
import threading
from typing import Callable, Optional, Sequence

from handsign.core.events import EventBus, Events
from handsign.core.types import ClassificationResult

logger = logging.getLogger(__name__)


class UiDispatcher:
    """Queue of callbacks executed on the UI thread.

    Producers on any thread call ``post``; the UI loop calls ``drain`` once
    per rendered frame.
    """

    def __init__(self):
        self._queue = queue.SimpleQueue()

    def post(self, callback: Callable, *args) -> None:
        self._queue.put((callback, args))

    def drain(self, max_items: Optional[int] = None) -> int:
        """Run pending callbacks in posting order.

        Returns:
            Number of callbacks executed
        """
        count = 0
        while max_items is None or count < max_items:
            try:
                callback, args = self._queue.get_nowait()
            except queue.Empty:
                break
            count += 1
            try:
                callback(*args)
            except Exception as e:
                logger.error("UI callback %s failed: %s",
                             getattr(callback, "__name__", callback), e)
        return count

    @property
    def pending(self) -> int:
        return self._queue.qsize()


class SignAnalyzer:
    """
    Per-frame orchestration of detection and letter classification.

    Args:
        detector: object with ``detect_async`` (live stream) or ``detect``;
            ``is_live_stream`` selects which one is used
        classifier: ``LetterClassifier`` (only ``classify_result`` and
            ``is_ready`` are used)
        overlay: ``LandmarkOverlay`` receiving the raw points for display
        on_letter: UI callback receiving each accepted letter
        dispatcher: where overlay and UI updates are posted
        event_bus: bus receiving letter, hand-lost and error events
    """

    LOG_EVERY_N_FRAMES = 30

    def __init__(
        self,
        detector,
        classifier,
        overlay=None,
        on_letter: Optional[Callable[[str], None]] = None,
        dispatcher: Optional[UiDispatcher] = None,
        event_bus: Optional[EventBus] = None,
    ):
        self._detector = detector
        self._classifier = classifier
        self._overlay = overlay
        self._on_letter = on_letter
        self._dispatcher = dispatcher or UiDispatcher()
        self._bus = event_bus or EventBus()

        self._live = bool(getattr(detector, "is_live_stream", False))
        if self._live:
            detector.set_listener(self.on_hands)

        self._lock = threading.Lock()
        self._frame_count = 0
        self._hand_present = False
        self._last_result: Optional[ClassificationResult] = None

        if not classifier.is_ready:
            logger.warning("Letter classifier unavailable; frames will produce no letters")
            self._bus.emit(Events.CLASSIFIER_UNAVAILABLE,
                           error=getattr(classifier, "load_error", None))

    @property
    def dispatcher(self) -> UiDispatcher:
        return self._dispatcher

    @property
    def frame_count(self) -> int:
        return self._frame_count

    @property
    def last_result(self) -> Optional[ClassificationResult]:
        with self._lock:
            return self._last_result

    def analyze(self, frame) -> None:
        """Submit one camera frame for hand detection.

        A frame that cannot be processed is logged and dropped; the next
        frame is a fresh attempt.
        """
        self._frame_count += 1
        if self._frame_count % self.LOG_EVERY_N_FRAMES == 0:
            logger.debug("Processing frame #%d", self._frame_count)

        try:
            rgb = frame.rgb
            if self._live:
                self._detector.detect_async(rgb, frame.timestamp_ms)
            else:
                self.on_hands(self._detector.detect(rgb, frame.timestamp_ms))
        except Exception as e:
            logger.error("Error analyzing frame #%d: %s", self._frame_count, e)
            self._bus.emit(Events.DETECTOR_ERROR, error=e)

    def on_hands(self, hands: Sequence) -> Optional[ClassificationResult]:
        """Handle one detection result (detector thread or caller's thread).

        Only the first hand is used. Its raw points go both to the overlay
        and, unmodified, to the classifier.

        Returns:
            The classification outcome, or None when no hand was detected
        """
        if not hands:
            if self._overlay is not None:
                self._dispatcher.post(self._overlay.clear)
            if self._hand_present:
                self._hand_present = False
                self._bus.emit(Events.HAND_LOST)
            return None

        hand = hands[0]
        points = list(getattr(hand, "points", hand))
        self._hand_present = True

        if self._overlay is not None:
            self._dispatcher.post(self._overlay.update_landmarks, points)

        start = time.perf_counter()
        result = self._classifier.classify_result(points)
        latency_ms = (time.perf_counter() - start) * 1000

        with self._lock:
            self._last_result = result

        if result.accepted:
            logger.debug("Letter detected: %s (%.3f)", result.label, result.confidence)
            self._bus.emit(Events.LETTER_DETECTED, letter=result.label,
                           confidence=result.confidence, latency_ms=latency_ms)
            if self._on_letter is not None:
                self._dispatcher.post(self._on_letter, result.label)
        else:
            self._bus.emit(Events.LETTER_REJECTED, reason=result.reason,
                           confidence=result.confidence)

        return result
