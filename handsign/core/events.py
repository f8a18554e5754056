"""
Event bus between the frame analyzer and the parts of the app that react to it.

The analyzer publishes what happened to each detection result (letter
accepted or rejected, hand lost, detector failure). The session letter log
and the application's status line subscribe; handlers run synchronously on
the publishing thread, which may be MediaPipe's result thread.

Usage:
    bus = EventBus()
    bus.subscribe(Events.LETTER_DETECTED, letter_log.on_letter_detected)
    bus.emit(Events.LETTER_DETECTED, letter="A", confidence=0.92, latency_ms=4.1)
"""

import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class Events:
    """Event names and the keyword arguments each one carries."""

    # letter, confidence, latency_ms
    LETTER_DETECTED = "letter_detected"
    # reason, confidence
    LETTER_REJECTED = "letter_rejected"
    # no arguments; first empty result after a hand was seen
    HAND_LOST = "hand_lost"
    # error: the classifier's ModelUnavailable
    CLASSIFIER_UNAVAILABLE = "classifier_unavailable"
    # error: exception raised while submitting a frame
    DETECTOR_ERROR = "detector_error"


class EventBus:
    """Process-wide publish/subscribe hub.

    Subscribers are called in registration order. A subscriber that raises
    is logged and does not stop the others or the publisher.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._handlers = {}
            cls._instance._lock = threading.Lock()
        return cls._instance

    def subscribe(self, event_name: str, handler: Callable) -> Callable:
        """Register ``handler(**kwargs)`` for ``event_name``.

        Returns:
            The handler, so it can be passed to ``unsubscribe`` later
        """
        with self._lock:
            self._handlers[event_name] = self._handlers.get(event_name, []) + [handler]
        return handler

    def unsubscribe(self, event_name: str, handler: Callable) -> None:
        with self._lock:
            remaining = [h for h in self._handlers.get(event_name, []) if h != handler]
            if remaining:
                self._handlers[event_name] = remaining
            else:
                self._handlers.pop(event_name, None)

    def emit(self, event_name: str, **kwargs) -> int:
        """Deliver an event to its subscribers.

        Returns:
            Number of subscribers that handled the event without raising
        """
        with self._lock:
            handlers = self._handlers.get(event_name, [])

        delivered = 0
        for handler in handlers:
            try:
                handler(**kwargs)
                delivered += 1
            except Exception as e:
                logger.error("Handler %s failed on '%s': %s",
                             getattr(handler, "__qualname__", handler), event_name, e)
        return delivered

    def has_subscribers(self, event_name: str) -> bool:
        with self._lock:
            return bool(self._handlers.get(event_name))

    def reset(self) -> None:
        """Drop every subscription (for testing)."""
        with self._lock:
            self._handlers = {}
