"""
Logging setup and letter event logging.
"""

import os
import logging
import logging.handlers
import time
import threading
from collections import Counter, deque
from functools import wraps

from handsign.core.events import Events


def setup_logging(level="INFO", log_file=None, max_size_mb=10, backup_count=3):
    """Configure console (and optional rotating file) logging."""
    console_format = "%(asctime)s  %(levelname)-5s  %(message)s"
    file_format = "%(asctime)s [%(levelname)-7s] %(name)-25s | %(message)s"
    date_format = "%H:%M:%S"

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    root_logger.handlers.clear()

    console = logging.StreamHandler()
    console.setLevel(root_logger.level)
    console.setFormatter(logging.Formatter(console_format, datefmt=date_format))
    root_logger.addHandler(console)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file,
            maxBytes=max_size_mb * 1024 * 1024,
            backupCount=backup_count,
        )
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(file_format, datefmt=date_format))
        root_logger.addHandler(file_handler)

    return root_logger


class ClassificationLogger:
    """Records accepted letters and counts rejections for the session.

    Fed by the event bus once ``attach`` is called; handlers may run on the
    detector's result thread.
    """

    def __init__(self, max_history=500):
        self.logger = logging.getLogger("letter_events")
        self._history = deque(maxlen=max_history)
        self._rejections = Counter()
        self._lock = threading.Lock()

    def attach(self, bus):
        """Subscribe to letter events on ``bus``."""
        bus.subscribe(Events.LETTER_DETECTED, self.log_letter)
        bus.subscribe(Events.LETTER_REJECTED, self.log_rejection)

    def detach(self, bus):
        bus.unsubscribe(Events.LETTER_DETECTED, self.log_letter)
        bus.unsubscribe(Events.LETTER_REJECTED, self.log_rejection)

    def log_letter(self, letter, confidence, latency_ms=None):
        """Log an accepted letter."""
        with self._lock:
            self._history.append({
                "timestamp": time.time(),
                "letter": letter,
                "confidence": confidence,
                "latency_ms": latency_ms,
            })
        self.logger.info(
            "Letter: %-3s | Confidence: %.2f | Latency: %s",
            letter,
            confidence,
            "%.1fms" % latency_ms if latency_ms is not None else "N/A",
        )

    def log_rejection(self, reason, confidence=0.0):
        """Count a frame whose hand produced no letter."""
        with self._lock:
            self._rejections[reason] += 1
        self.logger.debug("No letter (%s, best %.2f)", reason, confidence)

    def get_history(self, last_n=None):
        """Get recent letter history."""
        with self._lock:
            history = list(self._history)
        if last_n:
            return history[-last_n:]
        return history

    @property
    def total_letters(self):
        return len(self._history)

    @property
    def rejections(self):
        """Rejected frames per reason, e.g. {"low_confidence": 12}."""
        with self._lock:
            return dict(self._rejections)


def log_timing(func):
    """Decorator to log function execution time at DEBUG."""
    logger = logging.getLogger(func.__module__)

    @wraps(func)
    def wrapper(*args, **kwargs):
        start = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed = (time.perf_counter() - start) * 1000
        logger.debug("%s took %.2fms", func.__name__, elapsed)
        return result

    return wrapper
