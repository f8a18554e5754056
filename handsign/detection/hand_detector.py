"""
Hand Detection Module - MediaPipe Tasks API
============================================

Wraps the MediaPipe HandLandmarker. In LIVE_STREAM mode frames are submitted
with ``detect_async`` and results arrive later on MediaPipe's own thread
through the registered listener.
"""

import logging
import threading
import urllib.request
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, NamedTuple, Optional

import numpy as np
import mediapipe as mp
from mediapipe.tasks import python
from mediapipe.tasks.python import vision

from handsign.core.types import LandmarkPoint
from handsign.utils.logger import log_timing

logger = logging.getLogger(__name__)

HAND_LANDMARKER_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/1/hand_landmarker.task"
DEFAULT_MODEL_PATH = Path(__file__).parent.parent.parent / "models" / "hand_landmarker.task"

RUNNING_MODES = ("IMAGE", "VIDEO", "LIVE_STREAM")


class Landmark(NamedTuple):
    """A single landmark point with normalized coordinates."""
    x: float  # 0.0 to 1.0, normalized by image width
    y: float  # 0.0 to 1.0, normalized by image height
    z: float  # Depth relative to wrist


@dataclass
class HandDetectorConfig:
    """Configuration for hand detector."""
    model_path: str = ""
    max_num_hands: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    min_presence_confidence: float = 0.5
    running_mode: str = "LIVE_STREAM"

    @classmethod
    def from_dict(cls, d: dict) -> "HandDetectorConfig":
        """Create config from dictionary."""
        running_mode = str(d.get("running_mode", "LIVE_STREAM")).upper()
        if running_mode not in RUNNING_MODES:
            logger.warning("Unknown running_mode %r, using LIVE_STREAM", running_mode)
            running_mode = "LIVE_STREAM"
        return cls(
            model_path=d.get("model_path", ""),
            max_num_hands=d.get("max_num_hands", 1),
            min_detection_confidence=d.get("min_detection_confidence", 0.5),
            min_tracking_confidence=d.get("min_tracking_confidence", 0.5),
            min_presence_confidence=d.get("min_presence_confidence", 0.5),
            running_mode=running_mode,
        )


@dataclass
class HandLandmarks:
    """Container for one detected hand."""
    landmarks: List[Landmark]
    handedness: str  # "Left" or "Right"
    confidence: float
    image_width: int = 0
    image_height: int = 0

    @property
    def points(self) -> List[LandmarkPoint]:
        """Normalized (x, y) points in detector order, untransformed."""
        return [LandmarkPoint(lm.x, lm.y) for lm in self.landmarks]


def download_model(url: str, save_path: Path) -> bool:
    """Download the hand landmarker model if not present."""
    if save_path.exists():
        return True

    try:
        save_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Downloading hand landmarker model to %s...", save_path)
        urllib.request.urlretrieve(url, save_path)
        logger.info("Model download complete")
        return True
    except Exception as e:
        logger.error("Failed to download model: %s", e)
        return False


def hands_from_result(result, width: int, height: int) -> List[HandLandmarks]:
    """Convert a MediaPipe HandLandmarkerResult into HandLandmarks."""
    hands = []
    for i, hand_landmarks in enumerate(result.hand_landmarks):
        handedness = "Right"
        confidence = 0.0
        if result.handedness and len(result.handedness) > i:
            handedness = result.handedness[i][0].category_name
            confidence = result.handedness[i][0].score

        hands.append(HandLandmarks(
            landmarks=[Landmark(x=lm.x, y=lm.y, z=lm.z) for lm in hand_landmarks],
            handedness=handedness,
            confidence=confidence,
            image_width=width,
            image_height=height,
        ))
    return hands


class HandDetector:
    """
    Hand landmark detector using MediaPipe Tasks (HandLandmarker).

    Example (live stream):
        >>> detector = HandDetector(HandDetectorConfig(), listener=on_hands)
        >>> detector.start()
        >>> detector.detect_async(rgb_image, timestamp_ms)   # on_hands(...) fires later
        >>> detector.stop()
    """

    def __init__(self, config: Optional[HandDetectorConfig] = None,
                 listener: Optional[Callable[[List[HandLandmarks]], None]] = None):
        self.config = config or HandDetectorConfig()
        self._listener = listener
        self._landmarker: Optional[vision.HandLandmarker] = None
        self._frame_timestamp = 0
        self._ts_lock = threading.Lock()

    def set_listener(self, listener: Callable[[List[HandLandmarks]], None]) -> None:
        """Set the callback receiving LIVE_STREAM results."""
        self._listener = listener

    def start(self) -> bool:
        """Initialize the hand landmarker."""
        try:
            model_path = self.config.model_path or str(DEFAULT_MODEL_PATH)

            if not Path(model_path).exists():
                if not download_model(HAND_LANDMARKER_MODEL_URL, Path(model_path)):
                    logger.error("Could not download hand landmarker model")
                    return False

            running_mode = getattr(vision.RunningMode, self.config.running_mode)

            options = vision.HandLandmarkerOptions(
                base_options=python.BaseOptions(model_asset_path=model_path),
                running_mode=running_mode,
                num_hands=self.config.max_num_hands,
                min_hand_detection_confidence=self.config.min_detection_confidence,
                min_hand_presence_confidence=self.config.min_presence_confidence,
                min_tracking_confidence=self.config.min_tracking_confidence,
                result_callback=self._on_result if self.config.running_mode == "LIVE_STREAM" else None,
            )

            self._landmarker = vision.HandLandmarker.create_from_options(options)
            logger.info("HandLandmarker initialized (%s, max hands %d) with model: %s",
                        self.config.running_mode, self.config.max_num_hands, model_path)
            return True

        except Exception as e:
            logger.error("Failed to initialize HandLandmarker: %s", e)
            return False

    def stop(self) -> None:
        """Release resources."""
        if self._landmarker:
            self._landmarker.close()
            self._landmarker = None
        logger.info("HandLandmarker stopped")

    @property
    def is_live_stream(self) -> bool:
        return self.config.running_mode == "LIVE_STREAM"

    def _next_timestamp(self, timestamp_ms: Optional[int]) -> int:
        # MediaPipe rejects timestamps that do not strictly increase
        with self._ts_lock:
            if timestamp_ms is None or timestamp_ms <= self._frame_timestamp:
                timestamp_ms = self._frame_timestamp + 33
            self._frame_timestamp = timestamp_ms
            return timestamp_ms

    @log_timing
    def detect(self, image: np.ndarray, timestamp_ms: Optional[int] = None) -> List[HandLandmarks]:
        """
        Detect hands synchronously (IMAGE / VIDEO mode).

        Args:
            image: RGB image as numpy array (H, W, 3)
            timestamp_ms: Timestamp in milliseconds (VIDEO mode)

        Returns:
            List of HandLandmarks for each detected hand
        """
        if self._landmarker is None:
            logger.warning("HandLandmarker not initialized. Call start() first.")
            return []

        height, width = image.shape[:2]
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image)

        if self.config.running_mode == "IMAGE":
            result = self._landmarker.detect(mp_image)
        else:
            result = self._landmarker.detect_for_video(mp_image, self._next_timestamp(timestamp_ms))

        return hands_from_result(result, width, height)

    def detect_async(self, image: np.ndarray, timestamp_ms: Optional[int] = None) -> None:
        """Submit a frame in LIVE_STREAM mode; results go to the listener."""
        if self._landmarker is None:
            logger.warning("HandLandmarker not initialized. Call start() first.")
            return

        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image)
        self._landmarker.detect_async(mp_image, self._next_timestamp(timestamp_ms))

    def _on_result(self, result, output_image, timestamp_ms: int) -> None:
        # Runs on MediaPipe's thread
        if self._listener is None:
            return
        try:
            self._listener(hands_from_result(result, output_image.width, output_image.height))
        except Exception as e:
            logger.error("Hand result listener failed at %dms: %s", timestamp_ms, e)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
