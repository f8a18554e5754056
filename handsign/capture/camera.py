"""
Camera Capture Module
======================

OpenCV camera capture with optional threaded latest-frame reads.

Frames are delivered exactly as the sensor produced them. Mirroring for a
selfie view is done by the overlay at draw time; flipping here would also
mirror the landmarks fed to the letter model.
"""

import cv2
import time
import threading
import logging
from dataclasses import dataclass
from typing import Optional, Tuple
import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class CameraConfig:
    """Camera configuration settings."""
    device_id: int = 0
    width: int = 640
    height: int = 480
    fps: int = 30
    buffer_size: int = 1  # Minimal buffering: keep only the latest frame
    threaded: bool = True
    warmup_frames: int = 5

    @classmethod
    def from_dict(cls, config: dict) -> "CameraConfig":
        """Create config from dictionary (YAML parsed)."""
        return cls(
            device_id=config.get("device_id", 0),
            width=config.get("width", 640),
            height=config.get("height", 480),
            fps=config.get("fps", 30),
            buffer_size=config.get("buffer_size", 1),
            threaded=config.get("threaded", True),
            warmup_frames=config.get("warmup_frames", 5),
        )


@dataclass
class Frame:
    """Container for captured frame with metadata."""
    image: np.ndarray
    timestamp: float
    frame_number: int

    @property
    def rgb(self) -> np.ndarray:
        """Convert BGR to RGB."""
        return cv2.cvtColor(self.image, cv2.COLOR_BGR2RGB)

    @property
    def timestamp_ms(self) -> int:
        return int(self.timestamp * 1000)


class Camera:
    """
    Camera capture with optional background thread.

    In threaded mode ``read`` returns the most recent frame and never
    blocks on the device, mirroring a keep-only-latest backpressure policy.

    Example:
        >>> with Camera(CameraConfig()) as camera:
        ...     frame = camera.read()
    """

    def __init__(self, config: Optional[CameraConfig] = None):
        self.config = config or CameraConfig()
        self._cap: Optional[cv2.VideoCapture] = None
        self._frame_number = 0
        self._running = False

        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()
        self._latest_frame: Optional[Frame] = None

    def start(self) -> bool:
        """
        Open the device and begin capturing.

        Returns:
            True if camera started successfully
        """
        logger.info("Starting camera (device=%d, %dx%d@%dfps)",
                    self.config.device_id, self.config.width, self.config.height, self.config.fps)

        self._cap = cv2.VideoCapture(self.config.device_id)
        if not self._cap.isOpened():
            logger.error("Failed to open camera device %d", self.config.device_id)
            self._cap = None
            return False

        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.config.width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.config.height)
        self._cap.set(cv2.CAP_PROP_FPS, self.config.fps)
        self._cap.set(cv2.CAP_PROP_BUFFERSIZE, self.config.buffer_size)

        for _ in range(self.config.warmup_frames):
            self._cap.read()

        logger.info("Camera initialized: %dx%d",
                    int(self._cap.get(cv2.CAP_PROP_FRAME_WIDTH)),
                    int(self._cap.get(cv2.CAP_PROP_FRAME_HEIGHT)))

        self._running = True
        self._frame_number = 0

        if self.config.threaded:
            self._thread = threading.Thread(target=self._capture_loop, daemon=True)
            self._thread.start()

        return True

    def stop(self) -> None:
        """Stop camera capture and release resources."""
        self._running = False

        if self._thread:
            self._thread.join(timeout=1.0)
            self._thread = None

        cap, self._cap = self._cap, None
        if cap is not None:
            cap.release()

        logger.info("Camera stopped")

    def read(self) -> Optional[Frame]:
        """
        Read the latest frame.

        Returns:
            Frame or None if capture failed or no frame is available yet
        """
        if not self._running:
            return None

        if self.config.threaded:
            with self._lock:
                frame, self._latest_frame = self._latest_frame, None
            return frame
        return self._capture_frame()

    def _capture_frame(self) -> Optional[Frame]:
        # stop() may clear self._cap while the capture thread is mid-read
        cap = self._cap
        if cap is None:
            return None

        ret, image = cap.read()
        if not ret or image is None:
            logger.warning("Failed to capture frame")
            return None

        self._frame_number += 1
        return Frame(image=image, timestamp=time.time(), frame_number=self._frame_number)

    def _capture_loop(self) -> None:
        """Background thread for continuous frame capture."""
        while self._running:
            frame = self._capture_frame()
            if frame:
                with self._lock:
                    self._latest_frame = frame
            else:
                time.sleep(0.01)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def resolution(self) -> Tuple[int, int]:
        return (self.config.width, self.config.height)

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
        return False
