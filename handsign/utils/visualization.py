"""
Visualization Module
=====================

Landmark overlay and letter feedback drawn on camera frames.

This is the only place where landmark coordinates are transformed
(mirroring, axis swap for rotated sensors). The classifier always receives
the detector's raw coordinates.
"""

import threading
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import cv2
import numpy as np

from handsign.core.types import LandmarkPoint


@dataclass
class OverlayConfig:
    """Overlay settings."""
    # Presentation transform
    rotate_90: bool = False   # swap x/y for a sensor mounted 90° to the display
    mirror: bool = False      # selfie view

    show_landmarks: bool = True
    show_connections: bool = True

    # Colors (BGR format)
    landmark_color: Tuple[int, int, int] = (0, 255, 0)      # Green
    connection_color: Tuple[int, int, int] = (255, 255, 0)  # Cyan
    letter_color: Tuple[int, int, int] = (0, 0, 255)        # Red
    text_color: Tuple[int, int, int] = (255, 255, 255)      # White

    landmark_radius: int = 6
    connection_thickness: int = 3
    letter_scale: float = 3.0
    font_scale: float = 0.6

    instructions: str = "Show your right hand to the camera"

    @classmethod
    def from_dict(cls, config: dict) -> "OverlayConfig":
        """Create config from dictionary."""
        colors = config.get("colors", {})
        return cls(
            rotate_90=config.get("rotate_90", False),
            mirror=config.get("mirror", False),
            show_landmarks=config.get("show_landmarks", True),
            show_connections=config.get("show_connections", True),
            landmark_color=tuple(colors.get("landmarks", [0, 255, 0])),
            connection_color=tuple(colors.get("connections", [255, 255, 0])),
            letter_color=tuple(colors.get("letter", [0, 0, 255])),
            text_color=tuple(colors.get("text", [255, 255, 255])),
            landmark_radius=config.get("landmark_radius", 6),
            connection_thickness=config.get("connection_thickness", 3),
            letter_scale=config.get("letter_scale", 3.0),
            font_scale=config.get("font_scale", 0.6),
            instructions=config.get("instructions", "Show your right hand to the camera"),
        )


def to_screen(points: Sequence[LandmarkPoint], width: int, height: int,
              rotate_90: bool = False, mirror: bool = False) -> List[Tuple[int, int]]:
    """Map normalized landmarks to pixel positions on the display.

    With ``rotate_90`` and ``mirror`` both set this is the front-camera
    portrait mapping ``sx = (1 - y) * w``, ``sy = (1 - x) * h``.
    """
    screen = []
    for x, y in points:
        if rotate_90:
            x, y = 1.0 - y, x
        if mirror:
            if rotate_90:
                y = 1.0 - y
            else:
                x = 1.0 - x
        screen.append((int(round(x * width)), int(round(y * height))))
    return screen


class LandmarkOverlay:
    """
    Holds the latest hand points and draws them with the letter feedback.

    ``update_landmarks`` / ``clear`` may be called from any thread; ``draw``
    is called by the UI loop.

    Example:
        >>> overlay = LandmarkOverlay(OverlayConfig(mirror=True))
        >>> overlay.update_landmarks(hand.points)
        >>> overlay.draw(frame.image, letter="A", status="Detecting: A")
    """

    # 20 bones from the wrist plus the knuckle line
    HAND_CONNECTIONS = [
        (0, 1), (1, 2), (2, 3), (3, 4),          # Thumb
        (0, 5), (5, 6), (6, 7), (7, 8),          # Index
        (0, 9), (9, 10), (10, 11), (11, 12),     # Middle
        (0, 13), (13, 14), (14, 15), (15, 16),   # Ring
        (0, 17), (17, 18), (18, 19), (19, 20),   # Pinky
        (5, 9), (9, 13), (13, 17),               # Knuckles
    ]

    def __init__(self, config: Optional[OverlayConfig] = None):
        self.config = config or OverlayConfig()
        self._font = cv2.FONT_HERSHEY_SIMPLEX
        self._lock = threading.Lock()
        self._points: List[LandmarkPoint] = []

    def update_landmarks(self, points: Sequence[LandmarkPoint]) -> None:
        """Replace the displayed hand."""
        with self._lock:
            self._points = [LandmarkPoint(float(x), float(y)) for x, y in points]

    def clear(self) -> None:
        with self._lock:
            self._points = []

    @property
    def points(self) -> List[LandmarkPoint]:
        with self._lock:
            return list(self._points)

    def screen_points(self, width: int, height: int) -> List[Tuple[int, int]]:
        return to_screen(self.points, width, height,
                         rotate_90=self.config.rotate_90, mirror=self.config.mirror)

    def draw(self, image: np.ndarray, letter: Optional[str] = None,
             status: str = "") -> np.ndarray:
        """
        Draw hand skeleton, detected letter, status and instructions.

        Args:
            image: BGR image to draw on
            letter: Last accepted letter, if any
            status: Status line shown top-left

        Returns:
            Image with overlay drawn
        """
        self.draw_hand(image)
        if status:
            self.draw_status(image, status)
        if letter:
            self.draw_letter(image, letter)
        if self.config.instructions:
            self.draw_instructions(image, self.config.instructions)
        return image

    def draw_hand(self, image: np.ndarray) -> np.ndarray:
        height, width = image.shape[:2]
        pts = self.screen_points(width, height)
        if not pts:
            return image

        if self.config.show_connections:
            for start_idx, end_idx in self.HAND_CONNECTIONS:
                if start_idx < len(pts) and end_idx < len(pts):
                    cv2.line(image, pts[start_idx], pts[end_idx],
                             self.config.connection_color, self.config.connection_thickness,
                             cv2.LINE_AA)

        if self.config.show_landmarks:
            for pt in pts:
                cv2.circle(image, pt, self.config.landmark_radius,
                           self.config.landmark_color, -1, lineType=cv2.LINE_AA)
        return image

    def draw_letter(self, image: np.ndarray, letter: str) -> np.ndarray:
        """Draw the letter large at the top center."""
        width = image.shape[1]
        thickness = max(2, int(self.config.letter_scale * 2))
        text_size = cv2.getTextSize(letter, self._font, self.config.letter_scale, thickness)[0]
        x = (width - text_size[0]) // 2
        y = 40 + text_size[1]

        cv2.putText(image, letter, (x + 2, y + 2),
                    self._font, self.config.letter_scale, (0, 0, 0), thickness + 2)
        cv2.putText(image, letter, (x, y),
                    self._font, self.config.letter_scale, self.config.letter_color, thickness)
        return image

    def draw_status(self, image: np.ndarray, status: str) -> np.ndarray:
        cv2.putText(image, status, (16, 28),
                    self._font, self.config.font_scale, self.config.text_color, 2)
        return image

    def draw_instructions(self, image: np.ndarray, text: str) -> np.ndarray:
        height, width = image.shape[:2]
        text_size = cv2.getTextSize(text, self._font, 0.5, 1)[0]
        x = max(0, (width - text_size[0]) // 2)
        cv2.putText(image, text, (x, height - 16),
                    self._font, 0.5, self.config.text_color, 1)
        return image
