"""Hand detection module using MediaPipe."""
from .hand_detector import HandDetector, HandDetectorConfig, HandLandmarks, Landmark

__all__ = ["HandDetector", "HandDetectorConfig", "HandLandmarks", "Landmark"]
