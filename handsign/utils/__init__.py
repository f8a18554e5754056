"""Configuration, logging and overlay utilities."""
from .config import Config
from .logger import setup_logging, ClassificationLogger
from .visualization import LandmarkOverlay, OverlayConfig

__all__ = ["Config", "setup_logging", "ClassificationLogger", "LandmarkOverlay", "OverlayConfig"]
