"""
Hand Sign Letter Recognition
=============================

Recognizes static hand-sign letters from a camera feed.

Modules:
    - capture: Camera frame acquisition
    - detection: MediaPipe hand landmark detection
    - recognition: Landmark encoding and TFLite letter classification
    - core: Shared types, errors, events and the frame analyzer
    - utils: Configuration, logging, overlay drawing
"""

__version__ = "1.0.0"
__author__ = "HandSign Team"
