"""
Hand Sign Letter Recognition - Main Application
=================================================

Entry point: camera → MediaPipe hand landmarks → TFLite letter model →
overlay window.

Usage:
    handsign                              # default config/config.yaml
    handsign --model models/letters.tflite --threshold 0.7
    handsign --debug --log-file logs/handsign.log

Keyboard Controls:
    q/ESC     - Quit
"""

import signal
import logging
import argparse
from dataclasses import dataclass
from typing import Optional

import cv2

from handsign.capture.camera import Camera, CameraConfig
from handsign.core.events import EventBus, Events
from handsign.core.pipeline import SignAnalyzer, UiDispatcher
from handsign.detection.hand_detector import HandDetector, HandDetectorConfig
from handsign.recognition.letter_classifier import LetterClassifier, LetterClassifierConfig
from handsign.utils.config import Config
from handsign.utils.logger import setup_logging, ClassificationLogger
from handsign.utils.visualization import LandmarkOverlay, OverlayConfig

logger = logging.getLogger(__name__)

WINDOW_NAME = "Hand Sign Letters"


@dataclass
class AppConfig:
    """Application configuration container."""
    camera: CameraConfig
    mediapipe: HandDetectorConfig
    classifier: LetterClassifierConfig
    visualization: OverlayConfig

    @classmethod
    def from_config(cls, config: Config) -> "AppConfig":
        classifier = dict(config.classifier)
        if classifier.get("model_path"):
            classifier["model_path"] = config.resolve_path(classifier["model_path"])
        mediapipe = dict(config.mediapipe)
        if mediapipe.get("model_path"):
            mediapipe["model_path"] = config.resolve_path(mediapipe["model_path"])
        return cls(
            camera=CameraConfig.from_dict(config.camera),
            mediapipe=HandDetectorConfig.from_dict(mediapipe),
            classifier=LetterClassifierConfig.from_dict(classifier),
            visualization=OverlayConfig.from_dict(config.visualization),
        )


class HandSignApplication:
    """
    Main application: wires capture, detection, classification and display.

    The UI loop (this thread) reads frames, hands them to the analyzer,
    drains posted UI updates and renders the overlay.
    """

    def __init__(self, config: AppConfig):
        self.config = config
        self.bus = EventBus()

        self.camera = Camera(config.camera)
        self.detector = HandDetector(config.mediapipe)
        self.classifier = LetterClassifier(config.classifier)
        self.overlay = LandmarkOverlay(config.visualization)
        self.dispatcher = UiDispatcher()
        self.letter_log = ClassificationLogger()

        self.current_letter: Optional[str] = None
        self.status = "Initializing..."
        self._running = False

        # Must precede SignAnalyzer, which reports CLASSIFIER_UNAVAILABLE on construction
        self.letter_log.attach(self.bus)
        self._status_handlers = {
            Events.HAND_LOST: self._on_hand_lost,
            Events.CLASSIFIER_UNAVAILABLE: self._on_classifier_unavailable,
            Events.DETECTOR_ERROR: self._on_detector_error,
        }
        for event_name, handler in self._status_handlers.items():
            self.bus.subscribe(event_name, handler)

        self.analyzer = SignAnalyzer(
            detector=self.detector,
            classifier=self.classifier,
            overlay=self.overlay,
            on_letter=self._on_letter,
            dispatcher=self.dispatcher,
            event_bus=self.bus,
        )

    def _on_letter(self, letter: str) -> None:
        """Runs on the UI thread via the dispatcher."""
        self.current_letter = letter
        self.status = "Detecting: %s" % letter

    def _set_status(self, status: str, letter: Optional[str] = None) -> None:
        self.status = status
        self.current_letter = letter

    # Bus handlers run on the publishing thread and hand off to the UI loop

    def _on_hand_lost(self) -> None:
        if self.classifier.is_ready:
            self.dispatcher.post(self._set_status, "Ready - show your hand")

    def _on_classifier_unavailable(self, error=None) -> None:
        self.dispatcher.post(self._set_status, "Error: letter model unavailable")

    def _on_detector_error(self, error=None) -> None:
        self.dispatcher.post(self._set_status, "Error: hand detection failed")

    def start(self) -> bool:
        """Start camera and detector."""
        logger.info("Starting hand sign application...")

        if not self.camera.start():
            self.status = "Error: camera unavailable"
            return False

        if not self.detector.start():
            self.status = "Error: hand detector unavailable"
            self.camera.stop()
            return False

        if self.classifier.is_ready:
            self.status = "Ready - show your hand"
        self.dispatcher.drain()

        self._running = True
        logger.info("Hand sign application started")
        return True

    def stop(self) -> None:
        """Stop all components."""
        self._running = False
        self.camera.stop()
        self.detector.stop()
        self.classifier.close()
        cv2.destroyAllWindows()

        self.letter_log.detach(self.bus)
        for event_name, handler in self._status_handlers.items():
            self.bus.unsubscribe(event_name, handler)

        logger.info("Hand sign application stopped (%d letters recognized, rejected: %s)",
                    self.letter_log.total_letters, self.letter_log.rejections or "none")

    def run(self) -> None:
        """Run the main loop until quit."""
        if not self.start():
            logger.error("Startup failed: %s", self.status)
            return

        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

        try:
            self._main_loop()
        finally:
            self.stop()

    def _main_loop(self) -> None:
        while self._running:
            frame = self.camera.read()
            if frame is not None:
                self.analyzer.analyze(frame)
                self.dispatcher.drain()

                display = frame.image.copy()
                self.overlay.draw(display, letter=self.current_letter, status=self.status)
                cv2.imshow(WINDOW_NAME, display)

            key = cv2.waitKey(1) & 0xFF
            if key == ord('q') or key == 27:
                self._running = False

    def _signal_handler(self, signum, frame) -> None:
        logger.info("Received signal %d, shutting down...", signum)
        self._running = False


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Hand sign letter recognition",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Keyboard Controls:
  q/ESC     - Quit

Examples:
  handsign --model models/letter_classifier.tflite
  handsign --threshold 0.7 --debug
        """
    )
    parser.add_argument("--config", "-c", default=None,
                        help="Path to configuration file (default: config/config.yaml)")
    parser.add_argument("--model", "-m", default=None,
                        help="Path to the letter .tflite model")
    parser.add_argument("--threshold", "-t", type=float, default=None,
                        help="Letter confidence threshold")
    parser.add_argument("--camera", type=int, default=None,
                        help="Camera device id")
    parser.add_argument("--debug", "-d", action="store_true",
                        help="Enable debug logging")
    parser.add_argument("--log-file", default=None,
                        help="Also write logs to this file")
    return parser


def overrides_from_args(args) -> dict:
    """Translate CLI flags into a config override dict."""
    overrides = {}
    if args.model is not None:
        overrides.setdefault("classifier", {})["model_path"] = args.model
    if args.threshold is not None:
        overrides.setdefault("classifier", {})["confidence_threshold"] = args.threshold
    if args.camera is not None:
        overrides.setdefault("camera", {})["device_id"] = args.camera
    if args.debug:
        overrides.setdefault("logging", {})["level"] = "DEBUG"
    if args.log_file:
        overrides.setdefault("logging", {})["file"] = args.log_file
    return overrides


def main(argv=None):
    """Main entry point."""
    args = build_parser().parse_args(argv)

    config = Config().load(args.config, overrides=overrides_from_args(args))
    log_cfg = config.logging
    setup_logging(
        level=log_cfg.get("level", "INFO"),
        log_file=log_cfg.get("file"),
        max_size_mb=log_cfg.get("max_size_mb", 10),
        backup_count=log_cfg.get("backup_count", 3),
    )

    app = HandSignApplication(AppConfig.from_config(config))
    app.run()


if __name__ == "__main__":
    main()
