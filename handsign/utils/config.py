"""
Centralized configuration manager.
Loads the YAML config and provides dot-path access with defaults.
"""

import os
import yaml
import logging

logger = logging.getLogger(__name__)

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
_CONFIG_DIR = os.path.join(_BASE_DIR, "config")

# Schema: expected sections and the types of their critical fields
_CONFIG_SCHEMA = {
    "camera": {
        "device_id": int,
        "width": int,
        "height": int,
        "fps": int,
    },
    "mediapipe": {
        "running_mode": str,
        "min_detection_confidence": float,
        "min_tracking_confidence": float,
    },
    "classifier": {
        "model_path": str,
        "confidence_threshold": float,
        "labels": list,
    },
    "visualization": {
        "mirror": bool,
        "rotate_90": bool,
    },
}


def _deep_merge(base: dict, override: dict) -> dict:
    """Recursively merge override into base dict."""
    merged = base.copy()
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Config:
    """Singleton configuration manager."""

    _instance = None
    _data = {}

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def load(self, config_path=None, overrides=None):
        """Load configuration from a YAML file.

        Args:
            config_path: YAML file (defaults to config/config.yaml)
            overrides: dict merged over the file contents (e.g. CLI flags)
        """
        config_path = config_path or os.path.join(_CONFIG_DIR, "config.yaml")

        try:
            with open(config_path, "r") as f:
                self._data = yaml.safe_load(f) or {}
            logger.info("Loaded config from %s", config_path)
        except FileNotFoundError:
            logger.warning("Config file not found: %s, using defaults", config_path)
            self._data = {}

        if overrides:
            self._data = _deep_merge(self._data, overrides)

        self._validate()
        return self

    def _validate(self):
        """Check critical fields against the schema; only warns."""
        warnings = []
        for section_name, fields in _CONFIG_SCHEMA.items():
            section = self._data.get(section_name)
            if section is None:
                warnings.append("Missing config section: '%s'" % section_name)
                continue
            if not isinstance(section, dict):
                warnings.append("Section '%s' should be a dict, got %s"
                                % (section_name, type(section).__name__))
                continue
            for field_name, expected_type in fields.items():
                if field_name not in section or section[field_name] is None:
                    continue
                value = section[field_name]
                # Allow int where float is expected
                if expected_type is float and isinstance(value, (int, float)) and not isinstance(value, bool):
                    continue
                if not isinstance(value, expected_type):
                    warnings.append(
                        "%s.%s: expected %s, got %s (%r)"
                        % (section_name, field_name, expected_type.__name__,
                           type(value).__name__, value))

        for w in warnings:
            logger.warning("Config validation: %s", w)
        return warnings

    def get(self, key_path: str, default=None):
        """Get nested config value using dot notation: 'camera.width'."""
        value = self._data
        for key in key_path.split("."):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def get_section(self, section: str) -> dict:
        """Get an entire config section."""
        return self._data.get(section) or {}

    @property
    def camera(self) -> dict:
        return self.get_section("camera")

    @property
    def mediapipe(self) -> dict:
        return self.get_section("mediapipe")

    @property
    def classifier(self) -> dict:
        return self.get_section("classifier")

    @property
    def visualization(self) -> dict:
        return self.get_section("visualization")

    @property
    def logging(self) -> dict:
        return self.get_section("logging")

    @property
    def base_dir(self) -> str:
        return _BASE_DIR

    def resolve_path(self, path: str) -> str:
        """Resolve a config-relative path against the project root."""
        if not path or os.path.isabs(path):
            return path
        return os.path.join(_BASE_DIR, path)

    @classmethod
    def reset(cls):
        """Reset singleton instance (for testing)."""
        cls._instance = None
        cls._data = {}
