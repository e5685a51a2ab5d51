"""Configuration management for Voice Canvas.

This module handles loading and saving application configuration to/from
a JSON file. The config directory can be customized by the caller.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

__all__ = ["Config", "DEFAULT_CONFIG_DIR"]

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "voice-canvas"
DEFAULT_AUDIO_PROBE_TIMEOUT = 10.0


class Config:
    """Manages application configuration stored in JSON format.

    Known keys:
        database_file: Path of the SQLite key-value database
        audio_probe_timeout: Seconds to wait for an imported file's duration
        export_directory: Where exported recordings are written
        log_level: Logging level name
        storage_quota_bytes: Optional size limit for the store (None = unlimited)

    Attributes:
        config_dir: Path to the configuration directory
    """

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        """Initialize configuration manager.

        Args:
            config_dir: Custom config directory path. If None, uses ~/.config/voice-canvas/
        """
        self.config_dir = Path(config_dir) if config_dir else DEFAULT_CONFIG_DIR
        self.config_dir.mkdir(parents=True, exist_ok=True)
        self.config_data = self.load_config()

    @property
    def config_file(self) -> Path:
        """Get the config file path."""
        return self.config_dir / "config.json"

    def defaults(self) -> Dict[str, Any]:
        return {
            "database_file": str(self.config_dir / "voice-canvas.db"),
            "audio_probe_timeout": DEFAULT_AUDIO_PROBE_TIMEOUT,
            "export_directory": str(Path.home() / "Downloads"),
            "log_level": "INFO",
            "storage_quota_bytes": None,
        }

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from file, creating it with defaults if missing.

        A corrupt file is logged and ignored; defaults are used in memory and
        the file is left untouched.
        """
        config = self.defaults()
        if not self.config_file.exists():
            self.save_config(config)
            return config

        try:
            with open(self.config_file, "r", encoding="utf-8") as f:
                loaded = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read config file {self.config_file}: {e}")
            return config

        if not isinstance(loaded, dict):
            logger.warning(f"Ignoring config file {self.config_file}: not a JSON object")
            return config

        config.update(loaded)
        return config

    def save_config(self, config: Dict[str, Any]) -> None:
        """Write the configuration to file."""
        with open(self.config_file, "w", encoding="utf-8") as f:
            json.dump(config, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        result = self.config_data.get(key)
        return result if result is not None else default

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value and save to file."""
        self.config_data[key] = value
        self.save_config(self.config_data)

    def get_database_file(self) -> Path:
        return Path(self.get("database_file"))

    def get_audio_probe_timeout(self) -> float:
        """Get the audio probe timeout in seconds.

        Invalid values fall back to the default.
        """
        value = self.get("audio_probe_timeout", DEFAULT_AUDIO_PROBE_TIMEOUT)
        try:
            timeout = float(value)
        except (TypeError, ValueError):
            logger.warning(f"Invalid audio_probe_timeout {value!r}, using default")
            return DEFAULT_AUDIO_PROBE_TIMEOUT
        if timeout <= 0:
            logger.warning(f"Invalid audio_probe_timeout {value!r}, using default")
            return DEFAULT_AUDIO_PROBE_TIMEOUT
        return timeout

    def get_export_directory(self) -> Path:
        return Path(self.get("export_directory")).expanduser()

    def get_storage_quota(self) -> Optional[int]:
        value = self.get("storage_quota_bytes")
        return int(value) if value is not None else None
