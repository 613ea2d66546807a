"""Simple YAML configuration loader for MoodScribe."""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "audio": {
        "sample_rate": 16000,
        "chunk_size": 1024,
        "channels": 1,
    },
    "permissions": {
        "microphone": "prompt",
    },
    "google_cloud": {
        "language": "en-US",
        "enable_automatic_punctuation": True,
    },
    "transcription": {
        "fatal_error_codes": ["AUDIO_ENGINE", "UNAUTHENTICATED", "SERVICE_FAILURE"],
    },
    "tokenizer": {
        "max_length": 128,
        "vocab_size": 30522,
    },
    "scorer": {
        "temperature": 2.0,
        "confidence_threshold": 0.6,
    },
    "scheduler": {
        "debounce_seconds": 0.5,
    },
    "inference": {
        "timeout_seconds": 5.0,
    },
    "storage": {
        "data_directory": "data",
    },
    "logging": {
        "level": "INFO",
        "file_path": "data/logs/moodscribe.log",
        "console_output": True,
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class MoodScribeConfig:
    """MoodScribe configuration loader."""

    def __init__(self, config_path: Optional[str] = None):
        """Initialize configuration loader.

        Args:
            config_path: Path to YAML config file. If None, the built-in
                        defaults are used and relative paths resolve against
                        the current directory.
        """
        if config_path is None:
            self.config_file = None
            logger.info("No configuration file given, using built-in defaults")
            self.config = copy.deepcopy(DEFAULT_CONFIG)
            return

        self.config_file = Path(config_path)

        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load and parse YAML configuration file."""
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")

        if not config:
            raise ValueError("Configuration file is empty")
        if not isinstance(config, dict):
            raise ValueError("Configuration file must contain a mapping at the top level")

        config = _merge(DEFAULT_CONFIG, config)

        # Resolve relative paths
        self._resolve_paths(config)

        logger.info("Configuration loaded successfully")
        return config

    def _resolve_paths(self, config: Dict[str, Any]) -> None:
        """Resolve relative paths in configuration relative to config file location."""
        config_dir = self.config_file.parent

        for section, key in (("google_cloud", "credentials_path"),
                             ("storage", "data_directory"),
                             ("logging", "file_path")):
            value = config.get(section, {}).get(key)
            if value and not os.path.isabs(value):
                config[section][key] = str(config_dir / value)

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get configuration value using dot notation (e.g., 'scorer.temperature').

        Args:
            key_path: Dot-separated key path
            default: Default value if key not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split('.')
        value = self.config

        for key in keys:
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default

        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'scheduler.debounce_seconds')
            value: Value to set
        """
        keys = key_path.split('.')
        config_dict = self.config

        # Navigate to the parent dictionary
        for key in keys[:-1]:
            if key not in config_dict:
                config_dict[key] = {}
            config_dict = config_dict[key]

        config_dict[keys[-1]] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> str:
        """Get Google credentials path - raises if not configured or missing."""
        creds_path = self.get('google_cloud.credentials_path')
        if not creds_path:
            raise ValueError("Google credentials path not configured (google_cloud.credentials_path)")

        creds_file = Path(creds_path)
        if not creds_file.exists():
            raise FileNotFoundError(f"Google credentials file not found: {creds_path}")

        return str(creds_file.absolute())

    def get_inference_url(self) -> str:
        """Get the model server URL used by the HTTP inference engine."""
        url = self.get('inference.url')
        if not url:
            raise ValueError("Inference server URL not configured (inference.url)")
        return url

    def get_fatal_error_codes(self) -> List[str]:
        """Names of recognizer error codes that end a session."""
        codes = self.get('transcription.fatal_error_codes', [])
        if not isinstance(codes, list):
            raise ValueError("transcription.fatal_error_codes must be a list")
        return [str(code).upper() for code in codes]

    def get_data_directory(self) -> str:
        """Get data directory path."""
        data_dir = self.get('storage.data_directory', 'data')
        return str(Path(data_dir).absolute())
