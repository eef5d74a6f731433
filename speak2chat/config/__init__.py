"""YAML configuration for Speak2Chat.

Values come from a YAML file layered over built-in defaults. Paths in the
file are relative to the file itself, so a config can live next to its
credentials and data directory.
"""

import copy
import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional, Tuple
import logging

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "speak2chat.yaml"
CONFIG_ENV_VAR = "SPEAK2CHAT_CONFIG"

DEFAULTS: Dict[str, Any] = {
    "google_cloud": {
        "credentials_path": None,
        "language": "en-US",
        "model": "latest_long",
        "enable_automatic_punctuation": True,
    },
    "recognition": {"on_device_only": True},
    "audio": {"sample_rate": 16000, "chunk_size": 1024, "channels": 1, "tap_buffer_size": 1024},
    "permissions": {"consent_file": None, "speech_recognition_restricted": False},
    "storage": {"data_directory": "data"},
    "logging": {"level": "INFO", "file_path": "data/logs/speak2chat.log", "console_output": True},
}

# Keys holding paths relative to the config file
PATH_KEYS = (
    "google_cloud.credentials_path",
    "storage.data_directory",
    "logging.file_path",
    "permissions.consent_file",
)


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class Speak2ChatConfig:
    """Layered Speak2Chat configuration with dot-notation access."""

    def __init__(self, config_path: Optional[str] = None):
        """Load configuration.

        Args:
            config_path: YAML file to load. Falls back to $SPEAK2CHAT_CONFIG,
                         then speak2chat.yaml in the working directory.
        """
        self.config_file = Path(config_path or os.environ.get(CONFIG_ENV_VAR) or DEFAULT_CONFIG_FILE)
        if not self.config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_file}")

        logger.info(f"Loading configuration from: {self.config_file}")
        self.config = _merge(DEFAULTS, self._read_file())
        self._anchor_paths()

    def _read_file(self) -> Dict[str, Any]:
        try:
            with open(self.config_file, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML in configuration file: {e}")
        except OSError as e:
            raise ValueError(f"Failed to load configuration: {e}")

        if not data:
            raise ValueError("Configuration file is empty")
        if not isinstance(data, dict):
            raise ValueError(f"Configuration file must contain a mapping, got {type(data).__name__}")
        return data

    def _anchor_paths(self) -> None:
        base = self.config_file.parent
        for key_path in PATH_KEYS:
            value = self.get(key_path)
            if value and not os.path.isabs(value):
                self.set(key_path, str(base / value))

    def _locate(self, key_path: str) -> Tuple[Optional[Dict[str, Any]], str]:
        """Return the mapping that holds the last key of `key_path`, and that key."""
        *parents, leaf = key_path.split('.')
        node: Any = self.config
        for key in parents:
            node = node.get(key) if isinstance(node, dict) else None
        return (node if isinstance(node, dict) else None), leaf

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a value by dotted path, e.g. 'audio.sample_rate'.

        Returns:
            The configured value, or `default` when the path is missing or null
        """
        node, leaf = self._locate(key_path)
        if node is None or node.get(leaf) is None:
            return default
        return node[leaf]

    def set(self, key_path: str, value: Any) -> None:
        """Set a value by dotted path, creating intermediate sections."""
        node = self.config
        *parents, leaf = key_path.split('.')
        for key in parents:
            node = node.setdefault(key, {})
        node[leaf] = value
        logger.debug(f"Configuration key '{key_path}' set to: {value}")

    def get_google_credentials_path(self) -> Optional[str]:
        """Absolute service account file path, or None if unset or missing."""
        configured = self.get('google_cloud.credentials_path')
        if not configured:
            logger.warning("Google credentials path not configured")
            return None

        path = Path(configured)
        if not path.is_file():
            logger.warning(f"Google credentials file not found: {configured}")
            return None
        return str(path.absolute())

    def get_data_directory(self) -> str:
        return str(Path(self.get('storage.data_directory', 'data')).absolute())

    def get_consent_file(self) -> str:
        """Path of the YAML file remembering permission consent."""
        consent_file = self.get('permissions.consent_file')
        if consent_file:
            return str(Path(consent_file).absolute())
        return str(Path(self.get_data_directory()) / "consent.yaml")
