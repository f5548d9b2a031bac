"""
Configuration Service

Service class for configuration management.
The file is optional: defaults cover every key the core reads, and a
handful of environment variables override the file.
"""

import copy
import json
import logging
import os
from pathlib import Path
from typing import Dict, Any, Optional

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "PROJECTMIND_CONFIG"
HOSTED_API_KEY_ENV_VAR = "PROJECTMIND_HOSTED_API_KEY"

DEFAULT_CONFIG_PATH = Path.home() / ".projectmind" / "config.json"

DEFAULT_FALLBACK_MESSAGE = (
    "Sorry, something went wrong while processing your request. "
    "Please try again later."
)

DEFAULTS: Dict[str, Any] = {
    "ai": {
        "timeout": 30,
        "transient_retries": 1,
        "fallback_message": DEFAULT_FALLBACK_MESSAGE,
    },
    "hosted": {
        "base_url": None,
        "api_key": None,
        "model": None,
    },
    "storage": {
        "path": str(Path.home() / ".projectmind" / "store.json"),
    },
    "logging": {
        "level": "WARNING",
    },
    "user": None,
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Recursive dict merge; `overrides` wins on conflicts."""
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigService:
    """
    Service class for configuration management.

    Provides:
    - Configuration loading (defaults, then file, then environment)
    - Configuration saving
    - Dot-notation access
    """

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config service.

        Args:
            config_path: Path to config file (default: $PROJECTMIND_CONFIG
                or ~/.projectmind/config.json)
        """
        if config_path is None:
            env_path = os.environ.get(CONFIG_ENV_VAR)
            config_path = Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_PATH

        self.config_path = Path(config_path)
        # Only what the file holds; defaults and env are layered on read.
        self._file_config: Dict[str, Any] = {}
        self._config: Dict[str, Any] = {}

        if self.config_path.exists():
            self._load_config()
        else:
            self._rebuild()

    def _rebuild(self) -> None:
        config = _merge(DEFAULTS, self._file_config)
        env_key = os.environ.get(HOSTED_API_KEY_ENV_VAR)
        if env_key:
            config["hosted"]["api_key"] = env_key
        self._config = config

    def _load_config(self) -> None:
        """Load configuration from file (internal method)."""
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.error(f"Error parsing {self.config_path}: {e}")
            raise ValueError(
                f"Error parsing {self.config_path}: {e}\n"
                "Please ensure the config file is valid JSON."
            )
        if not isinstance(data, dict):
            raise ValueError(f"{self.config_path} must contain a JSON object")
        self._file_config = data
        self._rebuild()
        logger.info(f"Configuration loaded from {self.config_path}")

    def load(self) -> Dict[str, Any]:
        """
        Reload configuration from file.

        Returns:
            Effective configuration dictionary

        Raises:
            ValueError: If config file is invalid JSON
        """
        if self.config_path.exists():
            self._load_config()
        else:
            self._file_config = {}
            self._rebuild()
        return self.get_all()

    def save(self, data: Optional[Dict[str, Any]] = None) -> bool:
        """
        Save configuration to file.

        Only values set through this service (or passed in `data`) are
        written; defaults and environment overrides stay out of the file.

        Returns:
            True if successful
        """
        if data is not None:
            self._file_config = copy.deepcopy(data)
            self._rebuild()
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with self.config_path.open("w", encoding="utf-8") as f:
                json.dump(self._file_config, f, indent=4)
        except OSError as e:
            logger.error(f"Failed to save config: {e}")
            return False
        logger.info(f"Configuration saved to {self.config_path}")
        return True

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value.

        Args:
            key: Configuration key (supports dot notation: "hosted.api_key")
            default: Default value if key not found
        """
        value: Any = self._config
        for k in key.split("."):
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default
        return value if value is not None else default

    def set(self, key: str, value: Any) -> None:
        """
        Set configuration value (dot notation). Call save() to persist.
        """
        keys = key.split(".")
        config = self._file_config
        for k in keys[:-1]:
            if not isinstance(config.get(k), dict):
                config[k] = {}
            config = config[k]
        config[keys[-1]] = value
        self._rebuild()

    def get_all(self) -> Dict[str, Any]:
        """Complete effective configuration (deep copy)."""
        return copy.deepcopy(self._config)
