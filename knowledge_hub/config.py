"""
Configuration management for Knowledge Hub.

This module loads settings from config.yaml and writes them back when the
sync settings change (for example the last-synced timestamp), so they
persist across sessions.
"""

import copy
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict

import yaml

from .models import SyncConfig

CONFIG_ENV_VAR = "KNOWLEDGE_HUB_CONFIG"
TOKEN_ENV_VAR = "GITHUB_TOKEN"

DEFAULT_CONFIG: Dict[str, Any] = {
    "sync": {
        "token": "",
        "repository": "",
        "branch": "main",
        "auto_sync": True,
        "debounce_ms": 2000,
        "last_synced_at": None,
        "skip_unchanged_blobs": False,
        "api_url": "https://api.github.com",
    },
    "paths": {
        "database": "knowledge_hub.db",
        "mirror_dir": "mirror",
        "log_file": "knowledge_hub.log",
    },
    "logging": {
        "level": "INFO",
        "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    },
    "performance": {
        "max_concurrent_requests": 8,
    },
}


def _merge(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in overrides.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigManager:
    """
    Manages configuration loading, access and persistence.
    """

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize the configuration manager.

        Args:
            config_path: Path to the configuration file
        """
        self.config_path = Path(config_path)
        self._config: Dict[str, Any] = {}
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from the YAML file, layered over the defaults."""
        if not self.config_path.exists():
            logging.debug(f"No configuration file at {self.config_path}, using defaults")
            self._config = copy.deepcopy(DEFAULT_CONFIG)
            return

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f) or {}
            if not isinstance(loaded, dict):
                raise ValueError("top level must be a mapping")
            self._config = _merge(DEFAULT_CONFIG, loaded)
            logging.info(f"Configuration loaded from {self.config_path}")

        except (OSError, yaml.YAMLError, ValueError) as e:
            logging.error(f"Failed to load configuration: {e}")
            self._config = copy.deepcopy(DEFAULT_CONFIG)

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get a configuration value using dot notation.

        Args:
            key_path: Dot-separated path to the value (e.g., "sync.branch")
            default: Default value if key is not found

        Returns:
            The configuration value
        """
        value = self._config
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    def set(self, key_path: str, value: Any) -> None:
        """Set a configuration value using dot notation (in memory only)."""
        keys = key_path.split('.')
        section = self._config
        for key in keys[:-1]:
            section = section.setdefault(key, {})
        section[keys[-1]] = value

    def get_section(self, section: str) -> Dict[str, Any]:
        return self._config.get(section, {})

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    def save(self) -> None:
        """Write the current configuration back to the YAML file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(self._config, f, sort_keys=False, allow_unicode=True)
        logging.info(f"Configuration saved to {self.config_path}")

    # Sync settings

    @property
    def sync_config(self) -> SyncConfig:
        """
        Sync settings as a model. An empty token falls back to $GITHUB_TOKEN.
        """
        values = dict(self.get_section("sync"))
        if not values.get("token"):
            values["token"] = os.environ.get(TOKEN_ENV_VAR, "")
        return SyncConfig(**{k: v for k, v in values.items() if v is not None})

    def update_sync_config(self, **updates: Any) -> SyncConfig:
        """Apply and persist changes to the sync section."""
        for key, value in updates.items():
            if isinstance(value, datetime):
                value = value.isoformat()
            self.set(f"sync.{key}", value)
        self.save()
        return self.sync_config

    def record_sync(self, synced_at: datetime) -> None:
        """Persist the time of the last successful sync."""
        self.update_sync_config(last_synced_at=synced_at)

    # Convenience properties

    @property
    def database_path(self) -> str:
        return self.get("paths.database", "knowledge_hub.db")

    @property
    def mirror_directory(self) -> str:
        return self.get("paths.mirror_dir", "mirror")

    @property
    def log_filename(self) -> str:
        return self.get("paths.log_file", "knowledge_hub.log")

    @property
    def max_concurrent_requests(self) -> int:
        return self.get("performance.max_concurrent_requests", 8)


# Global configuration instance
config = ConfigManager(os.environ.get(CONFIG_ENV_VAR, "config.yaml"))


def get_config() -> ConfigManager:
    """
    Get the global configuration instance.

    Returns:
        The global ConfigManager instance
    """
    return config
