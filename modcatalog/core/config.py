# ==============================================================================
# MOD CATALOG - CONFIGURATION MODULE
# ==============================================================================
# Centralized configuration management.
#
# This module handles:
#   - Loading/saving configuration from a JSON file
#   - Default values for all settings
#   - Validation of the few settings with a restricted range
#
# Configuration is stored in: <user data dir>/config.json (see Paths)
#
# Usage:
#   from modcatalog.core.config import get_config
#   config = get_config()
#   print(config.database_path)
#   config.ingest_workers = 8
#   config.save()
# ==============================================================================

import os
import json
import logging
from typing import Optional, Dict, Any

from .paths import Paths
from .hasher import SUPPORTED_ALGORITHMS

logger = logging.getLogger(__name__)


# ==============================================================================
# DEFAULT CONFIGURATION VALUES
# ==============================================================================
# These are used when no config file exists or when values are missing.

DEFAULT_CONFIG = {
    # -------------------------------------------------------------------------
    # DATABASE
    # -------------------------------------------------------------------------
    # Path to SQLite database ("" = catalog.db in the user data directory)
    "database_path": "",

    # Seconds SQLite waits for a lock held by another writer
    "busy_timeout": 30.0,

    # Write attempts before a lost race is reported as a conflict
    "max_retries": 3,

    # -------------------------------------------------------------------------
    # INGESTION
    # -------------------------------------------------------------------------
    # Digest used for release content hashes (md5, sha256)
    "hash_algorithm": "md5",

    # Number of parallel ingestion threads for batch imports
    "ingest_workers": 4,

    # Mount-point prefix stripped from archive paths (e.g. "../../../")
    "strip_prefix": "",

    # -------------------------------------------------------------------------
    # ADVANCED
    # -------------------------------------------------------------------------
    # Enable debug logging
    "debug_mode": False,
}


# ==============================================================================
# CONFIGURATION CLASS
# ==============================================================================
class Config:
    """
    Configuration manager.

    Settings are stored in a JSON file and can be accessed as properties
    on this object or dictionary-style.

    Attributes:
        config_path: Path to the configuration file
        data: Dictionary containing all settings
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Args:
            config_path: Path to config file. If None, uses Paths.get_config_path().
        """
        self.config_path = config_path or Paths.get_config_path()
        self.data: Dict[str, Any] = DEFAULT_CONFIG.copy()

    # -------------------------------------------------------------------------
    # LOADING AND SAVING
    # -------------------------------------------------------------------------

    def load(self) -> bool:
        """
        Load configuration from file.

        If the file doesn't exist, defaults are used. Unknown keys are
        ignored and missing keys keep their defaults.

        Returns:
            True if file was loaded, False if using defaults

        Raises:
            ValueError: If the file is not valid JSON
        """
        if not os.path.isfile(self.config_path):
            logger.info("Config file not found, using defaults")
            return False

        with open(self.config_path, 'r', encoding='utf-8') as f:
            try:
                loaded = json.load(f)
            except json.JSONDecodeError as e:
                raise ValueError(f"Invalid config file {self.config_path}: {e}") from e

        for key, value in loaded.items():
            if key in self.data:
                self.data[key] = value
            else:
                logger.warning("Ignoring unknown config key: %s", key)

        logger.info("Loaded config from %s", self.config_path)
        return True

    def save(self):
        """Save configuration to file, creating the directory if needed."""
        os.makedirs(os.path.dirname(os.path.abspath(self.config_path)), exist_ok=True)

        with open(self.config_path, 'w', encoding='utf-8') as f:
            json.dump(self.data, f, indent=4, sort_keys=True)

        logger.info("Saved config to %s", self.config_path)

    # -------------------------------------------------------------------------
    # PROPERTY ACCESS
    # -------------------------------------------------------------------------

    @property
    def database_path(self) -> str:
        """Database path; falls back to the user data directory."""
        return self.data.get('database_path') or Paths.get_database_path()

    @database_path.setter
    def database_path(self, value: str):
        self.data['database_path'] = value

    @property
    def hash_algorithm(self) -> str:
        return self.data.get('hash_algorithm', 'md5')

    @hash_algorithm.setter
    def hash_algorithm(self, value: str):
        if value not in SUPPORTED_ALGORITHMS:
            raise ValueError(f"hash_algorithm must be one of {', '.join(SUPPORTED_ALGORITHMS)}")
        self.data['hash_algorithm'] = value

    @property
    def ingest_workers(self) -> int:
        return self.data.get('ingest_workers', 4)

    @ingest_workers.setter
    def ingest_workers(self, value: int):
        self.data['ingest_workers'] = max(1, min(32, int(value)))

    @property
    def max_retries(self) -> int:
        return self.data.get('max_retries', 3)

    @max_retries.setter
    def max_retries(self, value: int):
        self.data['max_retries'] = max(1, int(value))

    @property
    def busy_timeout(self) -> float:
        return float(self.data.get('busy_timeout', 30.0))

    @property
    def strip_prefix(self) -> Optional[str]:
        return self.data.get('strip_prefix') or None

    @property
    def debug_mode(self) -> bool:
        return self.data.get('debug_mode', False)

    @debug_mode.setter
    def debug_mode(self, value: bool):
        self.data['debug_mode'] = bool(value)

    # -------------------------------------------------------------------------
    # GENERIC ACCESS
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Allow dictionary-style access: config['key']"""
        return self.data[key]

    def __setitem__(self, key: str, value: Any):
        """Allow dictionary-style setting: config['key'] = value"""
        self.data[key] = value


# ==============================================================================
# GLOBAL CONFIG INSTANCE
# ==============================================================================

_global_config: Optional[Config] = None


def get_config() -> Config:
    """
    Get the global configuration instance, loading it on first call.
    """
    global _global_config

    if _global_config is None:
        _global_config = Config()
        _global_config.load()

    return _global_config


def reset_config():
    """Drop the global instance so the next get_config() reloads it."""
    global _global_config
    _global_config = None
