# ==============================================================================
# MOD CATALOG - PATH UTILITIES
# ==============================================================================
# Centralized location of user data (database, config, logs).
#
# User data is stored in:
#   - Windows: %APPDATA%/ModCatalog/
#   - Linux:   $XDG_CONFIG_HOME/ModCatalog/ (default ~/.config/ModCatalog/)
#   - macOS:   ~/Library/Application Support/ModCatalog/
#
# The MODCATALOG_DATA_DIR environment variable overrides all of the above.
#
# Usage:
#   from modcatalog.core.paths import Paths
#   db_path = Paths.get_database_path()
#   config_path = Paths.get_config_path()
# ==============================================================================

import os
import sys
from typing import Optional


class Paths:
    """
    Centralized path management for the mod catalog.

    Computed directories are cached; call reset() after changing the
    environment (tests do this).
    """

    APP_NAME = "ModCatalog"

    ENV_DATA_DIR = "MODCATALOG_DATA_DIR"

    _user_data_dir: Optional[str] = None

    @classmethod
    def get_user_data_dir(cls) -> str:
        """
        Get (and create) the user data directory.

        Returns:
            Absolute path to user data directory
        """
        if cls._user_data_dir is None:
            override = os.environ.get(cls.ENV_DATA_DIR)
            if override:
                cls._user_data_dir = os.path.abspath(override)
            elif sys.platform == 'win32':
                base = os.environ.get('APPDATA', os.path.expanduser('~'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)
            elif sys.platform == 'darwin':
                cls._user_data_dir = os.path.join(
                    os.path.expanduser('~'),
                    'Library', 'Application Support', cls.APP_NAME
                )
            else:
                base = os.environ.get('XDG_CONFIG_HOME',
                                      os.path.join(os.path.expanduser('~'), '.config'))
                cls._user_data_dir = os.path.join(base, cls.APP_NAME)

            os.makedirs(cls._user_data_dir, exist_ok=True)

        return cls._user_data_dir

    @classmethod
    def get_database_path(cls) -> str:
        """Absolute path to catalog.db in the user data directory."""
        return os.path.join(cls.get_user_data_dir(), 'catalog.db')

    @classmethod
    def get_config_path(cls) -> str:
        """Absolute path to config.json in the user data directory."""
        return os.path.join(cls.get_user_data_dir(), 'config.json')

    @classmethod
    def reset(cls):
        """Forget cached directories."""
        cls._user_data_dir = None
