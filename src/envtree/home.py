"""User-global envtree home directory discovery.

Provides the canonical functions for locating:
- The user-global ~/.envtree/ directory (cross-platform)
- The hierarchy database and global config file inside it
"""

from __future__ import annotations

import os
from pathlib import Path

HOME_ENV_VAR = "ENVTREE_HOME"
DATABASE_FILENAME = "envtree.db"
CONFIG_FILENAME = "config.yaml"


def _is_windows() -> bool:
    """Return True when running on Windows."""
    return os.name == "nt"


def get_envtree_home() -> Path:
    """Return the path to the user-global ~/.envtree/ directory.

    Resolution order:
    1. ENVTREE_HOME environment variable (all platforms)
    2. ~/.envtree/ on macOS/Linux (Path.home() / ".envtree")
    3. %LOCALAPPDATA%\\envtree\\ on Windows (via platformdirs)

    Returns:
        Path: Absolute path to the global envtree directory.
    """
    if env_home := os.environ.get(HOME_ENV_VAR):
        return Path(env_home)

    if _is_windows():
        from platformdirs import user_data_dir

        return Path(user_data_dir("envtree"))

    return Path.home() / ".envtree"


def default_database_path() -> Path:
    """Return the default SQLite hierarchy database path."""
    return get_envtree_home() / DATABASE_FILENAME


def global_config_path() -> Path:
    """Return the path of the global config.yaml."""
    return get_envtree_home() / CONFIG_FILENAME
