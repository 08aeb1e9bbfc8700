"""
Directory layout for gdenv.

gdenv keeps user-wide data (downloaded Godot builds, lock files, settings)
in a single home directory:

    ~/.gdenv/                     (Windows: %LOCALAPPDATA%/gdenv)
    ├── config.yaml               user settings
    ├── lock/                     cross-process lock files
    └── godot/
        ├── cache/                downloaded archives
        ├── versions/             extracted installations
        ├── bin/godot             symlink to the active executable
        └── GodotSharp            symlink to the active GodotSharp directory

The location can be overridden with the GDENV_HOME environment variable.
"""

import logging
import os
from pathlib import Path
from typing import Optional

from gdenv.core.platform import SystemInfo, detect_system_info

logger = logging.getLogger(__name__)

HOME_ENV_VAR = "GDENV_HOME"
CONFIG_FILE_NAME = "config.yaml"
GODOT_PATH = "godot"
GODOT_CACHE_PATH = "cache"
GODOT_INSTALLATIONS_PATH = "versions"
GODOT_BIN_PATH = "bin"
GODOT_BIN_NAME = "godot"
GODOT_SHARP_PATH = "GodotSharp"
LOCK_PATH = "lock"


def get_home_dir(system_info: Optional[SystemInfo] = None) -> Path:
    """
    Get the gdenv home directory.

    Args:
        system_info: Host information (detected if None)

    Returns:
        Path to the gdenv home directory (not created)
    """
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser()

    system_info = system_info or detect_system_info()
    if system_info.is_windows:
        local_app_data = os.environ.get("LOCALAPPDATA")
        base = Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
        return base / "gdenv"
    return Path.home() / ".gdenv"


def get_godot_dir(home: Optional[Path] = None) -> Path:
    """Get the directory holding Godot downloads and installations."""
    return (home or get_home_dir()) / GODOT_PATH


def get_lock_dir(home: Optional[Path] = None) -> Path:
    """Get the directory holding lock files."""
    return (home or get_home_dir()) / LOCK_PATH


def ensure_home_structure(home: Optional[Path] = None) -> Path:
    """
    Create the gdenv home directory structure if needed.

    Returns:
        Path to the home directory
    """
    home = home or get_home_dir()
    godot_dir = get_godot_dir(home)
    for directory in (
        home,
        get_lock_dir(home),
        godot_dir / GODOT_CACHE_PATH,
        godot_dir / GODOT_INSTALLATIONS_PATH,
        godot_dir / GODOT_BIN_PATH,
    ):
        directory.mkdir(parents=True, exist_ok=True)
    logger.debug(f"Ensured home structure at {home}")
    return home


__all__ = [
    "HOME_ENV_VAR",
    "CONFIG_FILE_NAME",
    "GODOT_PATH",
    "GODOT_CACHE_PATH",
    "GODOT_INSTALLATIONS_PATH",
    "GODOT_BIN_PATH",
    "GODOT_BIN_NAME",
    "GODOT_SHARP_PATH",
    "get_home_dir",
    "get_godot_dir",
    "get_lock_dir",
    "ensure_home_structure",
]
