"""
Core functionality for gdenv.

This package contains the foundational modules the Godot and addon
installers depend on: host detection, process execution, downloads,
file system helpers, locking and the exception hierarchy.
"""

from .directory import (
    get_home_dir,
    get_godot_dir,
    get_lock_dir,
    ensure_home_structure,
)

from .exceptions import (
    GdenvError,
    VersionParseError,
    InvalidVersionError,
    UnsupportedOperationError,
    UnknownPlatformError,
    ProcessError,
    InstallCancelledError,
    AddonInstallError,
    GodotInstallError,
    FilesystemError,
    DownloadError,
    ChecksumError,
    ConfigError,
)

from .file_client import FileClient, MemoryFileClient

from .locking import LockManager, LockTimeout

from .platform import SystemInfo, detect_system_info, clear_system_info_cache

from .process import ProcessEvent, ProcessEventKind, ProcessResult, ProcessRunner

__all__ = [
    # Directory
    "get_home_dir",
    "get_godot_dir",
    "get_lock_dir",
    "ensure_home_structure",
    # Exceptions
    "GdenvError",
    "VersionParseError",
    "InvalidVersionError",
    "UnsupportedOperationError",
    "UnknownPlatformError",
    "ProcessError",
    "InstallCancelledError",
    "AddonInstallError",
    "GodotInstallError",
    "FilesystemError",
    "DownloadError",
    "ChecksumError",
    "ConfigError",
    # Files
    "FileClient",
    "MemoryFileClient",
    # Locking
    "LockManager",
    "LockTimeout",
    # Platform
    "SystemInfo",
    "detect_system_info",
    "clear_system_info_cache",
    # Processes
    "ProcessEvent",
    "ProcessEventKind",
    "ProcessResult",
    "ProcessRunner",
]
