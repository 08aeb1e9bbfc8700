"""
Godot engine versions, platform naming and installation.
"""

from gdenv.godot.environment import (
    GodotEnvironment,
    LinuxEnvironment,
    MacOSEnvironment,
    WindowsEnvironment,
    create_environment,
)
from gdenv.godot.installer import GodotInstallation, GodotInstaller
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import (
    IoVersionStringConverter,
    ReleaseVersionStringConverter,
    SharpVersionStringConverter,
    VersionStringConverter,
)
from gdenv.godot.version_files import (
    CsprojFile,
    GlobalJsonFile,
    GodotrcFile,
    find_project_version,
)

__all__ = [
    "GodotVersion",
    "VersionStringConverter",
    "ReleaseVersionStringConverter",
    "SharpVersionStringConverter",
    "IoVersionStringConverter",
    "CsprojFile",
    "GlobalJsonFile",
    "GodotrcFile",
    "find_project_version",
    "GodotEnvironment",
    "LinuxEnvironment",
    "MacOSEnvironment",
    "WindowsEnvironment",
    "create_environment",
    "GodotInstallation",
    "GodotInstaller",
]
