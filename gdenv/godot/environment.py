"""
Per-OS knowledge about Godot builds.

A GodotEnvironment knows, for the host operating system and CPU, which
archive to download for a version, where it is published and where the
executable and the GodotSharp directory end up once it is extracted.

Naming differs between Godot major versions (Godot 3 used ``x11`` and
``osx``); these differences live in lookup tables keyed by the first major
version they apply to, so new naming schemes only need a new table row.

Usage:
    from gdenv.godot.environment import create_environment

    environment = create_environment(
        detect_system_info(), FileClient(), ProcessRunner(), ReleaseVersionStringConverter()
    )
    url = environment.download_url(version, is_dotnet=True, is_template=False)
"""

import logging
import stat
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Tuple, TypeVar

from gdenv.core.exceptions import UnknownPlatformError, UnsupportedOperationError
from gdenv.core.file_client import FileClient
from gdenv.core.platform import LINUX, MACOS, WINDOWS, SystemInfo
from gdenv.core.process import ProcessRunner
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import (
    ReleaseVersionStringConverter,
    VersionStringConverter,
)

logger = logging.getLogger(__name__)

GODOT_FILENAME_PREFIX = "Godot_v"
GODOT_URL_PREFIX = "https://github.com/godotengine/godot-builds/releases/download/"

T = TypeVar("T")

# Linux: first major version -> (platform name, {cpu: architecture name})
LINUX_NAMING: Dict[int, Tuple[str, Dict[str, str]]] = {
    3: ("x11", {"x64": "64", "x86": "32"}),
    4: ("linux", {"x64": "x86_64", "x86": "x86_32", "arm64": "arm64", "arm": "arm32"}),
}

# macOS builds are universal binaries regardless of the CPU
MACOS_NAMING: Dict[int, str] = {
    3: "osx.universal",
    4: "macos.universal",
}

# Windows: first major version -> {cpu: architecture name}
WINDOWS_NAMING: Dict[int, Dict[str, str]] = {
    3: {"x64": "win64", "x86": "win32"},
    4: {"x64": "win64", "x86": "win32", "arm64": "windows_arm64"},
}


def naming_for(table: Dict[int, T], major: int) -> T:
    """
    Pick the table row that applies to a major version.

    The row with the greatest key not above ``major`` wins; versions older
    than every row use the oldest row.
    """
    applicable = [key for key in table if key <= major]
    return table[max(applicable) if applicable else min(table)]


class GodotEnvironment(ABC):
    """
    Host-specific file names, URLs and layouts of Godot builds.

    Attributes:
        system_info: Host OS and CPU
        file_client: Used for path combination
        process_runner: Used for post-extraction fix-ups
        version_converter: Formats versions in file names
    """

    def __init__(
        self,
        system_info: SystemInfo,
        file_client: FileClient,
        process_runner: ProcessRunner,
        version_converter: VersionStringConverter,
    ):
        self.system_info = system_info
        self.file_client = file_client
        self.process_runner = process_runner
        self.version_converter = version_converter

    @abstractmethod
    def installer_name_suffix(self, is_dotnet: bool, version: GodotVersion) -> str:
        """File name suffix of the Godot build for this host."""

    @abstractmethod
    def describe(self, log: logging.Logger):
        """Log one line naming the host platform."""

    @abstractmethod
    def relative_executable_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        """Path of the Godot executable relative to the extraction directory."""

    @abstractmethod
    def relative_godot_sharp_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        """Path of the GodotSharp directory relative to the extraction directory."""

    def filename_version_string(self, version: GodotVersion) -> str:
        """
        Stem shared by all file names of a version.

        Example:
            >>> environment.filename_version_string(GodotVersion.stable(4, 4, 1))
            'Godot_v4.4.1-stable'
        """
        return GODOT_FILENAME_PREFIX + self.version_converter.version_string(version)

    def installer_filename(self, version: GodotVersion, is_dotnet: bool) -> str:
        """File name of the Godot build archive."""
        return (
            self.filename_version_string(version)
            + self.installer_name_suffix(is_dotnet, version)
            + ".zip"
        )

    def export_templates_filename(self, version: GodotVersion, is_dotnet: bool) -> str:
        """File name of the export templates archive."""
        return (
            self.filename_version_string(version)
            + ("_mono" if is_dotnet else "")
            + "_export_templates.tpz"
        )

    def download_url(
        self, version: GodotVersion, is_dotnet: bool, is_template: bool
    ) -> str:
        """
        URL of the Godot build (or export templates) for this host.

        Release directories are always named with the release form of the
        version, whatever converter the environment uses for file names.
        """
        release = ReleaseVersionStringConverter().version_string(version)
        url = f"{GODOT_URL_PREFIX}{release}/"
        if is_template:
            return url + self.export_templates_filename(version, is_dotnet)
        return url + self.installer_filename(version, is_dotnet)

    async def prepare_executable(self, executable: Path):
        """Make an extracted executable runnable; no-op by default."""
        return None

    def _architecture(self, names: Dict[str, str], version: GodotVersion) -> str:
        try:
            return names[self.system_info.arch]
        except KeyError:
            raise UnsupportedOperationError(
                f"Godot {version.major}.x has no {self.system_info.os} build "
                f"for the {self.system_info.arch} architecture."
            ) from None


class _UnixEnvironment(GodotEnvironment):
    async def prepare_executable(self, executable: Path):
        if executable.is_file():
            mode = executable.stat().st_mode
            executable.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
            logger.debug(f"Marked {executable} as executable")


class LinuxEnvironment(_UnixEnvironment):
    def _platform_and_architecture(self, version: GodotVersion) -> Tuple[str, str]:
        platform_name, architectures = naming_for(LINUX_NAMING, version.major)
        return platform_name, self._architecture(architectures, version)

    def installer_name_suffix(self, is_dotnet: bool, version: GodotVersion) -> str:
        platform_name, architecture = self._platform_and_architecture(version)
        if is_dotnet:
            return f"_mono_{platform_name}_{architecture}"
        return f"_{platform_name}.{architecture}"

    def describe(self, log: logging.Logger):
        log.info("🐧 Running on Linux")

    def relative_executable_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        stem = self.filename_version_string(version)
        platform_name, architecture = self._platform_and_architecture(version)
        executable = stem + ("_mono" if is_dotnet else "") + f"_{platform_name}.{architecture}"

        if is_dotnet:
            # .NET builds extract into a directory; standard builds do not
            return self.file_client.combine(
                stem + self.installer_name_suffix(is_dotnet, version), executable
            )
        return executable

    def relative_godot_sharp_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        directory = self.filename_version_string(version) + self.installer_name_suffix(
            is_dotnet, version
        )
        return self.file_client.combine(directory, "GodotSharp") + self.file_client.separator


class MacOSEnvironment(_UnixEnvironment):
    QUARANTINE_ATTRIBUTE = "com.apple.quarantine"

    def installer_name_suffix(self, is_dotnet: bool, version: GodotVersion) -> str:
        name = naming_for(MACOS_NAMING, version.major)
        return f"_mono_{name}" if is_dotnet else f"_{name}"

    def describe(self, log: logging.Logger):
        log.info("🍏 Running on macOS")

    @staticmethod
    def app_name(is_dotnet: bool) -> str:
        return "Godot_mono.app" if is_dotnet else "Godot.app"

    def relative_executable_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        return self.file_client.combine(
            self.app_name(is_dotnet), "Contents", "MacOS", "Godot"
        )

    def relative_godot_sharp_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        return (
            self.file_client.combine(
                self.app_name(is_dotnet), "Contents", "Resources", "GodotSharp"
            )
            + self.file_client.separator
        )

    async def prepare_executable(self, executable: Path):
        await super().prepare_executable(executable)
        # Downloaded apps are quarantined by Gatekeeper until the flag is removed
        app_bundle = executable.parents[2]
        result = await self.process_runner.run_unchecked(
            app_bundle.parent,
            "xattr",
            ["-r", "-d", self.QUARANTINE_ATTRIBUTE, app_bundle.name],
        )
        if not result.succeeded:
            logger.debug(f"Could not clear quarantine on {app_bundle}: {result.stderr}")


class WindowsEnvironment(GodotEnvironment):
    def _architecture_name(self, version: GodotVersion) -> str:
        return self._architecture(naming_for(WINDOWS_NAMING, version.major), version)

    def installer_name_suffix(self, is_dotnet: bool, version: GodotVersion) -> str:
        architecture = self._architecture_name(version)
        return f"_mono_{architecture}" if is_dotnet else f"_{architecture}.exe"

    def describe(self, log: logging.Logger):
        log.info("🪟 Running on Windows")

    def relative_executable_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        stem = self.filename_version_string(version)
        architecture = self._architecture_name(version)

        if is_dotnet:
            return self.file_client.combine(
                stem + self.installer_name_suffix(is_dotnet, version),
                f"{stem}_mono_{architecture}.exe",
            )
        return f"{stem}_{architecture}.exe"

    def relative_godot_sharp_path(self, version: GodotVersion, is_dotnet: bool) -> str:
        directory = self.filename_version_string(version) + self.installer_name_suffix(
            is_dotnet, version
        )
        return self.file_client.combine(directory, "GodotSharp") + self.file_client.separator


_ENVIRONMENTS = {
    WINDOWS: WindowsEnvironment,
    MACOS: MacOSEnvironment,
    LINUX: LinuxEnvironment,
}


def create_environment(
    system_info: SystemInfo,
    file_client: FileClient,
    process_runner: ProcessRunner,
    version_converter: VersionStringConverter,
) -> GodotEnvironment:
    """
    Create the environment for a host.

    Raises:
        UnknownPlatformError: If the host OS is not Windows, macOS or Linux
    """
    environment_class = _ENVIRONMENTS.get(system_info.os)
    if environment_class is None:
        raise UnknownPlatformError(system_info.os)
    return environment_class(system_info, file_client, process_runner, version_converter)


__all__ = [
    "GODOT_FILENAME_PREFIX",
    "GODOT_URL_PREFIX",
    "GodotEnvironment",
    "LinuxEnvironment",
    "MacOSEnvironment",
    "WindowsEnvironment",
    "create_environment",
    "naming_for",
]
