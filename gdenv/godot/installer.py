"""
Godot engine download and installation.

Builds are downloaded from the official release mirror into a cache,
extracted into a per-version directory and activated by pointing the
``bin/godot`` symlink (and, for .NET builds, the ``GodotSharp`` symlink)
at them:

    <home>/godot/
    ├── cache/godot_4.4.1-stable/Godot_v4.4.1-stable_linux.x86_64.zip
    ├── cache/godot_4.4.1-stable/.done
    ├── versions/godot_4.4.1-stable/Godot_v4.4.1-stable_linux.x86_64
    ├── bin/godot -> ../versions/godot_4.4.1-stable/Godot_v4.4.1-stable_linux.x86_64
    └── GodotSharp -> versions/godot_dotnet_4.4.1-stable/.../GodotSharp

Concurrent installs of the same version (from several gdenv processes)
are serialized with a file lock.

Usage:
    installer = GodotInstaller(environment)
    installation = await installer.install(GodotVersion.stable(4, 4, 1), is_dotnet=False)
    installer.activate(installation)
"""

import asyncio
import logging
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from gdenv.config.settings import Settings
from gdenv.core.directory import (
    GODOT_BIN_NAME,
    GODOT_BIN_PATH,
    GODOT_CACHE_PATH,
    GODOT_SHARP_PATH,
    get_godot_dir,
    get_lock_dir,
)
from gdenv.core.download import DownloadProgress, async_download_file
from gdenv.core.exceptions import (
    FilesystemError,
    GdenvError,
    GodotInstallError,
    InstallCancelledError,
    VersionParseError,
)
from gdenv.core.filesystem import create_symlink, extract_archive, remove_path, safe_rmtree
from gdenv.core.locking import LockManager
from gdenv.godot.environment import GodotEnvironment
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import ReleaseVersionStringConverter

logger = logging.getLogger(__name__)

DID_FINISH_DOWNLOAD_FILE_NAME = ".done"
STAGING_PREFIX = ".staging-"

_INSTALLATION_DIR = re.compile(r"^godot_(dotnet_)?(.+)$")


@dataclass(frozen=True)
class GodotInstallation:
    """
    An extracted Godot build.

    Attributes:
        version: Installed version (is_dotnet reflects the build)
        path: Installation directory
        executable_path: Godot executable inside the installation
        godot_sharp_path: GodotSharp directory for .NET builds, else None
    """

    version: GodotVersion
    path: Path
    executable_path: Path
    godot_sharp_path: Optional[Path] = None

    @property
    def is_dotnet(self) -> bool:
        return self.version.is_dotnet

    @property
    def name(self) -> str:
        return self.path.name


def installation_dir_name(version: GodotVersion, is_dotnet: bool) -> str:
    """
    Directory name of an installation.

    Example:
        >>> installation_dir_name(GodotVersion.stable(4, 4, 1), True)
        'godot_dotnet_4.4.1-stable'
    """
    release = ReleaseVersionStringConverter().version_string(version)
    return f"godot_dotnet_{release}" if is_dotnet else f"godot_{release}"


class GodotInstaller:
    """
    Downloads, installs, lists and activates Godot builds.

    Attributes:
        environment: Host-specific naming of builds
        godot_dir: Root of Godot data (<home>/godot)
        cache_dir: Downloaded archives
        installations_dir: Extracted installations
    """

    def __init__(
        self,
        environment: GodotEnvironment,
        settings: Optional[Settings] = None,
        home: Optional[Path] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        settings = settings or Settings()
        self.environment = environment
        self.godot_dir = get_godot_dir(home)
        self.cache_dir = self.godot_dir / GODOT_CACHE_PATH
        self.installations_dir = settings.installations_dir(home)
        self.bin_link = self.godot_dir / GODOT_BIN_PATH / GODOT_BIN_NAME
        self.godot_sharp_link = self.godot_dir / GODOT_SHARP_PATH
        self.lock_manager = lock_manager or LockManager(get_lock_dir(home))

    def installation_for(self, version: GodotVersion, is_dotnet: bool) -> GodotInstallation:
        """Describe where a version is (or would be) installed."""
        version = version.with_dotnet() if is_dotnet else version.without_dotnet()
        path = self.installations_dir / installation_dir_name(version, is_dotnet)
        executable = path / self.environment.relative_executable_path(version, is_dotnet)
        godot_sharp = None
        if is_dotnet:
            godot_sharp = path / self.environment.relative_godot_sharp_path(
                version, is_dotnet
            )
        return GodotInstallation(version, path, executable, godot_sharp)

    async def download(
        self,
        version: GodotVersion,
        is_dotnet: bool,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> Path:
        """
        Download the build archive for a version, reusing a finished download.

        Returns:
            Path to the archive in the cache

        Raises:
            DownloadError: If the download fails
            InstallCancelledError: If cancelled
        """
        cache = self.cache_dir / installation_dir_name(version, is_dotnet)
        archive = cache / self.environment.installer_filename(version, is_dotnet)
        done_marker = cache / DID_FINISH_DOWNLOAD_FILE_NAME

        if done_marker.exists() and archive.exists():
            logger.info(f"Using cached download {archive.name}")
            return archive

        url = self.environment.download_url(version, is_dotnet, is_template=False)
        logger.info(f"Downloading Godot {version} from {url}")
        await async_download_file(
            url,
            archive,
            cancel_event=cancel_event,
            progress_callback=progress_callback,
        )
        done_marker.touch()
        return archive

    async def install(
        self,
        version: GodotVersion,
        is_dotnet: bool,
        cancel_event: Optional[threading.Event] = None,
        progress_callback: Optional[Callable[[DownloadProgress], None]] = None,
    ) -> GodotInstallation:
        """
        Download and extract a version; returns the existing installation
        if the version is already installed.

        Raises:
            GodotInstallError: If the archive does not contain the expected build
            DownloadError: If the download fails
            InstallCancelledError: If cancelled
        """
        installation = self.installation_for(version, is_dotnet)

        async with self.lock_manager.async_godot_lock(installation.name):
            if installation.executable_path.exists():
                logger.info(f"Godot {installation.version} is already installed")
                return installation

            archive = await self.download(
                version, is_dotnet, cancel_event=cancel_event, progress_callback=progress_callback
            )
            if cancel_event is not None and cancel_event.is_set():
                raise InstallCancelledError(f"Installation of Godot {version} cancelled")

            staging = self.installations_dir / f"{STAGING_PREFIX}{installation.name}"
            try:
                await asyncio.to_thread(self._extract, archive, staging, installation.path)
            except FilesystemError as e:
                raise GodotInstallError(
                    f"Failed to extract {archive.name}: {e}"
                ) from e

            if not installation.executable_path.exists():
                raise GodotInstallError(
                    f"Godot executable not found after extraction: "
                    f"{installation.executable_path}"
                )
            await self.environment.prepare_executable(installation.executable_path)

        logger.info(f"Installed Godot {installation.version} to {installation.path}")
        return installation

    def _extract(self, archive: Path, staging: Path, destination: Path):
        safe_rmtree(staging)
        extract_archive(archive, staging)
        remove_path(destination)
        staging.replace(destination)

    def list_installations(self) -> List[GodotInstallation]:
        """List installed versions, oldest first."""
        if not self.installations_dir.is_dir():
            return []

        converter = ReleaseVersionStringConverter()
        installations = []
        for entry in self.installations_dir.iterdir():
            match = _INSTALLATION_DIR.match(entry.name)
            if not entry.is_dir() or not match:
                continue
            try:
                version = converter.parse_version(match.group(2))
            except VersionParseError:
                logger.debug(f"Ignoring unrecognized directory {entry}")
                continue
            installations.append(self.installation_for(version, bool(match.group(1))))

        return sorted(installations, key=lambda i: (i.version.sort_key(), i.is_dotnet))

    def get_installation(
        self, version: GodotVersion, is_dotnet: bool
    ) -> Optional[GodotInstallation]:
        """Get an installed version, or None if it is not installed."""
        installation = self.installation_for(version, is_dotnet)
        return installation if installation.path.is_dir() else None

    def uninstall(self, version: GodotVersion, is_dotnet: bool) -> bool:
        """
        Remove an installation and its cached download.

        Returns:
            True if the version was installed
        """
        installation = self.get_installation(version, is_dotnet)
        if installation is None:
            return False

        if self.active_installation() == installation:
            logger.info(f"Deactivating Godot {installation.version}")
            remove_path(self.bin_link)
            remove_path(self.godot_sharp_link)

        safe_rmtree(installation.path, require_prefix=self.installations_dir)
        safe_rmtree(self.cache_dir / installation.name, require_prefix=self.cache_dir)
        logger.info(f"Uninstalled Godot {installation.version}")
        return True

    def activate(self, installation: GodotInstallation):
        """Point the godot symlinks at an installation."""
        if not installation.executable_path.exists():
            raise GodotInstallError(
                f"Godot {installation.version} is not installed at {installation.path}"
            )

        create_symlink(installation.executable_path, self.bin_link)
        if installation.godot_sharp_path is not None:
            create_symlink(installation.godot_sharp_path, self.godot_sharp_link)
        else:
            remove_path(self.godot_sharp_link)
        logger.info(f"Activated Godot {installation.version}")

    def active_installation(self) -> Optional[GodotInstallation]:
        """The installation the bin symlink points at, if any."""
        if not self.bin_link.is_symlink():
            return None
        try:
            target = self.bin_link.resolve()
        except OSError as e:
            raise GdenvError(f"Cannot resolve {self.bin_link}: {e}") from e

        for installation in self.list_installations():
            if installation.executable_path.resolve() == target:
                return installation
        return None


__all__ = [
    "GodotInstallation",
    "GodotInstaller",
    "installation_dir_name",
    "DID_FINISH_DOWNLOAD_FILE_NAME",
]
