"""
Godot command implementation.

Installs, lists, removes and activates Godot versions.
"""

import asyncio
import logging
import sys
from typing import Optional, Tuple

from gdenv.cli.utils import print_error, resolve_project_root, safe_print
from gdenv.core.directory import ensure_home_structure
from gdenv.core.download import DownloadProgress
from gdenv.core.file_client import FileClient
from gdenv.core.platform import detect_system_info
from gdenv.core.process import ProcessRunner
from gdenv.godot.environment import GodotEnvironment, create_environment
from gdenv.godot.installer import GodotInstaller
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import (
    IoVersionStringConverter,
    ReleaseVersionStringConverter,
)
from gdenv.godot.version_files import find_project_version

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the godot command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    handlers = {
        "install": run_install,
        "list": run_list,
        "uninstall": run_uninstall,
        "use": run_use,
        "url": run_url,
    }
    return handlers[args.godot_command](args)


def make_environment() -> GodotEnvironment:
    system_info = detect_system_info()
    logger.debug(f"Host: {system_info}")
    return create_environment(
        system_info,
        FileClient(),
        ProcessRunner(system_info),
        ReleaseVersionStringConverter(),
    )


def make_installer(args) -> GodotInstaller:
    return GodotInstaller(make_environment(), settings=getattr(args, "settings", None))


def resolve_version(args) -> Optional[Tuple[GodotVersion, bool]]:
    """
    Version and .NET flag requested on the command line.

    Without a VERSION argument the project's declared version is used; the
    .NET flag defaults to what the project declares.
    """
    if args.version:
        version = IoVersionStringConverter().parse_version(args.version)
        is_dotnet = bool(args.dotnet)
        return _flagged(version, is_dotnet), is_dotnet

    project_root = resolve_project_root(args.project_root)
    declared = find_project_version(str(project_root), FileClient())
    if declared is None:
        return None
    logger.info(f"Using Godot {declared} declared by {project_root}")
    is_dotnet = declared.is_dotnet if args.dotnet is None else args.dotnet
    return _flagged(declared, is_dotnet), is_dotnet


def _flagged(version: GodotVersion, is_dotnet: bool) -> GodotVersion:
    return version.with_dotnet() if is_dotnet else version.without_dotnet()


def _progress_printer():
    def on_progress(progress: DownloadProgress):
        sys.stderr.write(f"\r{progress}   ")
        sys.stderr.flush()
        if progress.total_bytes and progress.bytes_downloaded >= progress.total_bytes:
            sys.stderr.write("\n")

    return on_progress


def run_install(args) -> int:
    requested = resolve_version(args)
    if requested is None:
        print_error(
            "No Godot version given and none declared by the project",
            "Pass a VERSION or add one to global.json or .godotrc",
        )
        return 1
    version, is_dotnet = requested

    ensure_home_structure()
    installer = make_installer(args)
    installer.environment.describe(logger)
    progress = None if args.quiet else _progress_printer()
    installation = asyncio.run(
        installer.install(version, is_dotnet, progress_callback=progress)
    )

    if not args.no_activate:
        installer.activate(installation)
    safe_print(f"✅ Godot {installation.version} installed at {installation.path}")
    return 0


def run_list(args) -> int:
    installer = make_installer(args)
    installations = installer.list_installations()
    if not installations:
        safe_print("No Godot versions installed")
        return 0

    active = installer.active_installation()
    for installation in installations:
        marker = "*" if installation == active else " "
        safe_print(f"{marker} {installation.version}")
    return 0


def run_uninstall(args) -> int:
    version, is_dotnet = resolve_version(args)
    installer = make_installer(args)
    if not installer.uninstall(version, is_dotnet):
        print_error(f"Godot {version} is not installed")
        return 1
    safe_print(f"🗑  Removed Godot {version}")
    return 0


def run_use(args) -> int:
    version, is_dotnet = resolve_version(args)
    installer = make_installer(args)
    installation = installer.get_installation(version, is_dotnet)
    if installation is None:
        print_error(
            f"Godot {version} is not installed",
            "Install it first with: gdenv godot install VERSION",
        )
        return 1
    installer.activate(installation)
    safe_print(f"✅ Using Godot {installation.version}")
    return 0


def run_url(args) -> int:
    version, is_dotnet = resolve_version(args)
    environment = make_environment()
    safe_print(environment.download_url(version, is_dotnet, is_template=args.templates))
    return 0
