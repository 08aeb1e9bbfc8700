"""
Addons command implementation.

Installs the addons declared in the project's addons.json, or creates a
starter manifest.
"""

import asyncio
import logging

from gdenv.addons.installer import AddonsInstaller
from gdenv.addons.manifest import ADDONS_FILE_NAME, init_addons, load_manifest
from gdenv.cli.utils import print_error, resolve_project_root, safe_print
from gdenv.core.locking import LockManager

logger = logging.getLogger(__name__)


def run(args) -> int:
    """
    Run the addons command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success)
    """
    handlers = {
        "install": run_install,
        "init": run_init,
    }
    return handlers[args.addons_command](args)


def run_install(args) -> int:
    project_root = resolve_project_root(args.project_root)
    manifest_path = project_root / ADDONS_FILE_NAME
    manifest = load_manifest(manifest_path)

    if not manifest.addons:
        safe_print(f"No addons declared in {manifest_path}")
        return 0

    config = manifest.to_config(str(project_root))
    locks = LockManager()
    locks.cleanup_stale_locks()
    installer = AddonsInstaller(lock_manager=locks)
    report = asyncio.run(
        installer.install_all(
            config, max_concurrency=args.max_concurrency, update=args.update
        )
    )

    for result in report.results:
        if result.succeeded:
            commit = f" @ {result.commit[:8]}" if result.commit else ""
            safe_print(f"✅ {result.name}{commit}")
        else:
            print_error(f"{result.name}", str(result.error))

    if not report.succeeded:
        safe_print(
            f"{len(report.failed)} of {len(report.results)} addon(s) failed to install"
        )
        return 1
    safe_print(f"Installed {len(report.results)} addon(s) into {config.addons_path}")
    return 0


def run_init(args) -> int:
    project_root = resolve_project_root(args.project_root)
    manifest_path = init_addons(project_root, force=args.force)
    safe_print(f"📝 Created {manifest_path}")
    return 0
