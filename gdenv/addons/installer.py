"""
Addon installation engine.

Reconciles the addons declared in a manifest with the project on disk.
Each addon runs through a small pipeline:

    UNRESOLVED -> FETCHING -> CHECKING_OUT -> COPYING -> INSTALLED

Local and symlinked addons skip FETCHING and CHECKING_OUT. Any failing
step moves the addon to FAILED; other addons keep going.

Remote addons are mirrored once per URL in the cache directory. Addons
sharing a URL share the mirror, so their pipelines take turns: an
asyncio lock keyed by URL orders them within this process and a file lock
orders them across processes. A mirror already on the wanted revision is
left alone; branches are only refreshed when install_all(update=True).

Usage:
    installer = AddonsInstaller()
    report = asyncio.run(installer.install_all(manifest.to_config(".")))
    for result in report.failed:
        print(result.name, result.error)
"""

import asyncio
import hashlib
import json
import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Set

from gdenv.addons.git import GitClient
from gdenv.addons.models import AddonConfig, AddonsConfig, AssetSource
from gdenv.core.exceptions import (
    AddonInstallError,
    FilesystemError,
    GdenvError,
    InstallCancelledError,
    ProcessError,
)
from gdenv.core.filesystem import atomic_write, create_symlink, recursive_copy, remove_path
from gdenv.core.locking import LockManager, LockTimeout
from gdenv.core.process import ProcessRunner

logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 4
INSTALLED_RECORDS_DIR = ".installed"
IGNORED_NAMES = {".git"}


class AddonInstallState(Enum):
    UNRESOLVED = "unresolved"
    FETCHING = "fetching"
    CHECKING_OUT = "checking out"
    COPYING = "copying"
    INSTALLED = "installed"
    FAILED = "failed"


_ORDER = [
    AddonInstallState.UNRESOLVED,
    AddonInstallState.FETCHING,
    AddonInstallState.CHECKING_OUT,
    AddonInstallState.COPYING,
    AddonInstallState.INSTALLED,
]


@dataclass
class AddonInstallResult:
    """
    Outcome of installing one addon.

    Attributes:
        name: Addon name
        addon: Addon config
        state: Final (or current) state
        history: Every state the addon went through, in order
        error: Why the addon failed, if it did
        mirror_path: Cache mirror used (remote addons)
        commit: Commit installed (remote addons)
    """

    name: str
    addon: AddonConfig
    state: AddonInstallState = AddonInstallState.UNRESOLVED
    history: List[AddonInstallState] = field(
        default_factory=lambda: [AddonInstallState.UNRESOLVED]
    )
    error: Optional[GdenvError] = None
    mirror_path: Optional[Path] = None
    commit: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state is AddonInstallState.INSTALLED

    def advance(self, state: AddonInstallState):
        """Move forward to a later pipeline state."""
        if self.state is AddonInstallState.FAILED:
            raise ValueError(f"Addon '{self.name}' has already failed")
        if _ORDER.index(state) <= _ORDER.index(self.state):
            raise ValueError(
                f"Addon '{self.name}' cannot go from {self.state.value} to {state.value}"
            )
        logger.debug(f"{self.name}: {self.state.value} -> {state.value}")
        self.state = state
        self.history.append(state)

    def fail(self, error: GdenvError):
        if self.state is AddonInstallState.FAILED:
            return
        self.error = error
        self.state = AddonInstallState.FAILED
        self.history.append(AddonInstallState.FAILED)


@dataclass
class InstallReport:
    """Results of one install run, in manifest order."""

    results: List[AddonInstallResult] = field(default_factory=list)

    @property
    def installed(self) -> List[AddonInstallResult]:
        return [r for r in self.results if r.succeeded]

    @property
    def failed(self) -> List[AddonInstallResult]:
        return [r for r in self.results if r.state is AddonInstallState.FAILED]

    @property
    def succeeded(self) -> bool:
        return not self.failed

    def get(self, name: str) -> Optional[AddonInstallResult]:
        return next((r for r in self.results if r.name == name), None)


def mirror_dir_name(url: str) -> str:
    """
    Cache directory name for a repository URL.

    Example:
        >>> mirror_dir_name("https://github.com/user/my_addon.git")[:9]
        'my_addon-'
    """
    repo_name = re.split(r"[/:\\]", url.rstrip("/\\"))[-1]
    if repo_name.endswith(".git"):
        repo_name = repo_name[:-4]
    repo_name = re.sub(r"[^A-Za-z0-9._-]+", "_", repo_name) or "addon"
    digest = hashlib.sha1(url.encode("utf-8")).hexdigest()[:10]
    return f"{repo_name}-{digest}"


def _subpath(root: Path, subfolder: str) -> Path:
    relative = subfolder.strip("/\\")
    return root / relative if relative else root


@dataclass
class _MirrorRun:
    """Mirror bookkeeping shared by the pipelines of one install_all() call."""

    update: bool = False
    locks: Dict[str, asyncio.Lock] = field(default_factory=dict)
    # URLs cloned or fetched during this run; later pipelines only check out
    synced: Set[str] = field(default_factory=set)

    def lock_for(self, url: str) -> asyncio.Lock:
        return self.locks.setdefault(url, asyncio.Lock())


class AddonsInstaller:
    """
    Installs the addons of a resolved manifest.

    Attributes:
        git: Git client used for remote addons
        lock_manager: Cross-process mirror locks (None disables them)
    """

    def __init__(
        self,
        process_runner: Optional[ProcessRunner] = None,
        git: Optional[GitClient] = None,
        lock_manager: Optional[LockManager] = None,
    ):
        self.git = git or GitClient(process_runner)
        self.lock_manager = lock_manager

    async def install_all(
        self,
        config: AddonsConfig,
        cancel_event: Optional[asyncio.Event] = None,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        update: bool = False,
    ) -> InstallReport:
        """
        Install every addon of a manifest.

        A mirror whose HEAD already sits on the wanted revision is reused
        without touching the network. Each mirror is fetched at most once
        per run, however many addons share it.

        Args:
            config: Resolved manifest
            cancel_event: When set, running steps are stopped and unfinished
                addons fail with InstallCancelledError
            max_concurrency: Maximum number of addon pipelines running at once
            update: Fetch and fast-forward mirrors of branch checkouts even
                when they are already on the branch

        Returns:
            InstallReport with one result per addon
        """
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        semaphore = asyncio.Semaphore(max_concurrency)
        run = _MirrorRun(update=update)
        results = [AddonInstallResult(name, addon) for name, addon in config.addons.items()]

        logger.info(f"Installing {len(results)} addon(s) into {config.addons_path}")
        await asyncio.gather(
            *(
                self._install_guarded(config, result, semaphore, run, cancel_event)
                for result in results
            )
        )

        report = InstallReport(results)
        for result in report.failed:
            logger.error(f"Failed to install addon '{result.name}': {result.error}")
        return report

    async def _install_guarded(
        self,
        config: AddonsConfig,
        result: AddonInstallResult,
        semaphore: asyncio.Semaphore,
        run: _MirrorRun,
        cancel_event: Optional[asyncio.Event],
    ):
        if cancel_event is not None and cancel_event.is_set():
            result.fail(InstallCancelledError(f"Installation of '{result.name}' cancelled"))
            return

        async def pipeline():
            async with semaphore:
                await self.install_addon(config, result, run)

        worker = asyncio.create_task(pipeline())
        waiters = {worker}
        canceller = None
        if cancel_event is not None:
            canceller = asyncio.create_task(cancel_event.wait())
            waiters.add(canceller)

        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        except asyncio.CancelledError:
            # The worker must not outlive the caller's cancellation
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
            raise
        finally:
            if canceller is not None:
                canceller.cancel()

        if not worker.done():
            worker.cancel()
        try:
            await worker
        except asyncio.CancelledError:
            if cancel_event is None or not cancel_event.is_set():
                raise
            logger.warning(f"Installation of '{result.name}' cancelled")
            result.fail(InstallCancelledError(f"Installation of '{result.name}' cancelled"))
        except GdenvError as e:
            result.fail(e)
        except OSError as e:
            result.fail(AddonInstallError(result.name, result.state.value, str(e)))

    async def install_addon(
        self,
        config: AddonsConfig,
        result: AddonInstallResult,
        run: Optional[_MirrorRun] = None,
    ) -> AddonInstallResult:
        """
        Run the pipeline of one addon, updating result as it goes.

        Args:
            run: Mirror state shared with the other addons of the same
                install_all() call; a fresh one is used when omitted

        Raises:
            AddonInstallError: If a step fails (result is marked failed too)
        """
        addon = result.addon
        run = run if run is not None else _MirrorRun()
        try:
            if addon.source is AssetSource.REMOTE:
                async with run.lock_for(addon.url):
                    if self.lock_manager is not None:
                        async with self.lock_manager.async_mirror_lock(addon.url):
                            await self._install_remote(config, result, run)
                    else:
                        await self._install_remote(config, result, run)
            else:
                await self._install_local(config, result)
        except AddonInstallError as e:
            result.fail(e)
            raise
        except LockTimeout as e:
            error = AddonInstallError(result.name, "waiting for the mirror lock", str(e))
            result.fail(error)
            raise error from e

        try:
            self._write_record(config, result)
        except OSError as e:
            error = AddonInstallError(result.name, "recording the installation", str(e))
            result.fail(error)
            raise error from e
        result.advance(AddonInstallState.INSTALLED)
        logger.info(f"Installed addon '{result.name}'")
        return result

    async def _install_remote(
        self, config: AddonsConfig, result: AddonInstallResult, run: _MirrorRun
    ):
        addon = result.addon
        mirror = Path(config.cache_path) / mirror_dir_name(addon.url)
        result.mirror_path = mirror
        step = AddonInstallState.FETCHING

        try:
            result.advance(AddonInstallState.FETCHING)
            if not (mirror / ".git").exists():
                remove_path(mirror)
                logger.info(f"Cloning {addon.url}")
                await self.git.clone(addon.url, mirror)
                run.synced.add(addon.url)

            wanted = await self.git.resolve(mirror, addon.checkout)
            is_branch = await self.git.is_branch(mirror, addon.checkout)
            fetched = False
            if addon.url not in run.synced and (
                wanted is None or (run.update and is_branch)
            ):
                logger.info(f"Fetching {addon.url}")
                await self.git.fetch(mirror)
                run.synced.add(addon.url)
                fetched = True
                wanted = await self.git.resolve(mirror, addon.checkout)

            step = AddonInstallState.CHECKING_OUT
            result.advance(AddonInstallState.CHECKING_OUT)
            head = await self.git.head(mirror)
            if fetched or wanted is None or head != wanted:
                await self.git.checkout(mirror, addon.checkout)
                if fetched and is_branch:
                    await self.git.pull(mirror)
                await self.git.update_submodules(mirror)
            else:
                logger.debug(f"{result.name}: mirror already at {addon.checkout}")

            result.commit = await self.git.head(mirror)
        except ProcessError as e:
            raise AddonInstallError(result.name, step.value, e.stderr.strip() or str(e)) from e
        except (FilesystemError, OSError) as e:
            raise AddonInstallError(result.name, step.value, str(e)) from e

        await self._copy(config, result, mirror)

    async def _install_local(self, config: AddonsConfig, result: AddonInstallResult):
        source = Path(result.addon.url).expanduser()
        if not source.is_absolute():
            source = Path(config.project_path) / source
        await self._copy(config, result, source)

    async def _copy(self, config: AddonsConfig, result: AddonInstallResult, root: Path):
        result.advance(AddonInstallState.COPYING)
        destination = Path(config.addons_path) / result.name
        source = _subpath(root, result.addon.subfolder)

        if not source.resolve().is_relative_to(root.resolve()):
            raise AddonInstallError(
                result.name,
                AddonInstallState.COPYING.value,
                f"Subfolder '{result.addon.subfolder}' points outside {root}",
            )
        if not source.is_dir():
            raise AddonInstallError(
                result.name, AddonInstallState.COPYING.value, f"Source directory not found: {source}"
            )

        try:
            remove_path(destination)
            if result.addon.source is AssetSource.SYMLINK:
                create_symlink(source, destination)
                logger.debug(f"Linked {destination} -> {source}")
            else:
                copied = await asyncio.to_thread(
                    recursive_copy, source, destination, IGNORED_NAMES
                )
                logger.debug(f"Copied {copied} file(s) from {source} to {destination}")
        except (FilesystemError, OSError) as e:
            raise AddonInstallError(
                result.name, AddonInstallState.COPYING.value, str(e)
            ) from e

    def _write_record(self, config: AddonsConfig, result: AddonInstallResult):
        record = {
            **result.addon.to_dict(),
            "commit": result.commit,
        }
        path = Path(config.cache_path) / INSTALLED_RECORDS_DIR / f"{result.name}.json"
        atomic_write(path, json.dumps(record, indent=2) + "\n")

    @staticmethod
    def read_record(config: AddonsConfig, name: str) -> Optional[dict]:
        """Completion record of an installed addon, or None."""
        path = Path(config.cache_path) / INSTALLED_RECORDS_DIR / f"{name}.json"
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))


__all__ = [
    "AddonInstallState",
    "AddonInstallResult",
    "InstallReport",
    "AddonsInstaller",
    "mirror_dir_name",
    "DEFAULT_MAX_CONCURRENCY",
]
