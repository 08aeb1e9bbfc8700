"""
Cross-process locks for addon mirrors and Godot installations.

Two gdenv processes must never fetch into the same addon mirror, or unpack
the same Godot build, at the same time. Each resource maps to one lock file
under <gdenv home>/lock, held with filelock. The async variants poll the
lock instead of blocking, so a task waiting for one stays cancellable.

Usage:
    from gdenv.core.locking import LockManager

    locks = LockManager()
    async with locks.async_mirror_lock("https://github.com/user/addon"):
        ...
"""

import asyncio
import hashlib
import logging
import re
import time
from contextlib import asynccontextmanager, contextmanager
from pathlib import Path
from typing import Optional

from filelock import FileLock, Timeout as LockTimeout

from gdenv.core.directory import get_lock_dir

logger = logging.getLogger(__name__)

# Delay between two non-blocking attempts of an async lock
POLL_INTERVAL = 0.1

MIRROR_TIMEOUT = 300
# Godot downloads can take minutes
GODOT_TIMEOUT = 600


def _lock_file_name(kind: str, key: str) -> str:
    # URLs are not valid file names; keep a readable tail plus a digest
    tail = re.sub(r"[^A-Za-z0-9._-]+", "-", key).strip("-")[-48:]
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:10]
    return f"{kind}-{tail}-{digest}.lock"


def _timed_out(kind: str, timeout: float) -> LockTimeout:
    message = f"Gave up waiting {timeout}s for the {kind} lock; is another gdenv running?"
    logger.error(message)
    return LockTimeout(message)


class LockManager:
    """
    Hands out file locks keyed by resource.

    Attributes:
        lock_dir: Directory holding the lock files
    """

    def __init__(self, lock_dir: Optional[Path] = None):
        self.lock_dir = Path(lock_dir) if lock_dir is not None else get_lock_dir()
        self.lock_dir.mkdir(parents=True, exist_ok=True)

    def lock_path(self, kind: str, key: str) -> Path:
        """Lock file guarding resource key of the given kind."""
        return self.lock_dir / _lock_file_name(kind, key)

    @contextmanager
    def _hold(self, kind: str, key: str, timeout: float):
        path = self.lock_path(kind, key)
        try:
            with FileLock(path, timeout=timeout, thread_local=False):
                logger.debug(f"Holding {kind} lock {path.name}")
                yield
        except LockTimeout as e:
            raise _timed_out(kind, timeout) from e
        logger.debug(f"Dropped {kind} lock {path.name}")

    @asynccontextmanager
    async def _hold_async(self, kind: str, key: str, timeout: float):
        path = self.lock_path(kind, key)
        lock = FileLock(path, thread_local=False)
        give_up_at = time.monotonic() + timeout

        while True:
            try:
                lock.acquire(timeout=0)
                break
            except LockTimeout:
                if time.monotonic() >= give_up_at:
                    raise _timed_out(kind, timeout)
            await asyncio.sleep(POLL_INTERVAL)

        logger.debug(f"Holding {kind} lock {path.name}")
        try:
            yield
        finally:
            lock.release()
            logger.debug(f"Dropped {kind} lock {path.name}")

    def mirror_lock(self, source: str, timeout: float = MIRROR_TIMEOUT):
        """
        Lock the cached mirror of an addon source (URL or local path).

        Raises:
            LockTimeout: If the lock is still held elsewhere after timeout seconds
        """
        return self._hold("mirror", source, timeout)

    def async_mirror_lock(self, source: str, timeout: float = MIRROR_TIMEOUT):
        """Awaitable counterpart of mirror_lock()."""
        return self._hold_async("mirror", source, timeout)

    def godot_lock(self, install_id: str, timeout: float = GODOT_TIMEOUT):
        """
        Lock one Godot build (e.g. 'godot_dotnet_4.4.1-stable') while it is
        downloaded, unpacked or removed.

        Raises:
            LockTimeout: If the lock is still held elsewhere after timeout seconds
        """
        return self._hold("godot", install_id, timeout)

    def async_godot_lock(self, install_id: str, timeout: float = GODOT_TIMEOUT):
        """Awaitable counterpart of godot_lock()."""
        return self._hold_async("godot", install_id, timeout)

    def cleanup_stale_locks(self, max_age_hours: int = 24) -> int:
        """
        Delete lock files untouched for more than max_age_hours.

        Files that cannot be deleted (still held on Windows) are skipped.

        Returns:
            How many files were deleted
        """
        if not self.lock_dir.exists():
            return 0

        cutoff = time.time() - max_age_hours * 3600
        removed = 0
        for path in self.lock_dir.glob("*.lock"):
            try:
                if path.stat().st_mtime < cutoff:
                    path.unlink()
                    removed += 1
                    logger.debug(f"Deleted stale lock {path.name}")
            except OSError as e:
                logger.debug(f"Kept lock {path.name}: {e}")
        return removed


__all__ = [
    "LockManager",
    "LockTimeout",
]
