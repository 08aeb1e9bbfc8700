"""
HTTP downloads of Godot builds and export templates.

Godot archives are large (50-150 MB), so transfers:
- stream to disk in chunks and resume a partial file with a Range request
- retry transient network failures with exponential backoff
- optionally verify a SHA-256 digest while the bytes arrive
- report throttled progress (bytes, percentage, speed, ETA)
- stop at the next chunk once a threading.Event is set

download_file() blocks; async_download_file() runs it in a worker thread
and turns task cancellation into a cancel event for the transfer.

Usage:
    from gdenv.core.download import download_file

    download_file(url, Path("cache/Godot_v4.4.1-stable_linux.x86_64.zip"))
"""

import asyncio
import hashlib
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import requests
from requests.exceptions import RequestException

from gdenv.core.exceptions import ChecksumError, DownloadError, InstallCancelledError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Minimum seconds between two progress callbacks
PROGRESS_INTERVAL = 0.5

MEGABYTE = 1024 * 1024

ProgressCallback = Callable[["DownloadProgress"], None]


@dataclass
class DownloadProgress:
    """Snapshot of a running transfer."""

    bytes_downloaded: int
    total_bytes: int
    percentage: float
    speed_bps: float
    eta_seconds: float

    def __str__(self) -> str:
        return format_progress(self)


class _ProgressTracker:
    """Turns written byte counts into throttled DownloadProgress reports."""

    def __init__(self, callback: Optional[ProgressCallback], start: int, total: int):
        self.callback = callback
        self.start = start
        self.done = start
        self.total = total
        self.started_at = time.monotonic()
        self.reported_at = self.started_at

    def advance(self, count: int):
        self.done += count
        if self.callback is None:
            return
        now = time.monotonic()
        finished = self.total > 0 and self.done >= self.total
        if not finished and now - self.reported_at < PROGRESS_INTERVAL:
            return
        self.reported_at = now
        self.callback(self.snapshot(now))

    def snapshot(self, now: float) -> DownloadProgress:
        elapsed = now - self.started_at
        speed = (self.done - self.start) / elapsed if elapsed > 0 else 0.0
        if self.total > 0:
            left = max(self.total - self.done, 0)
            return DownloadProgress(
                self.done,
                self.total,
                self.done * 100.0 / self.total,
                speed,
                left / speed if speed > 0 else 0.0,
            )
        return DownloadProgress(self.done, self.done, 0.0, speed, 0.0)


def _check_cancelled(cancel_event: Optional[threading.Event]):
    if cancel_event is not None and cancel_event.is_set():
        raise InstallCancelledError("Download cancelled")


def _sha256_of(path: Path) -> "hashlib._Hash":
    digest = hashlib.sha256()
    with open(path, "rb") as stream:
        for block in iter(lambda: stream.read(CHUNK_SIZE), b""):
            digest.update(block)
    return digest


def download_file(
    url: str,
    destination: Path,
    expected_sha256: Optional[str] = None,
    progress_callback: Optional[ProgressCallback] = None,
    resume: bool = True,
    timeout: int = 30,
    max_retries: int = 3,
    cancel_event: Optional[threading.Event] = None,
) -> Path:
    """
    Download url to destination.

    Args:
        url: URL to download from
        destination: File to write; parent directories are created
        expected_sha256: Hex digest the finished file must have
        progress_callback: Called with DownloadProgress at most every half second
        resume: Continue a partial file left by an earlier attempt
        timeout: Connect/read timeout in seconds
        max_retries: Attempts before giving up on network errors
        cancel_event: When set, the transfer stops at the next chunk

    Returns:
        destination

    Raises:
        DownloadError: If every attempt failed
        ChecksumError: If the finished file has the wrong digest (it is deleted)
        InstallCancelledError: If cancel_event was set
        ValueError: If url or destination is empty

    Example:
        >>> download_file(
        ...     "https://github.com/godotengine/godot-builds/releases/download/"
        ...     "4.4.1-stable/Godot_v4.4.1-stable_linux.x86_64.zip",
        ...     Path("cache/godot.zip"),
        ...     progress_callback=lambda p: print(p),
        ... )
    """
    if not url:
        raise ValueError("URL cannot be empty")
    if not destination:
        raise ValueError("Destination path cannot be empty")

    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)

    if expected_sha256 and destination.exists():
        if verify_checksum(destination, expected_sha256):
            logger.info(f"{destination.name} already downloaded and verified")
            return destination
        logger.warning(f"{destination.name} is corrupt, downloading it again")
        destination.unlink()

    last_error: Optional[RequestException] = None
    for attempt in range(1, max_retries + 1):
        _check_cancelled(cancel_event)
        # A failed attempt may have left bytes behind
        offset = destination.stat().st_size if resume and destination.exists() else 0

        try:
            _transfer(
                url, destination, offset, expected_sha256, progress_callback,
                timeout, cancel_event,
            )
            return destination
        except RequestException as e:
            last_error = e
            if attempt == max_retries:
                break
            delay = 2 ** (attempt - 1)
            logger.warning(
                f"Download of {url} failed (attempt {attempt}/{max_retries}): {e}. "
                f"Retrying in {delay}s"
            )
            if cancel_event is not None:
                cancel_event.wait(delay)
            else:
                time.sleep(delay)

    raise DownloadError(
        f"Download failed after {max_retries} attempts: {last_error}"
    ) from last_error


def _transfer(
    url: str,
    destination: Path,
    offset: int,
    expected_sha256: Optional[str],
    progress_callback: Optional[ProgressCallback],
    timeout: int,
    cancel_event: Optional[threading.Event],
):
    """
    One HTTP attempt, appending to destination from offset.

    Raises:
        RequestException: On network or HTTP errors (retried by the caller)
    """
    headers = {"Range": f"bytes={offset}-"} if offset else {}
    if offset:
        logger.info(f"Resuming {destination.name} at byte {offset}")
    else:
        logger.info(f"Downloading {url}")

    with requests.get(
        url, headers=headers, stream=True, timeout=timeout, allow_redirects=True
    ) as response:
        if offset and response.status_code == 416:
            logger.debug(f"{destination.name} was already complete")
            _verify_file(destination, expected_sha256)
            return

        response.raise_for_status()
        if offset and response.status_code != 206:
            logger.info("Server does not support resuming, starting over")
            offset = 0

        digest = None
        if expected_sha256:
            digest = _sha256_of(destination) if offset else hashlib.sha256()

        length = int(response.headers.get("content-length") or 0)
        tracker = _ProgressTracker(progress_callback, offset, offset + length if length else 0)

        with open(destination, "ab" if offset else "wb") as out:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                _check_cancelled(cancel_event)
                if not chunk:
                    continue
                out.write(chunk)
                if digest is not None:
                    digest.update(chunk)
                tracker.advance(len(chunk))

    if digest is not None and digest.hexdigest().lower() != expected_sha256.lower():
        destination.unlink()
        raise ChecksumError(
            f"Checksum mismatch for {destination.name}: "
            f"expected {expected_sha256}, got {digest.hexdigest()}"
        )
    logger.info(f"Saved {destination}")


def _verify_file(destination: Path, expected_sha256: Optional[str]):
    if expected_sha256 and not verify_checksum(destination, expected_sha256):
        destination.unlink()
        raise ChecksumError(f"Checksum mismatch for {destination.name}")


async def async_download_file(
    url: str,
    destination: Path,
    cancel_event: Optional[threading.Event] = None,
    **kwargs,
) -> Path:
    """
    Download a file without blocking the event loop.

    The transfer runs in a worker thread. Cancelling the awaiting task sets
    the cancel event so the worker stops at its next chunk, and the
    cancellation is re-raised once the worker has returned.

    Args:
        url: URL to download from
        destination: Local path to save file
        cancel_event: Optional externally owned cancel event
        **kwargs: Forwarded to download_file()
    """
    cancel_event = cancel_event or threading.Event()
    worker = asyncio.ensure_future(
        asyncio.to_thread(
            download_file, url, destination, cancel_event=cancel_event, **kwargs
        )
    )
    try:
        return await asyncio.shield(worker)
    except asyncio.CancelledError:
        cancel_event.set()
        try:
            await worker
        except (InstallCancelledError, DownloadError, OSError):
            pass
        raise


def verify_checksum(file_path: Path, expected_sha256: str) -> bool:
    """
    Compare a file's SHA-256 digest with a hex string (case-insensitive).

    Raises:
        FileNotFoundError: If file_path does not exist
    """
    file_path = Path(file_path)
    if not file_path.is_file():
        raise FileNotFoundError(f"File not found: {file_path}")
    return _sha256_of(file_path).hexdigest().lower() == expected_sha256.lower()


def format_progress(progress: DownloadProgress) -> str:
    """
    Human readable progress line.

    Example:
        >>> print(format_progress(DownloadProgress(52428800, 104857600, 50.0, 1048576, 50)))
        50.0/100.0 MB (50.0%) at 1.0 MB/s ETA: 50s
    """
    done = progress.bytes_downloaded / MEGABYTE
    speed = progress.speed_bps / MEGABYTE
    if progress.total_bytes <= 0:
        return f"{done:.1f} MB at {speed:.1f} MB/s"
    total = progress.total_bytes / MEGABYTE
    return (
        f"{done:.1f}/{total:.1f} MB ({progress.percentage:.1f}%) "
        f"at {speed:.1f} MB/s ETA: {progress.eta_seconds:.0f}s"
    )


__all__ = [
    "DownloadProgress",
    "download_file",
    "async_download_file",
    "verify_checksum",
    "format_progress",
]
