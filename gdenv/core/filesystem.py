"""
File system helpers shared by the Godot and addon installers.

- links: symlinks, with a junction fallback for directories on Windows
- archives: Godot zips, .tpz export templates and the tar family, with
  every member checked against directory traversal before extraction
- writes: temp file + rename so readers never see half a file
- trees: removal that copes with read-only git objects, and copying that
  skips names such as '.git'
"""

import os
import shutil
import stat
import subprocess
import sys
import tarfile
import tempfile
import zipfile
from pathlib import Path
from typing import Callable, Iterable, Optional, Union

from gdenv.core.exceptions import (
    ArchiveExtractionError,
    FilesystemError,
    InsecureArchiveError,
    LinkCreationError,
    UnsupportedArchiveFormat,
)

IS_WINDOWS = os.name == "nt"

PathLike = Union[str, Path]
ExtractProgress = Callable[[int, int], None]


# ============================================================================
# Links
# ============================================================================


def _is_link(path: Path) -> bool:
    is_junction = getattr(os.path, "isjunction", None)
    return path.is_symlink() or bool(is_junction and is_junction(path))


def _drop_link(path: Path) -> None:
    try:
        path.unlink()
    except (IsADirectoryError, PermissionError):
        # Windows directory links and junctions only go away with rmdir
        os.rmdir(path)


def remove_path(path: PathLike) -> None:
    """
    Delete whatever sits at path. Links are removed, never followed.

    Nothing happens if path does not exist.
    """
    path = Path(path)
    if _is_link(path):
        _drop_link(path)
    elif path.is_dir():
        safe_rmtree(path)
    elif path.exists():
        path.unlink()


def create_symlink(target: PathLike, link_path: PathLike) -> None:
    """
    Point link_path at target, replacing a previous link or file.

    A real directory at link_path is left alone and reported as an error.
    Windows processes without the symlink privilege get a junction for
    directory targets.

    Raises:
        LinkCreationError: If the link cannot be created
    """
    target = Path(target).resolve()
    link_path = Path(link_path)
    link_path.parent.mkdir(parents=True, exist_ok=True)

    if _is_link(link_path):
        _drop_link(link_path)
    elif link_path.is_dir():
        raise LinkCreationError(
            f"{link_path} is a directory, not a link; remove it to continue"
        )
    elif link_path.exists():
        link_path.unlink()

    try:
        os.symlink(target, link_path, target_is_directory=target.is_dir())
    except OSError as e:
        if not (IS_WINDOWS and target.is_dir()):
            raise LinkCreationError(f"Cannot link {link_path} -> {target}: {e}") from e
        _make_junction(target, link_path)


def _make_junction(target: Path, link_path: Path) -> None:
    proc = subprocess.run(
        ["cmd", "/c", "mklink", "/J", str(link_path), str(target)],
        capture_output=True,
        text=True,
        check=False,
    )
    if proc.returncode != 0:
        raise LinkCreationError(
            f"Cannot create junction {link_path} -> {target}: {proc.stderr.strip()}"
        )


# ============================================================================
# Archives
# ============================================================================


def _ensure_inside(name: str, root: Path) -> None:
    if not (root / name).resolve().is_relative_to(root.resolve()):
        raise InsecureArchiveError(
            f"Refusing to extract '{name}': it would be written outside {root}"
        )


def _unzip(
    archive: Path, destination: Path, progress: Optional[ExtractProgress], _mode: str
) -> None:
    with zipfile.ZipFile(archive) as zf:
        entries = zf.infolist()
        for entry in entries:
            _ensure_inside(entry.filename, destination)

        for done, entry in enumerate(entries, start=1):
            written = Path(zf.extract(entry, destination))
            # zip keeps Unix permissions in the high 16 bits; the Godot binary needs +x
            mode = (entry.external_attr >> 16) & 0o777
            if mode and not entry.is_dir():
                written.chmod(mode)
            if progress:
                progress(done, len(entries))


def _untar(
    archive: Path, destination: Path, progress: Optional[ExtractProgress], mode: str
) -> None:
    with tarfile.open(archive, mode) as tar:
        entries = tar.getmembers()
        for entry in entries:
            _ensure_inside(entry.name, destination)
        if sys.version_info >= (3, 12):
            tar.extractall(destination, filter="data")
        else:
            tar.extractall(destination)
        if progress:
            progress(len(entries), len(entries))


# Longest suffixes first so ".tar.gz" wins over ".tar"
_EXTRACTORS = [
    ((".zip", ".tpz"), _unzip, "r"),
    ((".tar.gz", ".tgz"), _untar, "r:gz"),
    ((".tar.xz",), _untar, "r:xz"),
    ((".tar.bz2", ".tbz2"), _untar, "r:bz2"),
    ((".tar",), _untar, "r:"),
]


def extract_archive(
    archive_path: PathLike,
    destination: PathLike,
    progress_callback: Optional[ExtractProgress] = None,
) -> None:
    """
    Unpack archive_path into destination.

    The format is chosen from the file name: .zip and .tpz (export
    templates are zips), .tar.gz/.tgz, .tar.xz, .tar.bz2 and plain .tar.

    Args:
        archive_path: Archive to unpack
        destination: Directory receiving the members (created if missing)
        progress_callback: Called with (members done, members total)

    Raises:
        UnsupportedArchiveFormat: If the extension is not one of the above
        InsecureArchiveError: If a member would land outside destination
        ArchiveExtractionError: If the archive is missing or unreadable

    Example:
        >>> extract_archive("Godot_v4.4.1-stable_linux.x86_64.zip", "versions/godot_4.4.1-stable")
    """
    archive_path = Path(archive_path)
    destination = Path(destination)

    if not archive_path.exists():
        raise ArchiveExtractionError(f"Archive not found: {archive_path}")

    name = archive_path.name.lower()
    for suffixes, extractor, mode in _EXTRACTORS:
        if name.endswith(suffixes):
            break
    else:
        raise UnsupportedArchiveFormat(
            f"Don't know how to extract '{archive_path.name}' "
            "(expected .zip, .tpz, .tar.gz, .tgz, .tar.xz, .tar.bz2 or .tar)"
        )

    destination.mkdir(parents=True, exist_ok=True)
    try:
        extractor(archive_path, destination, progress_callback, mode)
    except ArchiveExtractionError:
        raise
    except (OSError, zipfile.BadZipFile, tarfile.TarError) as e:
        raise ArchiveExtractionError(f"Could not extract {archive_path}: {e}") from e


# ============================================================================
# Writes and trees
# ============================================================================


def atomic_write(
    file_path: PathLike, content: Union[str, bytes], encoding: str = "utf-8"
) -> None:
    """
    Replace file_path with content in a single rename.

    The previous file survives untouched if anything goes wrong.

    Example:
        >>> atomic_write("config.yaml", "terminal:\\n  display_emoji: false\\n")
    """
    file_path = Path(file_path)
    file_path.parent.mkdir(parents=True, exist_ok=True)

    # Same directory as the target so the rename never crosses filesystems
    fd, scratch = tempfile.mkstemp(
        dir=file_path.parent, prefix=f".{file_path.name}.", suffix=".tmp"
    )
    scratch_path = Path(scratch)
    binary = isinstance(content, bytes)

    try:
        with open(fd, "wb" if binary else "w", encoding=None if binary else encoding) as out:
            out.write(content)
        scratch_path.replace(file_path)
    except BaseException:
        scratch_path.unlink(missing_ok=True)
        raise


def _force_remove(func, failed_path, _exc):
    # git marks its object files read-only, which blocks deletion on Windows
    os.chmod(failed_path, stat.S_IWRITE)
    func(failed_path)


def safe_rmtree(path: PathLike, require_prefix: Optional[PathLike] = None) -> None:
    """
    Delete a directory tree, read-only files included.

    Args:
        path: Directory to delete; a missing one is ignored
        require_prefix: When given, path must live under it

    Raises:
        ValueError: If path is outside require_prefix
        FilesystemError: If path is not a directory or cannot be deleted
    """
    path = Path(path).absolute()

    if require_prefix is not None:
        prefix = Path(require_prefix).resolve()
        if not path.resolve().is_relative_to(prefix):
            raise ValueError(f"Refusing to delete '{path}': it is outside '{prefix}'")

    if not path.exists():
        return
    if not path.is_dir():
        raise FilesystemError(f"Not a directory: {path}")

    try:
        if sys.version_info >= (3, 12):
            shutil.rmtree(path, onexc=_force_remove)
        else:
            shutil.rmtree(path, onerror=_force_remove)
    except OSError as e:
        raise FilesystemError(f"Could not delete '{path}': {e}") from e


def recursive_copy(source: PathLike, destination: PathLike, ignore: Iterable[str] = ()) -> int:
    """
    Copy the contents of source into destination, overwriting files.

    Names in ignore are skipped wherever they appear in the tree.

    Returns:
        How many files were copied

    Raises:
        FilesystemError: If source does not exist or is not a directory

    Example:
        >>> recursive_copy(".addons/dialogue", "addons/dialogue", ignore={".git"})
    """
    source = Path(source)
    destination = Path(destination)
    skipped = set(ignore)

    if not source.exists():
        raise FilesystemError(f"Copy source does not exist: {source}")
    if not source.is_dir():
        raise FilesystemError(f"Copy source is not a directory: {source}")

    count = 0
    for current, subdirs, names in os.walk(source):
        subdirs[:] = [d for d in subdirs if d not in skipped]
        target_dir = destination / Path(current).relative_to(source)
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in names:
            if name not in skipped:
                shutil.copy2(Path(current) / name, target_dir / name)
                count += 1
    return count


__all__ = [
    "remove_path",
    "create_symlink",
    "extract_archive",
    "atomic_write",
    "safe_rmtree",
    "recursive_copy",
]
