"""
File access seam for project probes.

Project file parsers never open files directly; they go through a
FileClient so tests can feed them in-memory content and so path joining
uses a single, injectable separator.

Usage:
    client = FileClient()
    with client.get_reader(client.combine(project_root, "Game.csproj")) as reader:
        text = reader.read()
"""

import fnmatch
import io
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, TextIO

from gdenv.core.filesystem import atomic_write

logger = logging.getLogger(__name__)


class FileClient:
    """
    Reads, writes and lists files on the local disk.

    Attributes:
        separator: Path separator used by combine()
    """

    def __init__(self, separator: str = os.sep):
        self.separator = separator

    def combine(self, *parts: str) -> str:
        """
        Join path parts with the client's separator.

        Example:
            >>> FileClient("/").combine("project", "global.json")
            'project/global.json'
        """
        cleaned = [str(p) for p in parts if str(p)]
        if not cleaned:
            return ""
        head, *rest = cleaned
        result = head.rstrip("/\\") if rest else head
        for part in rest:
            part = part.strip("/\\")
            if part:
                result = f"{result}{self.separator}{part}"
        return result

    def exists(self, path: str) -> bool:
        return Path(path).is_file()

    def get_reader(self, path: str) -> TextIO:
        """
        Open a file for reading text.

        Raises:
            FileNotFoundError: If the file does not exist
        """
        return open(path, "r", encoding="utf-8-sig")

    def read_text(self, path: str) -> str:
        with self.get_reader(path) as reader:
            return reader.read()

    def write_text(self, path: str, content: str) -> None:
        logger.debug(f"Writing {path}")
        atomic_write(path, content)

    def glob(self, directory: str, pattern: str) -> List[str]:
        """List files directly inside directory matching a glob pattern, sorted."""
        root = Path(directory)
        if not root.is_dir():
            return []
        return sorted(
            self.combine(directory, entry.name)
            for entry in root.iterdir()
            if entry.is_file() and fnmatch.fnmatch(entry.name, pattern)
        )


class MemoryFileClient(FileClient):
    """
    FileClient over an in-memory mapping of path to content.

    Used by tests and dry runs; paths are compared as plain strings.
    """

    def __init__(self, files: Optional[Dict[str, str]] = None, separator: str = "/"):
        super().__init__(separator)
        self.files: Dict[str, str] = dict(files or {})

    def exists(self, path: str) -> bool:
        return path in self.files

    def get_reader(self, path: str) -> TextIO:
        if path not in self.files:
            raise FileNotFoundError(path)
        return io.StringIO(self.files[path])

    def write_text(self, path: str, content: str) -> None:
        self.files[path] = content

    def glob(self, directory: str, pattern: str) -> List[str]:
        prefix = self.combine(directory, "")
        prefix = prefix if prefix.endswith(self.separator) else prefix + self.separator
        matches = []
        for path in self.files:
            if not path.startswith(prefix):
                continue
            name = path[len(prefix):]
            if self.separator not in name and fnmatch.fnmatch(name, pattern):
                matches.append(path)
        return sorted(matches)


__all__ = ["FileClient", "MemoryFileClient"]
