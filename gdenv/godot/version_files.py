"""
Project files that declare which Godot version a project needs.

Three sources are probed, in order:

1. ``global.json``: ``{"msbuild-sdks": {"Godot.NET.Sdk": "4.4.1"}}``
2. ``*.csproj``: ``<Project Sdk="Godot.NET.Sdk/4.4.1">`` (read only)
3. ``.godotrc``: a single version string, optionally followed by ``dotnet``

Every parser reads through a FileClient and never opens files itself.

Usage:
    version = find_project_version("path/to/project", FileClient())
    if version is None:
        print("Project does not pin a Godot version")
"""

import json
import logging
import re
import xml.etree.ElementTree as ElementTree
from abc import ABC, abstractmethod
from typing import List, Optional

from gdenv.core.exceptions import ConfigError, UnsupportedOperationError, VersionParseError
from gdenv.core.file_client import FileClient
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import (
    IoVersionStringConverter,
    SharpVersionStringConverter,
)

logger = logging.getLogger(__name__)

GODOT_SDK = "Godot.NET.Sdk"
GLOBAL_JSON_FILE_NAME = "global.json"
GODOTRC_FILE_NAME = ".godotrc"
DOTNET_MARKER = "dotnet"

_CSPROJ_SDK_VERSION = re.compile(r"^(\d+)\.(\d+)\.(\d+)$")


class GodotVersionFile(ABC):
    """A project file that may declare the project's Godot version."""

    def __init__(self, file_path: str):
        self.file_path = file_path

    @abstractmethod
    def parse_godot_version(self, file_client: FileClient) -> Optional[GodotVersion]:
        """
        Read the declared version.

        Returns:
            The declared version, or None if the file expresses no opinion

        Raises:
            VersionParseError: If a declared version is malformed
        """

    @abstractmethod
    def write_godot_version(self, version: GodotVersion, file_client: FileClient):
        """Declare a version in the file."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.file_path!r})"


class CsprojFile(GodotVersionFile):
    """
    C# project file using the Godot.NET.Sdk MSBuild SDK.

    The Sdk attribute of the root element is inspected:

    - ``Microsoft.NET.Sdk`` (any other SDK): None
    - ``Godot.NET.Sdk`` without a version: None (the version lives elsewhere)
    - ``Godot.NET.Sdk/4.4.1``: 4.4.1-stable, .NET build
    - ``Godot.NET.Sdk/<anything else>``: VersionParseError
    """

    def parse_godot_version(self, file_client: FileClient) -> Optional[GodotVersion]:
        with file_client.get_reader(self.file_path) as reader:
            content = reader.read()

        try:
            root = ElementTree.fromstring(content)
        except ElementTree.ParseError as e:
            raise ConfigError(f"Invalid project file: {e}", self.file_path) from e

        sdk = root.get("Sdk", "").strip()
        if not sdk.startswith(GODOT_SDK):
            logger.debug(f"{self.file_path} does not use {GODOT_SDK}")
            return None

        identifier, separator, version_text = sdk.partition("/")
        if identifier != GODOT_SDK:
            return None
        if not separator:
            logger.debug(f"{self.file_path} does not pin a {GODOT_SDK} version")
            return None

        match = _CSPROJ_SDK_VERSION.match(version_text)
        if not match:
            raise VersionParseError(
                version_text,
                f'Invalid {GODOT_SDK} version "{version_text}" in {self.file_path}',
            )
        major, minor, patch = (int(group) for group in match.groups())
        return GodotVersion.stable(major, minor, patch, is_dotnet=True)

    def write_godot_version(self, version: GodotVersion, file_client: FileClient):
        raise UnsupportedOperationError(
            "Writing the Godot version to a .csproj file is not supported; "
            f"use {GLOBAL_JSON_FILE_NAME} instead."
        )


class GlobalJsonFile(GodotVersionFile):
    """
    .NET global.json with an ``msbuild-sdks`` entry for Godot.NET.Sdk.

    Versions are written in NuGet form (``4.4.0-beta.2``); other keys in the
    file are preserved when writing.
    """

    def __init__(self, file_path: str):
        super().__init__(file_path)
        self.converter = SharpVersionStringConverter()

    def _load(self, file_client: FileClient) -> dict:
        with file_client.get_reader(self.file_path) as reader:
            content = reader.read()
        if not content.strip():
            return {}
        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            raise ConfigError(f"Invalid JSON: {e}", self.file_path) from e
        if not isinstance(data, dict):
            raise ConfigError("Expected a JSON object", self.file_path)
        return data

    def parse_godot_version(self, file_client: FileClient) -> Optional[GodotVersion]:
        sdks = self._load(file_client).get("msbuild-sdks") or {}
        version_text = sdks.get(GODOT_SDK) if isinstance(sdks, dict) else None
        if not version_text:
            return None
        return self.converter.parse_version(str(version_text).strip()).with_dotnet()

    def write_godot_version(self, version: GodotVersion, file_client: FileClient):
        data = self._load(file_client) if file_client.exists(self.file_path) else {}
        sdks = data.get("msbuild-sdks")
        if not isinstance(sdks, dict):
            sdks = {}
        sdks[GODOT_SDK] = self.converter.version_string(version)
        data["msbuild-sdks"] = sdks
        file_client.write_text(self.file_path, json.dumps(data, indent=2) + "\n")
        logger.info(f"Wrote Godot {version} to {self.file_path}")


class GodotrcFile(GodotVersionFile):
    """
    Plain-text ``.godotrc`` file: ``4.4.1-stable`` or ``4.4.1-stable dotnet``.
    """

    def __init__(self, file_path: str):
        super().__init__(file_path)
        self.converter = IoVersionStringConverter()

    def parse_godot_version(self, file_client: FileClient) -> Optional[GodotVersion]:
        with file_client.get_reader(self.file_path) as reader:
            lines = [line.strip() for line in reader.read().splitlines()]
        text = next((line for line in lines if line and not line.startswith("#")), "")
        if not text:
            return None

        words = text.split()
        is_dotnet = len(words) > 1 and words[-1].lower() == DOTNET_MARKER
        if is_dotnet:
            words = words[:-1]
        version = self.converter.parse_version(" ".join(words))
        return version.with_dotnet() if is_dotnet else version

    def write_godot_version(self, version: GodotVersion, file_client: FileClient):
        text = self.converter.version_string(version)
        if version.is_dotnet:
            text += f" {DOTNET_MARKER}"
        file_client.write_text(self.file_path, text + "\n")
        logger.info(f"Wrote Godot {version} to {self.file_path}")


def project_version_files(project_path: str, file_client: FileClient) -> List[GodotVersionFile]:
    """
    List the version files present in a project, in probing order.
    """
    files: List[GodotVersionFile] = []

    global_json = file_client.combine(project_path, GLOBAL_JSON_FILE_NAME)
    if file_client.exists(global_json):
        files.append(GlobalJsonFile(global_json))

    for csproj in file_client.glob(project_path, "*.csproj"):
        files.append(CsprojFile(csproj))

    godotrc = file_client.combine(project_path, GODOTRC_FILE_NAME)
    if file_client.exists(godotrc):
        files.append(GodotrcFile(godotrc))

    return files


def find_project_version(
    project_path: str, file_client: FileClient
) -> Optional[GodotVersion]:
    """
    Probe a project for the Godot version it declares.

    Returns:
        The first version declared by global.json, a .csproj or .godotrc,
        or None if no file declares one

    Raises:
        VersionParseError: If a file declares a malformed version
    """
    for version_file in project_version_files(project_path, file_client):
        version = version_file.parse_godot_version(file_client)
        if version is not None:
            logger.debug(f"Found Godot {version} in {version_file.file_path}")
            return version
    return None


__all__ = [
    "GODOT_SDK",
    "GodotVersionFile",
    "CsprojFile",
    "GlobalJsonFile",
    "GodotrcFile",
    "project_version_files",
    "find_project_version",
]
