"""
Conversions between GodotVersion values and their textual forms.

Three forms are in use:

- Release form (``4.4.1-stable``, ``4.0-beta3``): the form Godot builds are
  published under; a zero patch is omitted. Used in download URLs and
  installer file names.
- Sharp form (``4.4.1``, ``4.4.0-beta.2``): the NuGet version of the
  Godot.NET.Sdk package, as written in global.json.
- IO form: what users type. Accepts the release form, the sharp form and a
  bare ``major.minor[.patch]`` (meaning stable); formats as release form.

Usage:
    converter = ReleaseVersionStringConverter()
    version = converter.parse_version("4.0-beta3")
    converter.version_string(version)  # "4.0-beta3"
"""

import re
from abc import ABC, abstractmethod

from gdenv.core.exceptions import VersionParseError
from gdenv.godot.version import NO_LABEL_NUMBER, STABLE_LABEL, GodotVersion


class VersionStringConverter(ABC):
    """Parses and formats one textual form of Godot versions."""

    @abstractmethod
    def parse_version(self, text: str) -> GodotVersion:
        """
        Parse a version string.

        Raises:
            VersionParseError: If the text does not match the form
        """

    @abstractmethod
    def version_string(self, version: GodotVersion) -> str:
        """Format a version in this form."""

    @abstractmethod
    def label_string(self, version: GodotVersion) -> str:
        """Format the release label part of a version."""


def _build_version(major: str, minor: str, patch: str, label: str, number: str):
    return GodotVersion(
        int(major),
        int(minor),
        int(patch) if patch else 0,
        label or STABLE_LABEL,
        int(number) if number else NO_LABEL_NUMBER,
    )


class ReleaseVersionStringConverter(VersionStringConverter):
    """
    Strict release form: ``major.minor[.patch]-(stable|<label><number>)``.

    Every published Godot build carries a label; stable releases have no
    label number and prereleases always have one.
    """

    PATTERN = re.compile(r"([0-9]+)\.([0-9]+)(?:\.([0-9]+))?-(?:(stable)|([a-z]+)([0-9]+))")

    def parse_version(self, text: str) -> GodotVersion:
        match = self.PATTERN.fullmatch(text)
        if not match:
            raise VersionParseError(text)
        major, minor, patch, stable, label, number = match.groups()
        return _build_version(major, minor, patch, stable or label, number)

    def version_string(self, version: GodotVersion) -> str:
        result = f"{version.major}.{version.minor}"
        if version.patch != 0:
            result += f".{version.patch}"
        return f"{result}-{self.label_string(version)}"

    def label_string(self, version: GodotVersion) -> str:
        if version.is_stable:
            return version.label
        return f"{version.label}{version.label_number}"


class SharpVersionStringConverter(VersionStringConverter):
    """
    NuGet form of the Godot.NET.Sdk package: ``major.minor.patch[-label.number]``.

    Example:
        >>> SharpVersionStringConverter().version_string(GodotVersion(4, 4, 0, "beta", 2))
        '4.4.0-beta.2'
    """

    PATTERN = re.compile(r"([0-9]+)\.([0-9]+)\.([0-9]+)(?:-([a-z]+)\.?([0-9]+))?")

    def parse_version(self, text: str) -> GodotVersion:
        match = self.PATTERN.fullmatch(text)
        if not match:
            raise VersionParseError(text)
        major, minor, patch, label, number = match.groups()
        return _build_version(major, minor, patch, label, number)

    def version_string(self, version: GodotVersion) -> str:
        result = f"{version.major}.{version.minor}.{version.patch}"
        if version.is_stable:
            return result
        return f"{result}-{self.label_string(version)}"

    def label_string(self, version: GodotVersion) -> str:
        if version.is_stable:
            return version.label
        return f"{version.label}.{version.label_number}"


class IoVersionStringConverter(VersionStringConverter):
    """
    Permissive converter for versions typed by users.

    Accepts ``4.4.1-stable``, ``4.4-beta3``, ``4.4.0-beta.3``, ``4.4.1`` and
    ``4.4``; output uses the release form. A leading ``v`` is ignored.
    """

    PATTERN = re.compile(
        r"v?([0-9]+)\.([0-9]+)(?:\.([0-9]+))?(?:-(?:(stable)|([a-z]+)\.?([0-9]+)))?"
    )

    def __init__(self):
        self._release = ReleaseVersionStringConverter()

    def parse_version(self, text: str) -> GodotVersion:
        match = self.PATTERN.fullmatch(text.strip().lower())
        if not match:
            raise VersionParseError(text)
        major, minor, patch, stable, label, number = match.groups()
        return _build_version(major, minor, patch, stable or label, number)

    def version_string(self, version: GodotVersion) -> str:
        return self._release.version_string(version)

    def label_string(self, version: GodotVersion) -> str:
        return self._release.label_string(version)


__all__ = [
    "VersionStringConverter",
    "ReleaseVersionStringConverter",
    "SharpVersionStringConverter",
    "IoVersionStringConverter",
]
