"""
Godot version identity.

A GodotVersion is an immutable value: major, minor and patch numbers, a
release label ("stable" or a lowercase prerelease tag such as "beta")
with its ordinal, and whether the .NET (mono) build is meant.

Textual forms live in gdenv.godot.version_converter; this module only
holds the value, its invariants and its ordering.

Usage:
    from gdenv.godot.version import GodotVersion

    version = GodotVersion(4, 4, 1, "stable", -1)
    beta = GodotVersion(4, 5, 0, "beta", 2, is_dotnet=True)
    assert version < beta
"""

import re
from dataclasses import dataclass, replace

from gdenv.core.exceptions import InvalidVersionError

STABLE_LABEL = "stable"

# Sentinel label number for stable releases
NO_LABEL_NUMBER = -1

# Prerelease labels in release order; unknown labels sort before all of these
LABEL_RANKS = {
    "dev": 0,
    "alpha": 1,
    "beta": 2,
    "rc": 3,
    STABLE_LABEL: 4,
}

_LABEL_PATTERN = re.compile(r"[a-z]+")


@dataclass(frozen=True)
class GodotVersion:
    """
    A Godot engine version.

    Attributes:
        major: Major version number
        minor: Minor version number
        patch: Patch number (0 is omitted from release strings)
        label: "stable" or a lowercase prerelease tag ("dev", "alpha", "beta", "rc")
        label_number: Prerelease ordinal, -1 for stable releases
        is_dotnet: True for the .NET-enabled build

    Raises:
        InvalidVersionError: If the components are inconsistent

    Example:
        >>> GodotVersion(4, 0, 0, "beta", 3)
        GodotVersion(major=4, minor=0, patch=0, label='beta', label_number=3, is_dotnet=False)
    """

    major: int
    minor: int
    patch: int
    label: str
    label_number: int
    is_dotnet: bool = False

    def __post_init__(self):
        for name in ("major", "minor", "patch", "label_number"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidVersionError(f"{name} must be an integer, got {value!r}")

        if self.major < 0 or self.minor < 0 or self.patch < 0:
            raise InvalidVersionError(
                f"Version numbers must be non-negative: "
                f"{self.major}.{self.minor}.{self.patch}"
            )

        if self.label == STABLE_LABEL:
            if self.label_number != NO_LABEL_NUMBER:
                raise InvalidVersionError(
                    f"Stable versions have no label number, got {self.label_number}"
                )
        else:
            if not isinstance(self.label, str) or not _LABEL_PATTERN.fullmatch(self.label):
                raise InvalidVersionError(
                    f"Label must be 'stable' or lowercase letters, got {self.label!r}"
                )
            if self.label_number < 0:
                raise InvalidVersionError(
                    f"Prerelease label '{self.label}' requires a label number >= 0"
                )

    @classmethod
    def stable(cls, major: int, minor: int, patch: int = 0, is_dotnet: bool = False):
        """Build a stable release version."""
        return cls(major, minor, patch, STABLE_LABEL, NO_LABEL_NUMBER, is_dotnet)

    @property
    def is_stable(self) -> bool:
        return self.label == STABLE_LABEL

    def with_dotnet(self) -> "GodotVersion":
        """Same version, .NET build."""
        return replace(self, is_dotnet=True)

    def without_dotnet(self) -> "GodotVersion":
        """Same version, standard build."""
        return replace(self, is_dotnet=False)

    def sort_key(self) -> tuple:
        """
        Key ordering versions by release.

        The .NET flag is not part of the order: a version and its .NET
        sibling are neither smaller nor greater than each other, so both
        <= and >= hold between them while == (which compares every field)
        does not.
        """
        rank = LABEL_RANKS.get(self.label, -1)
        # Unknown labels rank below "dev" and sort alphabetically among themselves
        unknown_label = "" if rank >= 0 else self.label
        return (self.major, self.minor, self.patch, rank, unknown_label, self.label_number)

    def __lt__(self, other):
        if not isinstance(other, GodotVersion):
            return NotImplemented
        return self.sort_key() < other.sort_key()

    def __le__(self, other):
        if not isinstance(other, GodotVersion):
            return NotImplemented
        return self.sort_key() <= other.sort_key()

    def __gt__(self, other):
        if not isinstance(other, GodotVersion):
            return NotImplemented
        return self.sort_key() > other.sort_key()

    def __ge__(self, other):
        if not isinstance(other, GodotVersion):
            return NotImplemented
        return self.sort_key() >= other.sort_key()

    def __str__(self) -> str:
        text = f"{self.major}.{self.minor}"
        if self.patch:
            text += f".{self.patch}"
        text += f"-{self.label}"
        if not self.is_stable:
            text += str(self.label_number)
        if self.is_dotnet:
            text += " (dotnet)"
        return text


__all__ = [
    "GodotVersion",
    "STABLE_LABEL",
    "NO_LABEL_NUMBER",
    "LABEL_RANKS",
]
