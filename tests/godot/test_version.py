"""
Unit tests for GodotVersion.
"""

import pytest

from gdenv.core.exceptions import InvalidVersionError
from gdenv.godot.version import GodotVersion


class TestConstruction:
    """Test version invariants."""

    def test_stable(self):
        """Test the stable constructor."""
        version = GodotVersion.stable(4, 4, 1)

        assert version == GodotVersion(4, 4, 1, "stable", -1)
        assert version.is_stable
        assert not version.is_dotnet

    def test_prerelease(self):
        """Test a prerelease carries its ordinal."""
        version = GodotVersion(4, 5, 0, "beta", 2)

        assert not version.is_stable
        assert version.label_number == 2

    @pytest.mark.parametrize(
        "args",
        [
            (-1, 0, 0, "stable", -1),
            (4, 0, 0, "stable", 1),
            (4, 0, 0, "beta", -1),
            (4, 0, 0, "Beta", 1),
            (4, 0, 0, "rc-1", 1),
            (4, 0, 0, "", 1),
            (4, "0", 0, "stable", -1),
            (4, True, 0, "stable", -1),
        ],
    )
    def test_invalid(self, args):
        """Test inconsistent components are rejected."""
        with pytest.raises(InvalidVersionError):
            GodotVersion(*args)

    def test_immutable(self):
        """Test versions cannot be modified."""
        version = GodotVersion.stable(4, 4)

        with pytest.raises(AttributeError):
            version.major = 5

    def test_dotnet_variants(self):
        """Test with_dotnet / without_dotnet only change the flag."""
        version = GodotVersion.stable(4, 4, 1)

        assert version.with_dotnet().is_dotnet
        assert version.with_dotnet().without_dotnet() == version
        assert version.with_dotnet() != version


class TestOrdering:
    """Test release ordering."""

    def test_numbers_then_labels(self):
        """Test releases sort by numbers, then dev < alpha < beta < rc < stable."""
        ordered = [
            GodotVersion(3, 6, 0, "stable", -1),
            GodotVersion(4, 0, 0, "dev", 1),
            GodotVersion(4, 0, 0, "alpha", 2),
            GodotVersion(4, 0, 0, "beta", 3),
            GodotVersion(4, 0, 0, "beta", 10),
            GodotVersion(4, 0, 0, "rc", 1),
            GodotVersion(4, 0, 0, "stable", -1),
            GodotVersion(4, 0, 1, "stable", -1),
            GodotVersion(4, 10, 0, "stable", -1),
        ]

        assert sorted(reversed(ordered)) == ordered

    def test_unknown_labels_first(self):
        """Test unknown labels sort before dev."""
        assert GodotVersion(4, 0, 0, "custom", 1) < GodotVersion(4, 0, 0, "dev", 1)

    def test_dotnet_not_ordered(self):
        """Test a version and its .NET sibling are neither smaller nor greater."""
        version = GodotVersion.stable(4, 4)
        dotnet = version.with_dotnet()

        assert not version < dotnet
        assert not dotnet < version
        assert not version > dotnet
        assert not dotnet > version

    def test_dotnet_sibling_is_within_bounds(self):
        """Test <= and >= follow the release order, not field equality."""
        version = GodotVersion.stable(4, 4, 1)
        dotnet = version.with_dotnet()

        assert version != dotnet
        assert version <= dotnet
        assert version >= dotnet
        assert dotnet <= version
        assert dotnet >= version
        assert max(version, GodotVersion(4, 5, 0, "beta", 1).with_dotnet()).is_dotnet


class TestStr:
    """Test display form."""

    def test_str(self):
        """Test the display form omits a zero patch and marks .NET builds."""
        assert str(GodotVersion(4, 0, 0, "beta", 3)) == "4.0-beta3"
        assert str(GodotVersion.stable(4, 4, 1, is_dotnet=True)) == "4.4.1-stable (dotnet)"
