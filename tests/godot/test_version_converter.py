"""
Unit tests for version string converters.
"""

import pytest

from gdenv.core.exceptions import VersionParseError
from gdenv.godot.version import GodotVersion
from gdenv.godot.version_converter import (
    IoVersionStringConverter,
    ReleaseVersionStringConverter,
    SharpVersionStringConverter,
)


class TestReleaseConverter:
    """Test the release form."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("4.4.1-stable", GodotVersion(4, 4, 1, "stable", -1)),
            ("4.0-beta3", GodotVersion(4, 0, 0, "beta", 3)),
            ("3.6-stable", GodotVersion(3, 6, 0, "stable", -1)),
            ("4.3-dev6", GodotVersion(4, 3, 0, "dev", 6)),
            ("4.0.0-stable", GodotVersion(4, 0, 0, "stable", -1)),
        ],
    )
    def test_parse(self, text, expected):
        """Test valid release strings."""
        assert ReleaseVersionStringConverter().parse_version(text) == expected

    @pytest.mark.parametrize(
        "text",
        [
            "4.4.1",
            "4.4-beta",
            "4.4-stable1",
            "v4.4-stable",
            "4.4.1-Stable",
            "4-stable",
            "",
            "4.4.1-stable\n",
            "\u0664.\u0664-stable",
            "4.4-beta\uff13",
        ],
    )
    def test_parse_invalid(self, text):
        """Test strings outside the release form are rejected."""
        with pytest.raises(VersionParseError):
            ReleaseVersionStringConverter().parse_version(text)

    def test_format(self):
        """Test a zero patch is omitted."""
        converter = ReleaseVersionStringConverter()

        assert converter.version_string(GodotVersion(4, 0, 0, "beta", 3)) == "4.0-beta3"
        assert converter.version_string(GodotVersion.stable(4, 4, 1)) == "4.4.1-stable"
        assert converter.label_string(GodotVersion(4, 5, 0, "rc", 2)) == "rc2"

    def test_round_trip(self):
        """Test formatting then parsing gives the same version."""
        converter = ReleaseVersionStringConverter()
        for text in ("4.4.1-stable", "4.0-beta3", "3.5.3-rc1"):
            assert converter.version_string(converter.parse_version(text)) == text


class TestSharpConverter:
    """Test the NuGet form used by Godot.NET.Sdk."""

    def test_parse(self):
        """Test stable and prerelease NuGet versions."""
        converter = SharpVersionStringConverter()

        assert converter.parse_version("4.4.1") == GodotVersion.stable(4, 4, 1)
        assert converter.parse_version("4.4.0-beta.2") == GodotVersion(4, 4, 0, "beta", 2)
        assert converter.parse_version("4.4.0-rc2") == GodotVersion(4, 4, 0, "rc", 2)

    @pytest.mark.parametrize("text", ["4.4", "4.4.1\n", "4.4.\u0661"])
    def test_parse_invalid(self, text):
        """Test the patch number is required and only ASCII digits count."""
        with pytest.raises(VersionParseError):
            SharpVersionStringConverter().parse_version(text)

    def test_format(self):
        """Test formatting keeps the patch and dots the label."""
        converter = SharpVersionStringConverter()

        assert converter.version_string(GodotVersion(4, 4, 0, "beta", 2)) == "4.4.0-beta.2"
        assert converter.version_string(GodotVersion.stable(4, 4, 0)) == "4.4.0"


class TestIoConverter:
    """Test the permissive user-facing form."""

    @pytest.mark.parametrize(
        "text, expected",
        [
            ("4.4.1-stable", GodotVersion.stable(4, 4, 1)),
            ("4.4.1", GodotVersion.stable(4, 4, 1)),
            ("4.4", GodotVersion.stable(4, 4)),
            ("v4.4", GodotVersion.stable(4, 4)),
            (" 4.4-BETA3 ", GodotVersion(4, 4, 0, "beta", 3)),
            ("4.4.0-beta.3", GodotVersion(4, 4, 0, "beta", 3)),
        ],
    )
    def test_parse(self, text, expected):
        """Test the accepted spellings."""
        assert IoVersionStringConverter().parse_version(text) == expected

    @pytest.mark.parametrize("text", ["latest", "\uff14.\uff14", "4.4-rc\u0662"])
    def test_parse_invalid(self, text):
        """Test garbage and non-ASCII digits are rejected."""
        with pytest.raises(VersionParseError):
            IoVersionStringConverter().parse_version(text)

    def test_formats_release_form(self):
        """Test output uses the release form."""
        converter = IoVersionStringConverter()

        assert converter.version_string(converter.parse_version("4.4")) == "4.4-stable"
