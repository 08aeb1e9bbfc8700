"""
Unit tests for platform detection and the home directory layout.
"""

from unittest.mock import patch

from gdenv.core.directory import (
    ensure_home_structure,
    get_godot_dir,
    get_home_dir,
    get_lock_dir,
)
from gdenv.core.platform import (
    LINUX,
    MACOS,
    UNKNOWN,
    WINDOWS,
    SystemInfo,
    detect_system_info,
)


def detect(system, machine):
    with patch("platform.system", return_value=system), patch(
        "platform.machine", return_value=machine
    ):
        detect_system_info.cache_clear()
        return detect_system_info()


class TestDetectSystemInfo:
    """Test detect_system_info function."""

    def test_linux_x64(self):
        """Test Linux on x86_64."""
        info = detect("Linux", "x86_64")

        assert info.os == LINUX
        assert info.arch == "x64"
        assert info.is_linux

    def test_macos_arm64(self):
        """Test Darwin maps to macos."""
        info = detect("Darwin", "arm64")

        assert info.os == MACOS
        assert info.arch == "arm64"

    def test_windows_amd64(self):
        """Test Windows AMD64."""
        info = detect("Windows", "AMD64")

        assert info.os == WINDOWS
        assert info.arch == "x64"

    def test_architectures(self):
        """Test architecture normalization."""
        assert detect("Linux", "aarch64").arch == "arm64"
        assert detect("Linux", "i686").arch == "x86"
        assert detect("Linux", "armv7l").arch == "arm"
        assert detect("Linux", "riscv64").arch == "riscv64"

    def test_unknown_os(self):
        """Test unknown systems are reported, not rejected."""
        assert detect("Plan9", "x86_64").os == UNKNOWN

    def test_cached(self):
        """Test detection runs once per process."""
        detect_system_info.cache_clear()

        assert detect_system_info() is detect_system_info()


class TestSystemInfo:
    """Test SystemInfo value."""

    def test_platform_string(self):
        """Test canonical platform string."""
        assert SystemInfo(MACOS, "arm64").platform_string() == "macos-arm64"
        assert str(SystemInfo(LINUX, "x64", "6.1")) == "linux-x64 v6.1"


class TestDirectories:
    """Test the gdenv home layout."""

    def test_home_from_environment(self, gdenv_home):
        """Test GDENV_HOME overrides the default location."""
        assert get_home_dir() == gdenv_home
        assert get_godot_dir() == gdenv_home / "godot"
        assert get_lock_dir() == gdenv_home / "lock"

    def test_default_home(self, monkeypatch, tmp_path):
        """Test the default home on Unix-like systems."""
        monkeypatch.delenv("GDENV_HOME", raising=False)
        with patch("pathlib.Path.home", return_value=tmp_path):
            assert get_home_dir(SystemInfo(LINUX, "x64")) == tmp_path / ".gdenv"

    def test_windows_home(self, monkeypatch, tmp_path):
        """Test the default home on Windows uses LOCALAPPDATA."""
        monkeypatch.delenv("GDENV_HOME", raising=False)
        monkeypatch.setenv("LOCALAPPDATA", str(tmp_path))

        assert get_home_dir(SystemInfo(WINDOWS, "x64")) == tmp_path / "gdenv"

    def test_ensure_home_structure(self, gdenv_home):
        """Test all directories are created."""
        ensure_home_structure()

        for relative in ("lock", "godot/cache", "godot/versions", "godot/bin"):
            assert (gdenv_home / relative).is_dir()
