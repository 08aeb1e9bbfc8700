"""
Which OS and CPU gdenv runs on.

Detection happens once per process. Code that depends on the host takes a
SystemInfo argument instead of calling detect_system_info() itself, so tests
can hand it any platform.

Usage:
    from gdenv.core.platform import detect_system_info

    host = detect_system_info()
    if host.is_macos:
        ...
"""

import functools
import platform
from dataclasses import dataclass

WINDOWS = "windows"
MACOS = "macos"
LINUX = "linux"
UNKNOWN = "unknown"

# platform.system().lower() -> gdenv OS name
_OS_NAMES = {"windows": WINDOWS, "darwin": MACOS, "linux": LINUX}

# platform.machine().lower() -> gdenv architecture name
_MACHINE_NAMES = {
    "x86_64": "x64",
    "amd64": "x64",
    "x64": "x64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "i386": "x86",
    "i686": "x86",
    "x86": "x86",
}


def _normalize_machine(machine: str) -> str:
    if machine in _MACHINE_NAMES:
        return _MACHINE_NAMES[machine]
    if machine.startswith("arm"):
        return "arm"
    # Anything else (riscv64, ppc64le, ...) is kept as reported
    return machine


def _os_version(system: str) -> str:
    if system == "darwin":
        return platform.mac_ver()[0] or UNKNOWN
    if system == "linux":
        return platform.release()
    return platform.version()


@dataclass(frozen=True)
class SystemInfo:
    """
    Normalized description of a host.

    Attributes:
        os: Operating system ('windows', 'macos', 'linux' or 'unknown')
        arch: CPU architecture ('x64', 'x86', 'arm64', 'arm' or raw machine name)
        os_version: OS version string
    """

    os: str
    arch: str
    os_version: str = ""

    @property
    def is_windows(self) -> bool:
        return self.os == WINDOWS

    @property
    def is_macos(self) -> bool:
        return self.os == MACOS

    @property
    def is_linux(self) -> bool:
        return self.os == LINUX

    def platform_string(self) -> str:
        """
        "<os>-<arch>", as shown by `gdenv -v godot ...`.

        Example:
            >>> SystemInfo('linux', 'x64').platform_string()
            'linux-x64'
        """
        return f"{self.os}-{self.arch}"

    def __str__(self) -> str:
        if self.os_version:
            return f"{self.platform_string()} v{self.os_version}"
        return self.platform_string()


@functools.lru_cache(maxsize=1)
def detect_system_info() -> SystemInfo:
    """Describe the running host (cached after the first call)."""
    system = platform.system().lower()
    return SystemInfo(
        os=_OS_NAMES.get(system, UNKNOWN),
        arch=_normalize_machine(platform.machine().lower()),
        os_version=_os_version(system),
    )


def clear_system_info_cache():
    """Forget the cached host so the next detect_system_info() runs again."""
    detect_system_info.cache_clear()


__all__ = [
    "SystemInfo",
    "detect_system_info",
    "clear_system_info_cache",
    "WINDOWS",
    "MACOS",
    "LINUX",
    "UNKNOWN",
]
