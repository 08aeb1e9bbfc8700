"""
Centralized exception hierarchy for gdenv.

Every error gdenv raises on purpose derives from GdenvError. The
subclasses let callers tell bad input, unsupported hosts, failing tools
and cancellation apart.
"""

from typing import Optional, Sequence

from filelock import Timeout as LockTimeout


# ============================================================================
# Base Exceptions
# ============================================================================


class GdenvError(Exception):
    """Base exception for all gdenv errors."""

    pass


# ============================================================================
# Version Exceptions
# ============================================================================


class VersionParseError(GdenvError, ValueError):
    """Raised when a version string does not match a known version pattern."""

    def __init__(self, text: str, message: str = ""):
        self.text = text
        super().__init__(
            message or f'Couldn\'t match "{text}" to known Godot version patterns.'
        )


class InvalidVersionError(GdenvError, ValueError):
    """Raised when version components violate the version invariants."""

    pass


# ============================================================================
# Platform / Operation Exceptions
# ============================================================================


class UnsupportedOperationError(GdenvError, NotImplementedError):
    """Raised for operations that are not supported in the current context."""

    pass


class UnknownPlatformError(GdenvError):
    """Raised when a platform provider is requested for an unknown OS."""

    def __init__(self, os_name: str):
        self.os_name = os_name
        super().__init__(
            f"Cannot create a platform for an unknown operating system: {os_name}"
        )


# ============================================================================
# External Tool Exceptions
# ============================================================================


class ProcessError(GdenvError):
    """Raised when an external process exits with a non-zero code."""

    def __init__(
        self,
        exe: str,
        args: Sequence[str],
        exit_code: int,
        stdout: str = "",
        stderr: str = "",
    ):
        self.exe = exe
        self.args_list = list(args)
        self.exit_code = exit_code
        self.stdout = stdout
        self.stderr = stderr
        command = " ".join([exe, *self.args_list])
        msg = f"Command '{command}' failed with exit code {exit_code}"
        if stderr.strip():
            msg += f":\n{stderr.strip()}"
        super().__init__(msg)


class InstallCancelledError(GdenvError):
    """Raised when an installation is cancelled by the caller."""

    pass


class AddonInstallError(GdenvError):
    """Raised when one step of an addon installation fails."""

    def __init__(self, addon_name: str, step: str, message: str):
        self.addon_name = addon_name
        self.step = step
        super().__init__(f"Addon '{addon_name}' failed while {step}: {message}")


class GodotInstallError(GdenvError):
    """Raised when downloading or extracting a Godot build fails."""

    pass


# ============================================================================
# Filesystem Exceptions
# ============================================================================


class FilesystemError(GdenvError):
    """A file or directory operation failed."""

    pass


class LinkCreationError(FilesystemError):
    """Failed to create a symbolic link."""

    pass


class ArchiveExtractionError(FilesystemError):
    """Unpacking a Godot or template archive failed."""

    pass


class UnsupportedArchiveFormat(ArchiveExtractionError):
    """The archive file name has no extension gdenv can unpack."""

    pass


class InsecureArchiveError(ArchiveExtractionError):
    """An archive member would be written outside the destination."""

    pass


# ============================================================================
# Network / Config Exceptions
# ============================================================================


class DownloadError(GdenvError):
    """Raised when a download fails."""

    pass


class ChecksumError(DownloadError):
    """Raised when checksum verification fails."""

    pass


class ConfigError(GdenvError):
    """A settings file or addons manifest is malformed."""

    def __init__(self, message: str, path: Optional[str] = None):
        self.path = path
        if path:
            message = f"{path}: {message}"
        super().__init__(message)


__all__ = [
    "GdenvError",
    "VersionParseError",
    "InvalidVersionError",
    "UnsupportedOperationError",
    "UnknownPlatformError",
    "ProcessError",
    "InstallCancelledError",
    "AddonInstallError",
    "GodotInstallError",
    "FilesystemError",
    "LinkCreationError",
    "ArchiveExtractionError",
    "UnsupportedArchiveFormat",
    "InsecureArchiveError",
    "DownloadError",
    "ChecksumError",
    "ConfigError",
    "LockTimeout",
]
