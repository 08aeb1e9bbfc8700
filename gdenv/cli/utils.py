"""
Output helpers and project lookup shared by the command modules.

Provides common functionality used across CLI commands: console output
that survives consoles without Unicode support, emoji toggling and project
root resolution.
"""

import logging
import re
import sys
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# Pictographs, symbols and the joiners/variation selectors that glue them together
_EMOJI = re.compile(
    "[\U0001F000-\U0001FAFF\u2600-\u27BF\u2B00-\u2BFF\uFE0F\u200D]+ ?"
)

_display_emoji = True


def set_display_emoji(enabled: bool):
    """Enable or disable emoji in console output."""
    global _display_emoji
    _display_emoji = enabled


def strip_emoji(text: str) -> str:
    """
    Remove emoji (and the space following them) from text.

    Example:
        >>> strip_emoji("🐧 Running on Linux")
        'Running on Linux'
    """
    return _EMOJI.sub("", text)


class EmojiFilter(logging.Filter):
    """Logging filter removing emoji from messages when they are disabled."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not _display_emoji:
            record.msg = strip_emoji(record.getMessage())
            record.args = None
        return True


def safe_print(message: str, file=None):
    """
    Print message, degrading gracefully on consoles that cannot encode it.

    Emoji are dropped when disabled, or when the console cannot encode them.

    Args:
        message: Message to print
        file: Output file (default: stdout)
    """
    if not _display_emoji:
        message = strip_emoji(message)
    try:
        print(message, file=file)
    except UnicodeEncodeError:
        print(strip_emoji(message), file=file)


def print_error(message: str, details: Optional[str] = None):
    """Print an error message (and optional details) to stderr."""
    safe_print(f"❌ {message}", file=sys.stderr)
    if details:
        safe_print(f"   {details}", file=sys.stderr)


def resolve_project_root(path: Optional[Path] = None) -> Path:
    """
    Resolve the project root directory.

    Args:
        path: Explicit project root (default: current directory)

    Returns:
        Absolute project root
    """
    return Path(path).resolve() if path else Path.cwd()
