"""YAML user settings for gdenv.

Settings live in ``<gdenv home>/config.yaml``:

    terminal:
      display_emoji: true
    godot:
      installations_path: versions

Keys gdenv does not know about are kept when the file is saved again.
"""

import copy
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from gdenv.core.directory import (
    CONFIG_FILE_NAME,
    GODOT_INSTALLATIONS_PATH,
    get_godot_dir,
    get_home_dir,
)
from gdenv.core.exceptions import ConfigError
from gdenv.core.filesystem import atomic_write

logger = logging.getLogger(__name__)


@dataclass
class TerminalSettings:
    """Terminal output settings."""

    display_emoji: bool = True


@dataclass
class GodotSettings:
    """Godot installation settings."""

    installations_path: str = GODOT_INSTALLATIONS_PATH


@dataclass
class Settings:
    """Complete gdenv user settings."""

    terminal: TerminalSettings = field(default_factory=TerminalSettings)
    godot: GodotSettings = field(default_factory=GodotSettings)
    path: Optional[Path] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def default_path(cls, home: Optional[Path] = None) -> Path:
        return (home or get_home_dir()) / CONFIG_FILE_NAME

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "Settings":
        """
        Load settings from a YAML file.

        Args:
            path: Settings file (default: <gdenv home>/config.yaml)

        Returns:
            Parsed settings; defaults if the file does not exist

        Raises:
            ConfigError: If the file is not valid YAML or has invalid values
        """
        path = Path(path) if path else cls.default_path()
        if not path.exists():
            logger.debug(f"Settings file not found, using defaults: {path}")
            return cls(path=path)

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {e}", str(path)) from e

        settings = cls.from_dict(data or {}, source=str(path))
        settings.path = path
        return settings

    @classmethod
    def from_dict(cls, data: Any, source: Optional[str] = None) -> "Settings":
        """Parse and validate settings data."""
        if not isinstance(data, dict):
            raise ConfigError("Settings must be a mapping", source)

        extra = copy.deepcopy(data)
        terminal_data = _section(extra, "terminal", source)
        godot_data = _section(extra, "godot", source)

        display_emoji = terminal_data.pop("display_emoji", True)
        if not isinstance(display_emoji, bool):
            raise ConfigError("terminal.display_emoji must be true or false", source)

        installations_path = godot_data.pop(
            "installations_path", GODOT_INSTALLATIONS_PATH
        )
        if not isinstance(installations_path, str) or not installations_path.strip():
            raise ConfigError("godot.installations_path must be a non-empty string", source)

        # Whatever is left over is preserved as-is
        for name, section in (("terminal", terminal_data), ("godot", godot_data)):
            if section:
                extra[name] = section
            else:
                extra.pop(name, None)

        return cls(
            terminal=TerminalSettings(display_emoji=display_emoji),
            godot=GodotSettings(installations_path=installations_path),
            extra=extra,
        )

    def to_dict(self) -> Dict[str, Any]:
        data = copy.deepcopy(self.extra)
        data.setdefault("terminal", {})["display_emoji"] = self.terminal.display_emoji
        data.setdefault("godot", {})["installations_path"] = self.godot.installations_path
        return data

    def save(self, path: Optional[Path] = None) -> Path:
        """Write settings to disk atomically."""
        path = Path(path or self.path or self.default_path())
        atomic_write(path, yaml.safe_dump(self.to_dict(), sort_keys=False))
        self.path = path
        logger.debug(f"Saved settings to {path}")
        return path

    def installations_dir(self, home: Optional[Path] = None) -> Path:
        """Absolute directory holding extracted Godot installations."""
        configured = Path(self.godot.installations_path).expanduser()
        if configured.is_absolute():
            return configured
        return get_godot_dir(home) / configured


def _section(data: dict, name: str, source: Optional[str]) -> dict:
    section = data.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(f"'{name}' must be a mapping", source)
    return section


__all__ = ["Settings", "TerminalSettings", "GodotSettings"]
