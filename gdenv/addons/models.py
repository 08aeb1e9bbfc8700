"""
Addon manifest data model.

An addons manifest (``addons.json``) maps addon names to their source:

    {
      "path": "addons",
      "cache": ".addons",
      "addons": {
        "imrp": {
          "url": "https://github.com/MakovWait/improved_resource_picker",
          "subfolder": "addons/imrp",
          "checkout": "main",
          "source": "remote"
        }
      }
    }

Missing and null values fall back to the defaults below.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from gdenv.core.exceptions import ConfigError

DEFAULT_CHECKOUT = "main"
DEFAULT_SUBFOLDER = "/"
DEFAULT_CACHE_PATH = ".addons"
DEFAULT_ADDONS_PATH = "addons"


def validate_addon_name(name: Any) -> str:
    """
    Check that an addon name is usable as a directory name under the
    install location.

    Raises:
        ConfigError: If the name is empty, '.', '..' or contains a path separator
    """
    if not isinstance(name, str) or name.strip() in ("", ".", "..") or re.search(r"[/\\]", name):
        raise ConfigError(f"Invalid addon name '{name}': names must be plain directory names")
    return name


def _validate_subfolder(subfolder: Any, name: str) -> str:
    if not isinstance(subfolder, str):
        raise ConfigError(f"Addon '{name}' has a non-string subfolder")
    if ".." in re.split(r"[/\\]", subfolder):
        raise ConfigError(f"Addon '{name}' subfolder '{subfolder}' leaves the addon source")
    return subfolder


class AssetSource(Enum):
    """Where an addon is copied or referenced from."""

    REMOTE = "remote"
    LOCAL = "local"
    SYMLINK = "symlink"

    @classmethod
    def parse(cls, value: Optional[str]) -> "AssetSource":
        if value is None:
            return cls.REMOTE
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ConfigError(
                f"Unknown addon source '{value}' "
                f"(expected one of: {', '.join(s.value for s in cls)})"
            ) from None


@dataclass(frozen=True)
class AddonConfig:
    """
    How to obtain one addon.

    Attributes:
        url: Git URL for remote addons, a directory for local and symlink addons
        subfolder: Directory inside the source that is installed
        checkout: Branch, tag or commit to check out (remote addons)
        source: Where the addon comes from
    """

    url: str
    subfolder: str = DEFAULT_SUBFOLDER
    checkout: str = DEFAULT_CHECKOUT
    source: AssetSource = AssetSource.REMOTE

    @classmethod
    def from_dict(cls, data: Any, name: str = "") -> "AddonConfig":
        if not isinstance(data, dict):
            raise ConfigError(f"Addon '{name}' must be an object")
        url = data.get("url")
        if not isinstance(url, str) or not url.strip():
            raise ConfigError(f"Addon '{name}' is missing a url")
        return cls(
            url=url,
            subfolder=_validate_subfolder(data.get("subfolder") or DEFAULT_SUBFOLDER, name),
            checkout=data.get("checkout") or DEFAULT_CHECKOUT,
            source=AssetSource.parse(data.get("source")),
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "url": self.url,
            "subfolder": self.subfolder,
            "checkout": self.checkout,
            "source": self.source.value,
        }


@dataclass(frozen=True)
class AddonsConfig:
    """
    A manifest resolved against a project directory.

    Attributes:
        project_path: Project directory
        cache_path: Directory holding addon mirrors
        addons_path: Directory addons are installed into
        addons: Addon name -> config
    """

    project_path: str
    cache_path: str
    addons_path: str
    addons: Dict[str, AddonConfig] = field(default_factory=dict)

    def __post_init__(self):
        for name in self.addons:
            validate_addon_name(name)


def _join(base: str, path: str) -> str:
    return f"{base.rstrip('/')}/{path}" if base else path


@dataclass
class AddonsConfigFile:
    """
    Raw addons manifest.

    Attributes:
        addons: Addon name -> config (never None)
        cache_path: Mirror cache, relative to the project
        addons_path: Install location, relative to the project
    """

    addons: Dict[str, AddonConfig] = field(default_factory=dict)
    cache_path: str = DEFAULT_CACHE_PATH
    addons_path: str = DEFAULT_ADDONS_PATH

    @classmethod
    def from_dict(cls, data: Any) -> "AddonsConfigFile":
        """
        Build a manifest from parsed JSON; null and missing values mean default.

        Raises:
            ConfigError: If the data has the wrong shape
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigError("Addons manifest must be a JSON object")

        addons_data = data.get("addons") or {}
        if not isinstance(addons_data, dict):
            raise ConfigError("'addons' must be an object mapping names to addons")

        return cls(
            addons={
                validate_addon_name(name): AddonConfig.from_dict(addon, name)
                for name, addon in addons_data.items()
            },
            cache_path=data.get("cache") or DEFAULT_CACHE_PATH,
            addons_path=data.get("path") or DEFAULT_ADDONS_PATH,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "path": self.addons_path,
            "cache": self.cache_path,
            "addons": {name: addon.to_dict() for name, addon in self.addons.items()},
        }

    def to_config(self, project_path: str) -> AddonsConfig:
        """
        Resolve the manifest against a project directory.

        Example:
            >>> AddonsConfigFile().to_config(".").cache_path
            './.addons'
        """
        return AddonsConfig(
            project_path=project_path,
            cache_path=_join(project_path, self.cache_path),
            addons_path=_join(project_path, self.addons_path),
            addons=dict(self.addons),
        )


__all__ = [
    "AssetSource",
    "AddonConfig",
    "AddonsConfig",
    "AddonsConfigFile",
    "validate_addon_name",
    "DEFAULT_CHECKOUT",
    "DEFAULT_SUBFOLDER",
    "DEFAULT_CACHE_PATH",
    "DEFAULT_ADDONS_PATH",
]
