"""
Reading and creating addons manifests.

Manifests are JSONC: JSON with ``//`` line comments and ``/* */`` block
comments. Comments inside strings are left alone.

Usage:
    manifest = load_manifest(Path("addons.json"))
    config = manifest.to_config(".")
"""

import json
import logging
import re
from pathlib import Path

from gdenv.addons.models import AddonsConfigFile
from gdenv.core.exceptions import ConfigError
from gdenv.core.filesystem import atomic_write

logger = logging.getLogger(__name__)

ADDONS_FILE_NAME = "addons.json"

# Strings are matched first so comment markers inside them are kept
_JSONC_TOKENS = re.compile(r'("(?:\\.|[^"\\])*")|//[^\n]*|/\*.*?\*/', re.DOTALL)
_TRAILING_COMMA = re.compile(r'("(?:\\.|[^"\\])*")|,(\s*[}\]])')

ADDONS_FILE_TEMPLATE = """\
// Godot addons configuration file for use with gdenv.
// -------------------------------------------------------------------- //
// Note: this is a JSONC file, so you can use comments!
// -------------------------------------------------------------------- //
{
  // "path": "addons", // default
  // "cache": ".addons", // default
  "addons": {
    "imrp": { // name must match the folder name in the repository
      "url": "https://github.com/MakovWait/improved_resource_picker",
      // "source": "remote", // default
      // "checkout": "main", // default
      "subfolder": "addons/imrp"
    }
  }
}
"""

ADDONS_EDITOR_CONFIG_TEMPLATE = """\
# Editor configs in nested directories override those in parent directories
# for the directory in which they are placed.
#
# This editor config prevents the code editor from analyzing C# files which
# belong to addons.

[*.cs]
generated_code = true
"""

GITIGNORE_TEMPLATE = """\
# Godot 4+ specific ignores
.godot/

# Godot-specific ignores
.import/
export.cfg
export_presets.cfg

# Imported translations (automatically generated from CSV files)
*.translation

# Mono-specific ignores
.mono/
data_*/
mono_crash.*.json

# Addons managed by gdenv
{addons_path}/*
!{addons_path}/.editorconfig

# Addons cache
{cache_path}/*
"""


def strip_jsonc(text: str) -> str:
    """
    Remove comments and trailing commas from JSONC text.

    Example:
        >>> strip_jsonc('{"a": 1, // one\\n}')
        '{"a": 1 \\n}'
    """
    without_comments = _JSONC_TOKENS.sub(lambda m: m.group(1) or "", text)
    return _TRAILING_COMMA.sub(
        lambda m: m.group(1) or m.group(2), without_comments
    )


def parse_manifest(text: str, source: str = "") -> AddonsConfigFile:
    """
    Parse manifest text.

    Raises:
        ConfigError: If the text is not valid JSONC or has the wrong shape
    """
    stripped = strip_jsonc(text)
    if not stripped.strip():
        return AddonsConfigFile()
    try:
        data = json.loads(stripped)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON: {e}", source or None) from e
    try:
        return AddonsConfigFile.from_dict(data)
    except ConfigError as e:
        if source and not e.path:
            raise ConfigError(str(e), source) from e
        raise


def load_manifest(path: Path) -> AddonsConfigFile:
    """
    Load an addons manifest; a missing file is an empty manifest.

    Raises:
        ConfigError: If the file is malformed
    """
    path = Path(path)
    if not path.exists():
        logger.debug(f"No addons manifest at {path}")
        return AddonsConfigFile()

    logger.debug(f"Loading addons manifest from {path}")
    return parse_manifest(path.read_text(encoding="utf-8-sig"), str(path))


def save_manifest(manifest: AddonsConfigFile, path: Path):
    """Write a manifest as plain JSON."""
    atomic_write(path, json.dumps(manifest.to_dict(), indent=2) + "\n")


def init_addons(project_path: Path, force: bool = False) -> Path:
    """
    Create a starter addons manifest in a project.

    Also writes an .editorconfig into the addons directory (so C# analyzers
    skip addon code) and a .gitignore for the project if none exists.

    Args:
        project_path: Project directory
        force: Overwrite an existing manifest

    Returns:
        Path of the manifest

    Raises:
        ConfigError: If a manifest already exists and force is False
    """
    project_path = Path(project_path)
    manifest_path = project_path / ADDONS_FILE_NAME
    if manifest_path.exists() and not force:
        raise ConfigError("Addons manifest already exists", str(manifest_path))

    atomic_write(manifest_path, ADDONS_FILE_TEMPLATE)
    manifest = parse_manifest(ADDONS_FILE_TEMPLATE)

    editor_config = project_path / manifest.addons_path / ".editorconfig"
    if not editor_config.exists():
        atomic_write(editor_config, ADDONS_EDITOR_CONFIG_TEMPLATE)

    gitignore = project_path / ".gitignore"
    if not gitignore.exists():
        atomic_write(
            gitignore,
            GITIGNORE_TEMPLATE.format(
                addons_path=manifest.addons_path, cache_path=manifest.cache_path
            ),
        )

    logger.info(f"Created {manifest_path}")
    return manifest_path


__all__ = [
    "ADDONS_FILE_NAME",
    "strip_jsonc",
    "parse_manifest",
    "load_manifest",
    "save_manifest",
    "init_addons",
]
