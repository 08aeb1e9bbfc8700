"""
Addon manifests and the addon installation engine.
"""

from gdenv.addons.git import GitClient
from gdenv.addons.installer import (
    AddonInstallResult,
    AddonInstallState,
    AddonsInstaller,
    InstallReport,
)
from gdenv.addons.manifest import ADDONS_FILE_NAME, init_addons, load_manifest
from gdenv.addons.models import AddonConfig, AddonsConfig, AddonsConfigFile, AssetSource

__all__ = [
    "AddonConfig",
    "AddonsConfig",
    "AddonsConfigFile",
    "AssetSource",
    "ADDONS_FILE_NAME",
    "load_manifest",
    "init_addons",
    "GitClient",
    "AddonsInstaller",
    "AddonInstallResult",
    "AddonInstallState",
    "InstallReport",
]
