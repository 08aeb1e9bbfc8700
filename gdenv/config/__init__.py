"""Configuration module for gdenv.

This module provides YAML parsing and validation of the user settings file.
"""

from gdenv.config.settings import GodotSettings, Settings, TerminalSettings

__all__ = ["Settings", "TerminalSettings", "GodotSettings"]
