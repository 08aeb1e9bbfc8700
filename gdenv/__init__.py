"""
gdenv: Godot engine and addon environment manager.

Installs versioned Godot builds per operating system and reconciles a
project's addons with its addons.json manifest.
"""

__version__ = "0.1.0"
