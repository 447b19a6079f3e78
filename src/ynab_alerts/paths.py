"""XDG Base Directory Specification path utilities.

This module provides XDG-compliant paths for:
- Configuration files ($XDG_CONFIG_HOME/ynab-alerts, default: ~/.config/ynab-alerts)
- Observation cache ($XDG_CACHE_HOME/ynab-alerts, default: ~/.cache/ynab-alerts)

Reference: https://specifications.freedesktop.org/basedir-spec/latest/
"""

from __future__ import annotations

import os
from pathlib import Path

# XDG environment variable names
XDG_CONFIG_HOME = "XDG_CONFIG_HOME"
XDG_CACHE_HOME = "XDG_CACHE_HOME"

# Application name used in XDG directories
APP_NAME = "ynab-alerts"

OBSERVATIONS_FILENAME = "observations.json"


def get_config_home() -> Path:
    """Get the XDG config home directory.

    Returns:
        Path from $XDG_CONFIG_HOME or ~/.config if not set
    """
    xdg_config = os.environ.get(XDG_CONFIG_HOME)
    if xdg_config:
        return Path(xdg_config).expanduser()
    return Path.home() / ".config"


def get_cache_home() -> Path:
    """Get the XDG cache home directory.

    Returns:
        Path from $XDG_CACHE_HOME or ~/.cache if not set
    """
    xdg_cache = os.environ.get(XDG_CACHE_HOME)
    if xdg_cache:
        return Path(xdg_cache).expanduser()
    return Path.home() / ".cache"


def get_config_dir() -> Path:
    """Get the application config directory."""
    return get_config_home() / APP_NAME


def get_default_config_path() -> Path:
    """Get the default config file path.

    Returns:
        Path to config.yaml in the config directory
    """
    return get_config_dir() / "config.yaml"


def get_default_observations_path() -> Path:
    """Get the default observation store path.

    Returns:
        Path to observations.json in the cache directory
    """
    return get_cache_home() / APP_NAME / OBSERVATIONS_FILENAME
