"""Configuration module for ynab-alerts.

This module provides configuration loading, validation, and schema definitions
for the daemon and CLI.

Usage:
    from ynab_alerts.config import load_config, Config

    config = load_config()  # Auto-discovers config file, applies env vars
    config = load_config("/path/to/config.yaml", overrides={"debug": True})
"""

from ynab_alerts.config.loader import (
    ConfigError,
    ConfigNotFoundError,
    ConfigValidationError,
    EnvironmentVariableError,
    discover_config_path,
    env_overrides,
    expand_env_vars,
    load_config,
)
from ynab_alerts.config.schema import Config, PushoverConfig

__all__ = [
    "Config",
    "ConfigError",
    "ConfigNotFoundError",
    "ConfigValidationError",
    "EnvironmentVariableError",
    "PushoverConfig",
    "discover_config_path",
    "env_overrides",
    "expand_env_vars",
    "load_config",
]
