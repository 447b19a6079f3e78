"""Layered configuration for the daemon and CLI.

Sources, lowest priority first:
1. Config model defaults
2. A YAML file (--config, $YNAB_CONFIG, ./ynab-alerts.yaml, or the XDG config path),
   with ${VAR} references expanded from the environment
3. YNAB_* and PUSHOVER_* environment variables
4. Explicit overrides, normally CLI flags
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ynab_alerts.config.schema import Config
from ynab_alerts.paths import get_default_config_path

CONFIG_ENV_VAR = "YNAB_CONFIG"
LOCAL_CONFIG_NAME = "ynab-alerts.yaml"

# Environment variable -> config key (dotted for nested sections)
ENV_OVERRIDES: dict[str, str] = {
    "YNAB_TOKEN": "token",
    "YNAB_BUDGET_ID": "budget_id",
    "YNAB_BASE_URL": "base_url",
    "YNAB_RULES_DIR": "rules_dir",
    "YNAB_POLL_INTERVAL": "poll_interval",
    "YNAB_NOTIFIER": "notifier",
    "YNAB_OBSERVATIONS_PATH": "observe_path",
    "YNAB_DEBUG": "debug",
    "YNAB_DAY_START": "day_start",
    "YNAB_DAY_END": "day_end",
    "PUSHOVER_APP_TOKEN": "pushover.app_token",
    "PUSHOVER_USER_KEY": "pushover.user_key",
    "PUSHOVER_DEVICE": "pushover.device",
}

TRUTHY_VALUES = ("1", "true", "yes", "on")

# ${NAME} where NAME is an upper-case environment variable
ENV_REFERENCE = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)\}")


class ConfigError(Exception):
    """Base error for configuration problems.

    Attributes:
        path: Config file involved, if any.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


class ConfigNotFoundError(ConfigError):
    """Raised when an explicitly requested config file does not exist."""


class ConfigValidationError(ConfigError):
    """Raised when merged settings fail schema validation.

    Attributes:
        validation_errors: Pydantic error dicts, one per failing field.
    """

    def __init__(
        self,
        message: str,
        path: Path | None = None,
        validation_errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message, path)
        self.validation_errors = list(validation_errors or [])


class EnvironmentVariableError(ConfigError):
    """Raised when the config file references an unset environment variable."""

    def __init__(self, var_name: str, path: Path | None = None) -> None:
        super().__init__(
            f"${{{var_name}}} is referenced in the config file but {var_name} is not set",
            path,
        )
        self.var_name = var_name


def expand_env_vars(value: Any, *, strict: bool = True) -> Any:
    """Replace ${VAR} references in strings, recursing into lists and dicts.

    Args:
        value: Parsed YAML value.
        strict: Raise for unset variables instead of leaving the reference as is.

    Returns:
        A copy of ``value`` with references substituted.

    Raises:
        EnvironmentVariableError: If ``strict`` and a referenced variable is unset.

    Example:
        >>> os.environ["YNAB_TOKEN"] = "secret"
        >>> expand_env_vars({"token": "${YNAB_TOKEN}"})
        {'token': 'secret'}
    """
    if isinstance(value, dict):
        return {key: expand_env_vars(item, strict=strict) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env_vars(item, strict=strict) for item in value]
    if not isinstance(value, str):
        return value

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in os.environ:
            return os.environ[name]
        if strict:
            raise EnvironmentVariableError(name)
        return match.group(0)

    return ENV_REFERENCE.sub(substitute, value)


def discover_config_path(explicit_path: str | Path | None = None) -> Path | None:
    """Locate the config file.

    Candidates are tried in order: ``explicit_path``, $YNAB_CONFIG,
    ./ynab-alerts.yaml, then $XDG_CONFIG_HOME/ynab-alerts/config.yaml.

    Returns:
        The first existing candidate, or None. Environment variables alone
        are a complete configuration, so finding nothing is not an error.

    Raises:
        ConfigNotFoundError: If ``explicit_path`` or $YNAB_CONFIG names a
            missing file.
    """
    requested = [
        (explicit_path, "--config"),
        (os.environ.get(CONFIG_ENV_VAR), f"${CONFIG_ENV_VAR}"),
    ]
    for candidate, source in requested:
        if not candidate:
            continue
        path = Path(candidate).expanduser().resolve()
        if not path.exists():
            raise ConfigNotFoundError(f"Config file from {source} not found: {path}", path)
        return path

    for path in (Path.cwd() / LOCAL_CONFIG_NAME, get_default_config_path()):
        if path.exists():
            return path
    return None


def load_yaml(path: Path) -> dict[str, Any]:
    """Read a config file into a mapping; an empty file is an empty mapping.

    Raises:
        ConfigError: If the file is unreadable, not YAML, or not a mapping.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}", path) from e
    except yaml.YAMLError as e:
        raise ConfigError(f"{path.name} is not valid YAML: {e}", path) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path.name} must be a YAML mapping of settings", path)
    return data


def parse_bool(value: str) -> bool:
    """Interpret an environment flag; anything but 1/true/yes/on is false."""
    return value.strip().lower() in TRUTHY_VALUES


def env_overrides(environ: dict[str, str] | None = None) -> dict[str, Any]:
    """Collect config overrides from environment variables.

    Empty or whitespace-only values are ignored.

    Args:
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Nested dict of overrides suitable for merging into raw config
    """
    env = os.environ if environ is None else environ
    overrides: dict[str, Any] = {}
    for var_name, key in ENV_OVERRIDES.items():
        raw = env.get(var_name, "").strip()
        if not raw:
            continue
        value: Any = parse_bool(raw) if key == "debug" else raw
        _set_dotted(overrides, key, value)
    return overrides


def _set_dotted(target: dict[str, Any], key: str, value: Any) -> None:
    *parents, leaf = key.split(".")
    for part in parents:
        target = target.setdefault(part, {})
    target[leaf] = value


def merge_config(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep-merge two raw config mappings; ``override`` wins.

    None values in ``override`` are skipped so unset CLI flags do not
    clobber lower layers.
    """
    merged = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = merge_config(merged[key], value)
        else:
            merged[key] = value
    return merged


def _validation_message(error: ValidationError) -> str:
    lines = [
        f"  - {'.'.join(str(part) for part in err['loc']) or 'config'}: {err['msg']}"
        for err in error.errors()
    ]
    return f"Invalid configuration ({len(lines)} problem(s)):\n" + "\n".join(lines)


def load_config(
    path: str | Path | None = None,
    *,
    overrides: dict[str, Any] | None = None,
    expand_env: bool = True,
) -> Config:
    """Build the effective configuration from every source.

    Args:
        path: Explicit config file (the --config flag); discovered when None.
        overrides: Highest-priority raw values. None entries are ignored.
        expand_env: Expand ${VAR} references inside the config file.

    Returns:
        Validated Config.

    Raises:
        ConfigNotFoundError: If an explicitly requested file is missing.
        EnvironmentVariableError: If the file references an unset variable.
        ConfigValidationError: If the merged settings are invalid.
        ConfigError: For any other problem reading the file.

    Example:
        >>> config = load_config(overrides={"rules_dir": "./rules"})
        >>> config.poll_interval
        datetime.timedelta(seconds=3600)
    """
    config_path = discover_config_path(path)

    raw: dict[str, Any] = {}
    if config_path is not None:
        raw = load_yaml(config_path)
        if expand_env:
            try:
                raw = expand_env_vars(raw)
            except EnvironmentVariableError as e:
                e.path = config_path
                raise

    raw = merge_config(raw, env_overrides())
    raw = merge_config(raw, overrides or {})

    try:
        return Config.model_validate(raw)
    except ValidationError as e:
        raise ConfigValidationError(
            _validation_message(e),
            path=config_path,
            validation_errors=[dict(err) for err in e.errors()],
        ) from e
