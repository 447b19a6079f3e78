"""Shared pytest fixtures for ynab-alerts tests.

This module provides common fixtures for:
- Isolated environment (no YNAB_*/PUSHOVER_* leakage, temp XDG dirs)
- Fixed evaluation instants
- Rule and config file factories
- Observation store instances
"""

from __future__ import annotations

import tempfile
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import pytest
import structlog
import yaml

from ynab_alerts.config.loader import CONFIG_ENV_VAR, ENV_OVERRIDES
from ynab_alerts.state import ObservationStore

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# ============================================================================
# Environment Fixtures
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Keep host configuration out of every test."""
    for var_name in (*ENV_OVERRIDES, CONFIG_ENV_VAR):
        monkeypatch.delenv(var_name, raising=False)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None, None, None]:
    """Undo configure_logging calls made by CLI tests."""
    yield
    structlog.reset_defaults()


# ============================================================================
# Time Fixtures
# ============================================================================


@pytest.fixture
def frozen_time() -> datetime:
    """Return a fixed datetime for deterministic tests.

    Thursday 2024-03-14 09:00 UTC. Use with freezegun's freeze_time:

        @freeze_time("2024-03-14T09:00:00Z")
        def test_something(frozen_time):
            assert datetime.now(UTC) == frozen_time
    """
    return datetime(2024, 3, 14, 9, 0, 0, tzinfo=UTC)


# ============================================================================
# File Fixtures
# ============================================================================


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory (cleaned up after test)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def rules_dir(temp_dir: Path) -> Path:
    """Return an empty rules directory."""
    path = temp_dir / "rules"
    path.mkdir()
    return path


@pytest.fixture
def write_rules(rules_dir: Path) -> Callable[..., Path]:
    """Factory fixture to write rule documents.

    Args:
        rules: List of rule mappings
        filename: Name of the rule file (default: rules.yaml)

    Returns:
        Path to the written rule file
    """

    def _write(rules: list[dict[str, Any]], filename: str = "rules.yaml") -> Path:
        path = rules_dir / filename
        with path.open("w") as f:
            yaml.safe_dump(rules, f, sort_keys=False)
        return path

    return _write


@pytest.fixture
def write_config(temp_dir: Path) -> Callable[..., Path]:
    """Factory fixture to write config files.

    Args:
        config: Configuration dictionary
        filename: Name of the config file (default: config.yaml)

    Returns:
        Path to the written config file
    """

    def _write(config: dict[str, Any], filename: str = "config.yaml") -> Path:
        path = temp_dir / filename
        with path.open("w") as f:
            yaml.safe_dump(config, f)
        return path

    return _write


@pytest.fixture
def daemon_config(rules_dir: Path, temp_dir: Path) -> dict[str, Any]:
    """Return a config mapping that passes daemon validation."""
    return {
        "token": "test-token",
        "budget_id": "budget-1",
        "rules_dir": str(rules_dir),
        "notifier": "log",
        "observe_path": str(temp_dir / "observations.json"),
    }


# ============================================================================
# Store Fixtures
# ============================================================================


@pytest.fixture
def store_path(temp_dir: Path) -> Path:
    """Return path for a test observation store."""
    return temp_dir / "state" / "observations.json"


@pytest.fixture
def store(store_path: Path) -> ObservationStore:
    """Create an empty ObservationStore for testing."""
    return ObservationStore(store_path)


# ============================================================================
# YNAB API Response Fixtures
# ============================================================================


@pytest.fixture
def accounts_response() -> dict[str, Any]:
    """Return a sample YNAB accounts API response."""
    return {
        "data": {
            "accounts": [
                {
                    "id": "acc-1",
                    "name": "Checking",
                    "type": "checking",
                    "on_budget": True,
                    "closed": False,
                    "balance": 1250000,
                    "deleted": False,
                },
                {
                    "id": "acc-2",
                    "name": "Visa",
                    "type": "creditCard",
                    "on_budget": True,
                    "closed": False,
                    "balance": -320500,
                    "deleted": False,
                },
                {
                    "id": "acc-3",
                    "name": "Old Savings",
                    "type": "savings",
                    "on_budget": False,
                    "closed": True,
                    "balance": 0,
                    "deleted": True,
                },
            ],
            "server_knowledge": 42,
        }
    }


@pytest.fixture
def budget_response() -> dict[str, Any]:
    """Return a sample YNAB budget API response."""
    return {
        "data": {
            "budget": {
                "id": "budget-1",
                "name": "Household",
                "currency_format": {
                    "iso_code": "USD",
                    "example_format": "123,456.78",
                    "decimal_digits": 2,
                    "decimal_separator": ".",
                    "symbol_first": True,
                    "group_separator": ",",
                    "currency_symbol": "$",
                    "display_symbol": True,
                },
            }
        }
    }
