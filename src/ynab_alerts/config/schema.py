"""Pydantic schema models for configuration.

This module defines the runtime settings of the daemon:
- Config: Top-level configuration container
- PushoverConfig: Pushover notifier credentials

Values arrive as strings from YAML, environment variables and CLI flags;
durations ("30s", "1h30m") and times of day ("08:00") are parsed here.
"""

from __future__ import annotations

from datetime import time, timedelta
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ynab_alerts.clock import parse_duration, parse_time_of_day
from ynab_alerts.paths import get_default_observations_path

DEFAULT_BASE_URL = "https://api.ynab.com/v1"
DEFAULT_RULES_DIR = "rules"
DEFAULT_POLL_INTERVAL = timedelta(hours=1)
DEFAULT_NOTIFIER = "pushover"


class PushoverConfig(BaseModel):
    """Pushover notification credentials.

    Attributes:
        app_token: Pushover application token
        user_key: Pushover user or group key
        device: Optional device name to target
    """

    model_config = ConfigDict(extra="forbid")

    app_token: str = ""
    user_key: str = ""
    device: str = ""

    @property
    def is_configured(self) -> bool:
        """Whether both required credentials are present."""
        return bool(self.app_token and self.user_key)


class Config(BaseModel):
    """Top-level runtime configuration.

    Attributes:
        token: YNAB personal access token
        budget_id: YNAB budget identifier
        base_url: YNAB API base URL
        rules_dir: Directory of rule documents
        poll_interval: Delay between evaluation cycles (default: 1h)
        notifier: Notifier kind ('pushover' or 'log')
        observe_path: Observation store path (default: XDG cache dir)
                      Uses $XDG_CACHE_HOME/ynab-alerts/observations.json
        debug: Enable verbose evaluator tracing
        day_start: Start of the daily evaluation window (optional)
        day_end: End of the daily evaluation window (optional)
        pushover: Pushover credentials
    """

    model_config = ConfigDict(extra="forbid")

    token: str = ""
    budget_id: str = ""
    base_url: str = DEFAULT_BASE_URL
    rules_dir: str = DEFAULT_RULES_DIR
    poll_interval: timedelta = DEFAULT_POLL_INTERVAL
    notifier: str = DEFAULT_NOTIFIER
    observe_path: str | None = None
    debug: bool = False
    day_start: time | None = None
    day_end: time | None = None
    pushover: PushoverConfig = Field(default_factory=PushoverConfig)

    @field_validator("token", "budget_id", "base_url", "rules_dir", "notifier", mode="before")
    @classmethod
    def strip_strings(cls, v: Any) -> Any:
        """Trim surrounding whitespace from string settings."""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("poll_interval", mode="before")
    @classmethod
    def parse_poll_interval(cls, v: Any) -> Any:
        """Accept duration strings like '30s', '5m' or '1h30m'."""
        if isinstance(v, str):
            return parse_duration(v)
        return v

    @field_validator("day_start", "day_end", mode="before")
    @classmethod
    def parse_window_time(cls, v: Any) -> Any:
        """Accept 'HH:MM' strings; empty means unset."""
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str):
            return parse_time_of_day(v)
        return v

    def get_observe_path(self) -> Path:
        """Get the observation store path, expanding ~ if needed."""
        if self.observe_path:
            return Path(self.observe_path).expanduser()
        return get_default_observations_path()

    def get_rules_dir(self) -> Path:
        """Get the rules directory, expanding ~ if needed."""
        return Path(self.rules_dir).expanduser()

    @property
    def evaluation_window(self) -> tuple[time, time | None] | None:
        """The daily [start, end) evaluation window, or None for all day.

        A missing day_end leaves the window open until midnight, so the
        last second of the day is included.
        """
        if self.day_start is None and self.day_end is None:
            return None
        return self.day_start or time(0, 0), self.day_end

    def validate_for_daemon(self) -> None:
        """Check the settings needed to run the daemon.

        Raises:
            ValueError: Describing the first problem found.
        """
        if not self.token:
            msg = "YNAB_TOKEN is required"
            raise ValueError(msg)
        if not self.budget_id:
            msg = "YNAB_BUDGET_ID is required"
            raise ValueError(msg)
        if self.notifier in ("", "pushover") and not self.pushover.is_configured:
            msg = "PUSHOVER_APP_TOKEN and PUSHOVER_USER_KEY are required for Pushover"
            raise ValueError(msg)
        if self.poll_interval <= timedelta(0):
            msg = "poll interval must be > 0"
            raise ValueError(msg)
        window = self.evaluation_window
        if window is not None and window[1] is not None and window[0] >= window[1]:
            msg = "day_start must be before day_end"
            raise ValueError(msg)
