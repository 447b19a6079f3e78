"""Clock and duration helpers.

The TimeProvider abstraction lets the service and CLI be tested with a
fixed instant. Rule evaluation itself never reads the clock; it receives
``now`` through the snapshot.
"""

from __future__ import annotations

import re
from datetime import datetime, time, timedelta
from typing import Protocol

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)([smhd])")
_DURATION_FULL = re.compile(r"^(?:\d+(?:\.\d+)?[smhd])+$")
_TIME_OF_DAY = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")

_UNIT_SECONDS: dict[str, float] = {
    "s": 1,
    "m": 60,
    "h": 3600,
    "d": 86400,
}


class TimeProvider(Protocol):
    """Protocol for providing the current time."""

    def now(self) -> datetime:
        """Get the current local time (timezone-aware)."""
        ...


class SystemTimeProvider:
    """Default time provider using the system clock in local time."""

    def now(self) -> datetime:
        """Get current local time from the system clock."""
        return datetime.now().astimezone()


class FixedTimeProvider:
    """Time provider with a fixed time (for testing).

    Example:
        >>> provider = FixedTimeProvider(datetime(2024, 3, 14, 9, 0, tzinfo=UTC))
        >>> provider.now()
        datetime.datetime(2024, 3, 14, 9, 0, tzinfo=datetime.timezone.utc)
    """

    def __init__(self, fixed_time: datetime) -> None:
        """Initialize with a fixed time.

        Args:
            fixed_time: The time to always return.
        """
        self._fixed_time = fixed_time

    def now(self) -> datetime:
        """Return the fixed time."""
        return self._fixed_time

    def advance(self, delta: timedelta) -> None:
        """Move the fixed time forward."""
        self._fixed_time += delta


def parse_duration(duration: str) -> timedelta:
    """Parse a compact duration string.

    Supports single and compound units: "30s", "5m", "2h", "1h30m", "7d".

    Args:
        duration: Duration string.

    Returns:
        Parsed duration.

    Raises:
        ValueError: If format is invalid.
    """
    text = duration.strip().lower().replace(" ", "")
    if not _DURATION_FULL.match(text):
        raise ValueError(
            f"Invalid duration format: '{duration}'. "
            "Expected number + unit (s, m, h, d), e.g., '30s', '5m', '1h30m'"
        )
    seconds = sum(
        float(value) * _UNIT_SECONDS[unit] for value, unit in _DURATION_PART.findall(text)
    )
    return timedelta(seconds=seconds)


def format_duration(delta: timedelta) -> str:
    """Format a duration in the compact form accepted by parse_duration.

    Example:
        >>> format_duration(timedelta(hours=1, minutes=30))
        '1h30m'
    """
    total = int(delta.total_seconds())
    if total <= 0:
        return "0s"
    parts: list[str] = []
    for unit, size in (("d", 86400), ("h", 3600), ("m", 60), ("s", 1)):
        count, total = divmod(total, size)
        if count:
            parts.append(f"{count}{unit}")
    return "".join(parts)


def parse_time_of_day(value: str) -> time:
    """Parse an "HH:MM" (or "HH:MM:SS") time of day.

    Raises:
        ValueError: If the value is malformed or out of range.
    """
    match = _TIME_OF_DAY.match(value.strip())
    if not match:
        raise ValueError(f"Invalid time of day: '{value}'. Expected HH:MM, e.g., '08:00'")
    hour, minute, second = match.groups()
    return time(int(hour), int(minute), int(second or 0))
