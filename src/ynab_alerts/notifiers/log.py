"""Log notifier for development and dry runs."""

from __future__ import annotations

from typing import Any

from ynab_alerts.logging import get_logger


class LogNotifier:
    """Notifier that writes alerts as structured log events."""

    kind = "log"

    def __init__(self, logger: Any | None = None) -> None:
        """Initialize log notifier.

        Args:
            logger: structlog logger to write to (default: "ynab_alerts.alert").
        """
        self._log = logger or get_logger("ynab_alerts.alert")

    def notify(self, subject: str, message: str) -> None:
        """Write the alert to the log. Never fails."""
        self._log.warning("alert", subject=subject, message=message)
