"""Notifier interface shared by every delivery channel."""

from __future__ import annotations

from typing import Protocol


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        """Initialize NotificationError.

        Args:
            message: Error description.
            status_code: HTTP status returned by the channel, if any.
        """
        self.status_code = status_code
        super().__init__(message)


class NotifierConfigError(NotificationError):
    """Raised when a notifier cannot be built from configuration."""


class Notifier(Protocol):
    """Delivers alert messages to an output channel.

    The rule engine never talks to a concrete transport; the service
    calls ``notify`` once per trigger and does not retry failures.
    """

    kind: str

    def notify(self, subject: str, message: str) -> None:
        """Send one alert.

        Args:
            subject: Short title (the rule name).
            message: Alert body.

        Raises:
            NotificationError: If delivery fails.
        """
        ...
