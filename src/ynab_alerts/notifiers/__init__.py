"""Alert delivery channels.

Usage:
    from ynab_alerts.notifiers import build_notifier

    notifier = build_notifier(config.notifier, config.pushover)
    notifier.notify("low-checking", "Rule low-checking triggered: ...")
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ynab_alerts.notifiers.base import NotificationError, Notifier, NotifierConfigError
from ynab_alerts.notifiers.log import LogNotifier
from ynab_alerts.notifiers.pushover import PushoverNotifier

if TYPE_CHECKING:
    from ynab_alerts.config.schema import PushoverConfig


def build_notifier(kind: str, pushover: PushoverConfig) -> Notifier:
    """Construct a notifier from its configured kind.

    Args:
        kind: "" or "pushover" for Pushover, "log" for the log notifier.
        pushover: Pushover credentials (required for Pushover).

    Returns:
        Notifier instance.

    Raises:
        NotifierConfigError: If the kind is unknown or credentials are missing.
    """
    if kind in ("", "pushover"):
        if not pushover.is_configured:
            msg = "pushover notifier selected but credentials missing"
            raise NotifierConfigError(msg)
        return PushoverNotifier(pushover)
    if kind == "log":
        return LogNotifier()
    msg = f'unknown notifier kind "{kind}"'
    raise NotifierConfigError(msg)


__all__ = [
    "LogNotifier",
    "NotificationError",
    "Notifier",
    "NotifierConfigError",
    "PushoverNotifier",
    "build_notifier",
]
