"""Pushover notifier.

Posts alerts to the Pushover messages API as a form-encoded request:
https://pushover.net/api
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx

from ynab_alerts.notifiers.base import NotificationError

if TYPE_CHECKING:
    from ynab_alerts.config.schema import PushoverConfig

logger = logging.getLogger(__name__)

PUSHOVER_ENDPOINT = "https://api.pushover.net/1/messages.json"


class PushoverNotifier:
    """Notifier that sends alerts through Pushover.

    Example:
        >>> notifier = PushoverNotifier(PushoverConfig(app_token="a", user_key="u"))
        >>> notifier.notify("low-checking", "Rule low-checking triggered: ...")
    """

    kind = "pushover"

    def __init__(
        self,
        config: PushoverConfig,
        *,
        endpoint: str = PUSHOVER_ENDPOINT,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize Pushover notifier.

        Args:
            config: Pushover credentials.
            endpoint: Messages endpoint URL.
            timeout: HTTP request timeout in seconds.
            transport: Optional httpx transport (for testing).
        """
        self._config = config
        self._endpoint = endpoint
        self._timeout = timeout
        self._transport = transport

    def _build_form(self, subject: str, message: str) -> dict[str, str]:
        form = {
            "token": self._config.app_token,
            "user": self._config.user_key,
            "title": subject,
            "message": message,
        }
        if self._config.device:
            form["device"] = self._config.device
        return form

    def notify(self, subject: str, message: str) -> None:
        """Send one alert.

        Raises:
            NotificationError: If credentials are missing, the request fails
                or Pushover answers with a non-2xx status.
        """
        if not self._config.is_configured:
            msg = "pushover credentials missing"
            raise NotificationError(msg)

        try:
            with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
                response = client.post(self._endpoint, data=self._build_form(subject, message))
        except httpx.TimeoutException as e:
            msg = "pushover request timeout"
            raise NotificationError(msg) from e
        except httpx.RequestError as e:
            msg = f"pushover request error: {e}"
            raise NotificationError(msg) from e

        if response.status_code >= 300:
            msg = f"pushover returned status {response.status_code}: {response.text}"
            raise NotificationError(msg, status_code=response.status_code)

        logger.debug("Pushover message sent for %s", subject)
