"""Tests for notifier construction and Pushover delivery."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from ynab_alerts.config import PushoverConfig
from ynab_alerts.notifiers import (
    LogNotifier,
    NotificationError,
    NotifierConfigError,
    PushoverNotifier,
    build_notifier,
)
from ynab_alerts.notifiers.pushover import PUSHOVER_ENDPOINT

CREDS = PushoverConfig(app_token="app-token", user_key="user-key")


class RecordingLogger:
    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def warning(self, event, **fields):
        self.calls.append((event, fields))


class TestBuildNotifier:
    @pytest.mark.parametrize("kind", ["", "pushover"])
    def test_pushover_is_default(self, kind):
        notifier = build_notifier(kind, CREDS)

        assert isinstance(notifier, PushoverNotifier)
        assert notifier.kind == "pushover"

    def test_pushover_without_credentials(self):
        with pytest.raises(NotifierConfigError, match="credentials missing"):
            build_notifier("pushover", PushoverConfig(app_token="only-app"))

    def test_log(self):
        notifier = build_notifier("log", PushoverConfig())

        assert isinstance(notifier, LogNotifier)
        assert notifier.kind == "log"

    def test_unknown_kind(self):
        with pytest.raises(NotifierConfigError, match='unknown notifier kind "sms"'):
            build_notifier("sms", CREDS)


class TestLogNotifier:
    def test_writes_alert_event(self):
        logger = RecordingLogger()
        LogNotifier(logger).notify("low-checking", "Rule low-checking triggered: 1 < 2")

        assert logger.calls == [
            ("alert", {"subject": "low-checking", "message": "Rule low-checking triggered: 1 < 2"})
        ]


class TestPushoverNotifier:
    def test_posts_form(self):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(200, json={"status": 1})

        notifier = PushoverNotifier(
            PushoverConfig(app_token="app-token", user_key="user-key", device="phone"),
            transport=httpx.MockTransport(handler),
        )
        notifier.notify("low-checking", "balance is low")

        assert captured["url"] == PUSHOVER_ENDPOINT
        assert captured["form"] == {
            "token": ["app-token"],
            "user": ["user-key"],
            "title": ["low-checking"],
            "message": ["balance is low"],
            "device": ["phone"],
        }

    def test_device_omitted_when_unset(self):
        captured: dict = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["form"] = parse_qs(request.content.decode())
            return httpx.Response(200)

        PushoverNotifier(CREDS, transport=httpx.MockTransport(handler)).notify("s", "m")

        assert "device" not in captured["form"]

    def test_error_status(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"status": 0, "errors": ["user key is invalid"]})

        notifier = PushoverNotifier(CREDS, transport=httpx.MockTransport(handler))
        with pytest.raises(NotificationError) as exc_info:
            notifier.notify("s", "m")

        assert exc_info.value.status_code == 400
        assert "pushover returned status 400" in str(exc_info.value)

    def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        notifier = PushoverNotifier(CREDS, transport=httpx.MockTransport(handler))
        with pytest.raises(NotificationError, match="pushover request error"):
            notifier.notify("s", "m")

    def test_timeout(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        notifier = PushoverNotifier(CREDS, transport=httpx.MockTransport(handler))
        with pytest.raises(NotificationError, match="pushover request timeout"):
            notifier.notify("s", "m")

    def test_missing_credentials(self):
        notifier = PushoverNotifier(PushoverConfig())
        with pytest.raises(NotificationError, match="credentials missing"):
            notifier.notify("s", "m")
