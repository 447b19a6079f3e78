"""Tests for secret redaction and the structlog diagnostic sink."""

from __future__ import annotations

from ynab_alerts.logging import StructlogDiagnosticSink, redact_secrets


class RecordingLogger:
    def __init__(self):
        self.calls = []

    def debug(self, event, **fields):
        self.calls.append((event, fields))


class TestRedactSecrets:
    def test_bearer_token(self):
        redacted = redact_secrets("Authorization: Bearer abc.def-123")

        assert "abc.def-123" not in redacted
        assert "[REDACTED]" in redacted

    def test_pushover_form_values(self):
        redacted = redact_secrets("token=azGDORePK8gMaC0QOYAMyEEuzJnyUi&user=uQiRzpo4DXghDmr9QzzfQu27cmVRsG")

        assert redacted == "token=[REDACTED]&user=[REDACTED]"

    def test_secret_keys_in_dict(self):
        event = {"event": "config_loaded", "token": "abc", "pushover": {"user_key": "u"}, "budget": "b1"}

        assert redact_secrets(event) == {
            "event": "config_loaded",
            "token": "[REDACTED]",
            "pushover": {"user_key": "[REDACTED]"},
            "budget": "b1",
        }

    def test_lists_and_scalars(self):
        assert redact_secrets(["Bearer xyz", 3]) == ["Bearer [REDACTED]", 3]
        assert redact_secrets(None) is None

    def test_plain_text_untouched(self):
        assert redact_secrets("Rule low triggered: 1 < 2") == "Rule low triggered: 1 < 2"


class TestStructlogDiagnosticSink:
    def test_forwards_debug_events(self):
        logger = RecordingLogger()
        StructlogDiagnosticSink(logger).debug("condition_evaluated", rule="r", matched=True)

        assert logger.calls == [("condition_evaluated", {"rule": "r", "matched": True})]
