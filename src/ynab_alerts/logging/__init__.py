"""Logging module for ynab-alerts.

This module provides structured logging with:
- structlog configuration for consistent log formatting
- Secret redaction for YNAB tokens and Pushover credentials
- Structured log events for poll cycles and notifications
- A structlog-backed diagnostic sink for evaluator tracing

Usage:
    from ynab_alerts.logging import configure_logging, log_poll_cycle

    configure_logging(verbose=True)
    log_poll_cycle(accounts_fetched, rules_evaluated, triggers_fired, 0, duration_ms)
"""

from ynab_alerts.logging.audit import (
    StructlogDiagnosticSink,
    configure_logging,
    get_logger,
    log_poll_cycle,
    log_trigger_notified,
    redact_secrets,
)

__all__ = [
    "StructlogDiagnosticSink",
    "configure_logging",
    "get_logger",
    "log_poll_cycle",
    "log_trigger_notified",
    "redact_secrets",
]
