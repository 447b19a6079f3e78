"""structlog setup and the daemon's structured log events.

Everything is written to stderr, as JSON by default or with the console
renderer for interactive commands. Credentials (the YNAB personal access
token, Pushover app token and user key) are scrubbed from every event
before rendering.
"""

from __future__ import annotations

import logging
import re
import sys
from typing import TYPE_CHECKING, Any

import structlog

if TYPE_CHECKING:
    from collections.abc import Callable

    from structlog.typing import EventDict, WrappedLogger

REDACTED = "[REDACTED]"

# (pattern, replacement) pairs applied to every string in an event
SECRET_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    # YNAB API Authorization header value
    (re.compile(r"(Bearer\s+)([A-Za-z0-9._-]+)", re.IGNORECASE), rf"\1{REDACTED}"),
    (re.compile(r"(authorization[=:]\s*['\"]?)([^\s'\"]+)", re.IGNORECASE), rf"\1{REDACTED}"),
    # Pushover form body
    (re.compile(r"\b((?:token|user)=)([A-Za-z0-9]+)"), rf"\1{REDACTED}"),
    # token: <long opaque string>
    (re.compile(r"(token[=:]\s*['\"]?)([A-Za-z0-9_-]{20,})"), rf"\1{REDACTED}"),
]

# Event keys whose values are always secret
SECRET_KEYS = frozenset({"token", "app_token", "user_key", "authorization"})


def redact_secrets(value: Any) -> Any:
    """Scrub credentials from a log value.

    Strings are rewritten with SECRET_PATTERNS. Mappings and lists are
    walked recursively, and a non-empty value stored under one of
    SECRET_KEYS is replaced outright. Other types pass through.
    """
    if isinstance(value, str):
        for pattern, replacement in SECRET_PATTERNS:
            value = pattern.sub(replacement, value)
        return value
    if isinstance(value, dict):
        return {
            key: REDACTED if key in SECRET_KEYS and item else redact_secrets(item)
            for key, item in value.items()
        }
    if isinstance(value, list):
        return [redact_secrets(item) for item in value]
    return value


def _redact_processor(
    _logger: WrappedLogger,
    _method_name: str,
    event_dict: EventDict,
) -> EventDict:
    return redact_secrets(event_dict)


def configure_logging(verbose: bool = False, json_output: bool = True) -> None:
    """Set up stdlib logging and structlog for the CLI.

    Args:
        verbose: Log at DEBUG instead of INFO. Also the switch for
            evaluator tracing, which is emitted at DEBUG.
        json_output: Render JSON lines; False uses the colored console
            renderer meant for interactive commands.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=level)

    renderer: Callable[..., Any] = (
        structlog.processors.JSONRenderer()
        if json_output
        else structlog.dev.ConsoleRenderer(colors=True)
    )
    processors: list[Callable[..., Any]] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _redact_processor,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        renderer,
    ]

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger, e.g. ``get_logger("ynab_alerts.service")``."""
    return structlog.get_logger(name)


class StructlogDiagnosticSink:
    """Diagnostic sink that writes evaluator tracing as structlog debug events.

    Example:
        >>> engine = RulesEngine(store, sink=StructlogDiagnosticSink())
    """

    def __init__(self, logger: Any | None = None) -> None:
        """Initialize the sink.

        Args:
            logger: Logger to write to (default: "ynab_alerts.debug").
        """
        self._log = logger or get_logger("ynab_alerts.debug")

    def debug(self, event: str, **fields: Any) -> None:
        """Forward a diagnostic event."""
        self._log.debug(event, **fields)


def log_trigger_notified(
    rule_name: str,
    message: str,
    notifier: str,
    result: str,
    error: str | None = None,
) -> None:
    """Record the delivery outcome for one trigger.

    ``result`` is "success" (logged at info) or "failed" (logged at
    warning with ``error``).
    """
    log = get_logger("ynab_alerts.notify")
    emit = log.info if result == "success" else log.warning
    emit(
        "trigger_notified",
        rule=rule_name,
        notifier=notifier,
        result=result,
        message=message,
        error=error,
    )


def log_poll_cycle(
    accounts_fetched: int,
    rules_evaluated: int,
    triggers_fired: int,
    notifications_failed: int,
    duration_ms: float,
) -> None:
    """Summarize one completed evaluation cycle."""
    get_logger("ynab_alerts.poll").info(
        "poll_cycle_complete",
        accounts=accounts_fetched,
        rules=rules_evaluated,
        triggers=triggers_fired,
        notifications_failed=notifications_failed,
        duration_ms=round(duration_ms, 2),
    )
