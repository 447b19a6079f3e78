"""Error kinds raised by the rule engine.

Every error carries optional context that the evaluator fills in before
re-raising:
- rule_name: the rule being processed when the error occurred
- triggers: triggers already produced earlier in the same cycle
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from ynab_alerts.rules.schema import Trigger


class RuleError(Exception):
    """Base class for rule engine errors."""

    def __init__(self, message: str, *, rule_name: str | None = None) -> None:
        """Initialize RuleError.

        Args:
            message: Error description.
            rule_name: Name of the rule being processed, if known.
        """
        self.rule_name = rule_name
        self.triggers: list[Trigger] = []
        super().__init__(message)

    def __str__(self) -> str:
        message = super().__str__()
        if self.rule_name is not None:
            return f"rule {self.rule_name}: {message}"
        return message


class UnknownAccountError(RuleError):
    """Raised when an expression references an account missing from the snapshot."""

    def __init__(self, account: str) -> None:
        self.account = account
        super().__init__(f'account "{account}" not found')


class UnknownVariableError(RuleError):
    """Raised when an expression references a variable that was never observed."""

    def __init__(self, variable: str) -> None:
        self.variable = variable
        super().__init__(f'variable "{variable}" not found')


class UnsupportedExpressionError(RuleError):
    """Raised when a value expression matches none of the known forms."""

    def __init__(self, expression: str, reason: str | None = None) -> None:
        self.expression = expression
        message = reason or f'unsupported expression "{expression}"'
        super().__init__(message)


class MalformedConditionError(RuleError):
    """Raised when a condition is not of the form "left OP right"."""

    def __init__(self, condition: str) -> None:
        self.condition = condition
        super().__init__(f'unable to parse condition "{condition}"')


class InvalidScheduleError(RuleError):
    """Raised when a cron schedule cannot be parsed.

    The schedule gate treats this as "never eligible"; it only escapes
    to callers that parse schedules directly (lint).
    """

    def __init__(self, schedule: str, reason: str) -> None:
        self.schedule = schedule
        self.reason = reason
        super().__init__(f'invalid schedule "{schedule}": {reason}')


class InvalidNthWeekdayError(RuleError):
    """Raised when an nth_weekday value is not "<n|last> <weekday>"."""

    def __init__(self, value: str) -> None:
        self.value = value
        super().__init__(f'invalid nth_weekday "{value}"')


class CaptureFieldMissingError(RuleError):
    """Raised when an observe entry lacks its variable or value."""

    def __init__(self) -> None:
        super().__init__("observation missing variable or value")


class StorePersistenceError(RuleError):
    """Raised when the observation store cannot be read or written."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class RuleLoadError(RuleError):
    """Raised when rule documents cannot be loaded."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        self.path = path
        super().__init__(message)


class NoRuleFilesFoundError(RuleLoadError):
    """Raised when a rules directory yields zero rules."""


class EvaluationCancelledError(Exception):
    """Raised when evaluation is cancelled between rules.

    Attributes:
        triggers: Triggers produced before cancellation was observed.
    """

    def __init__(self, triggers: list[Trigger]) -> None:
        self.triggers = triggers
        super().__init__(f"evaluation cancelled after {len(triggers)} trigger(s)")
