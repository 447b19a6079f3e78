"""Pydantic models for rule documents and evaluation results.

Rule documents are YAML lists of rules:

    - name: low-checking
      observe:
        capture_on: "1"
        variable: checking_start
        value: account.balance("Checking")
      when:
        - day_of_month: [14, -1]
          condition: account.balance("Checking") < 0.5 * var.checking_start
      notify: [pushover]

`observe` and `when` accept either a single mapping or a list of mappings.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - pydantic/dataclass field types
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _as_record_list(value: Any) -> Any:
    """Wrap a single mapping in a one-element list.

    A list passes through untouched, None becomes an empty list, and any
    other shape is left for pydantic to reject.
    """
    if value is None:
        return []
    if isinstance(value, dict):
        return [value]
    return value


class Observe(BaseModel):
    """Value-capture directive.

    Attributes:
        capture_on: "" or "always" to capture every cycle, or a day-of-month
            ("1".."31") to capture once on that calendar day.
        variable: Name the captured value is stored under.
        value: Expression resolved against the current snapshot.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    capture_on: str = ""
    variable: str = ""
    value: str = ""

    @field_validator("capture_on", mode="before")
    @classmethod
    def coerce_capture_on(cls, v: Any) -> Any:
        """Accept bare YAML integers (capture_on: 14)."""
        if v is None:
            return ""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v)
        return v

    @property
    def captures_always(self) -> bool:
        """Whether this observation is captured on every cycle."""
        return self.capture_on.strip().lower() in ("", "always")


class When(BaseModel):
    """Gating and condition pair.

    Attributes:
        condition: Comparison expression, e.g. 'account.balance("X") < 100'.
        day_of_month: Days 1..31, or -1..-31 counted from month end.
        day_of_month_range: "start-end" strings; start > end wraps the month.
        days_of_week: Weekday names or abbreviations (case-insensitive).
        nth_weekday: "1 Monday", "last Friday", ...
        schedule: Five-field cron expression; when set, day gates are ignored.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    condition: str = ""
    day_of_month: list[int] = Field(default_factory=list)
    day_of_month_range: list[str] = Field(default_factory=list)
    days_of_week: list[str] = Field(default_factory=list)
    nth_weekday: str = ""
    schedule: str = ""

    @field_validator("day_of_month", "day_of_month_range", "days_of_week", mode="before")
    @classmethod
    def coerce_scalar_gate(cls, v: Any) -> Any:
        """Accept a single scalar where a list is expected."""
        if v is None:
            return []
        if isinstance(v, int | str):
            return [v]
        return v

    @field_validator("condition", "nth_weekday", "schedule", mode="before")
    @classmethod
    def coerce_none(cls, v: Any) -> Any:
        """Treat explicit nulls as empty strings."""
        return "" if v is None else v

    @property
    def has_day_gates(self) -> bool:
        """Whether any day/week gate is configured."""
        return bool(
            self.day_of_month
            or self.day_of_month_range
            or self.days_of_week
            or self.nth_weekday
        )


class Rule(BaseModel):
    """A user-authored alert rule.

    Rules are immutable once loaded; the rule set is reloaded from disk
    on every evaluation cycle.

    Attributes:
        name: Rule name (duplicates are reported by lint, not rejected).
        observe: Ordered value-capture directives.
        when: Ordered gate/condition pairs.
        notify: Notification channel identifiers (opaque to the engine).
        meta: Arbitrary, uninterpreted payload.
    """

    model_config = ConfigDict(frozen=True, extra="ignore")

    name: str = ""
    observe: list[Observe] = Field(default_factory=list)
    when: list[When] = Field(default_factory=list)
    notify: list[str] = Field(default_factory=list)
    meta: Any = None

    @field_validator("observe", "when", mode="before")
    @classmethod
    def coerce_record_list(cls, v: Any) -> Any:
        """Decode a single record or a list of records to a list."""
        return _as_record_list(v)

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, v: Any) -> Any:
        """Treat a missing name as empty and stringify scalars."""
        if v is None:
            return ""
        if isinstance(v, int | float):
            return str(v)
        return v

    @field_validator("notify", mode="before")
    @classmethod
    def coerce_notify(cls, v: Any) -> Any:
        """Accept a single channel string."""
        if v is None:
            return []
        if isinstance(v, str):
            return [v]
        return v


class Trigger(BaseModel):
    """A (rule, when) pair that fired during one evaluation cycle."""

    model_config = ConfigDict(frozen=True)

    rule: Rule = Field(..., description="The rule that fired")
    message: str = Field(..., description="Human-readable description of what fired")


@dataclass
class Snapshot:
    """Transient evaluation context built fresh for each cycle.

    Attributes:
        accounts: Account name to balance in milli-units.
        variables: Observed variable name to value in milli-units.
        now: Evaluation instant.
    """

    now: datetime
    accounts: dict[str, int] = field(default_factory=dict)
    variables: dict[str, int] = field(default_factory=dict)
