"""Rule linting and next-evaluation estimates.

Lint is a human-facing diagnostic. It never gates real evaluation; it
reports problems that would make a rule silently useless (bad gate values,
unparseable schedules, references to variables nothing captures) and
estimates when each rule will next be considered.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from ynab_alerts.errors import InvalidNthWeekdayError, InvalidScheduleError
from ynab_alerts.rules.expressions import variable_refs
from ynab_alerts.rules.gates import (
    matches_day_gates,
    next_schedule_time,
    parse_day_range,
    parse_nth_weekday,
    parse_schedule,
    parse_weekday,
)
from ynab_alerts.rules.loader import load_rules_dir

if TYPE_CHECKING:
    from pathlib import Path

    from ynab_alerts.rules.schema import Observe, Rule, When

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL = timedelta(minutes=1)

# Day-gate scan horizon for next_eligible
SCAN_HORIZON_DAYS = 365


@dataclass
class LintResult:
    """Lint findings for one rule.

    Attributes:
        name: Rule name (may be empty).
        issues: Human-readable issue strings; empty means none.
        next_eval: Estimated next eligible instant, or None if unknown.
    """

    name: str
    issues: list[str] = field(default_factory=list)
    next_eval: datetime | None = None

    @property
    def has_next(self) -> bool:
        """Whether a next evaluation instant was found."""
        return self.next_eval is not None


def next_eligible(
    whens: list[When],
    now: datetime,
    poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
) -> datetime | None:
    """Estimate the next instant any When entry becomes eligible.

    Args:
        whens: When entries of a single rule.
        now: Reference instant.
        poll_interval: Daemon poll interval used to approximate ticks.

    Returns:
        Estimated instant, or None if nothing is eligible within a year.
    """
    if not whens:
        return None

    # A schedule on any entry wins; report the soonest valid one.
    best: datetime | None = None
    for when in whens:
        if not when.schedule:
            continue
        try:
            candidate = next_schedule_time(when.schedule, now)
        except InvalidScheduleError:
            continue
        if best is None or candidate < best:
            best = candidate
    if best is not None:
        return best

    if not any(when.has_day_gates for when in whens):
        return now + poll_interval

    for offset in range(SCAN_HORIZON_DAYS + 1):
        day = now + timedelta(days=offset)
        if any(matches_day_gates(when, day) for when in whens):
            start_of_day = day.replace(hour=0, minute=0, second=0, microsecond=0)
            approx = start_of_day + poll_interval
            if approx < now:
                approx = now + poll_interval
            return approx

    return None


def _lint_observe(observe: Observe) -> list[str]:
    issues: list[str] = []
    if not observe.variable:
        issues.append("observe variable is empty")
    if not observe.value:
        issues.append("observe value is empty")
    if not observe.captures_always:
        try:
            day = int(observe.capture_on.strip())
        except ValueError:
            day = 0
        if not 1 <= day <= 31:
            issues.append(f'observe capture_on value "{observe.capture_on}" is invalid')
    return issues


def _lint_when(when: When, variables: set[str], now: datetime) -> list[str]:
    issues: list[str] = []

    if not when.condition:
        issues.append("condition is empty; rule will never fire")

    for d in when.day_of_month:
        if d == 0 or d < -31 or d > 31:
            issues.append(f"day_of_month value {d} is out of range -31..-1 or 1..31")

    for text in when.day_of_month_range:
        parsed = parse_day_range(text)
        if parsed is None:
            issues.append(f'day_of_month_range value "{text}" is invalid')
            continue
        start, end = parsed
        if not (1 <= start <= 31 and 1 <= end <= 31):
            issues.append(f'day_of_month_range "{text}" values must be within 1..31')

    for name in when.days_of_week:
        if parse_weekday(name) is None:
            issues.append(f'days_of_week value "{name}" is invalid')

    if when.nth_weekday:
        try:
            parse_nth_weekday(when.nth_weekday)
        except InvalidNthWeekdayError:
            issues.append(f'nth_weekday value "{when.nth_weekday}" is invalid')

    if when.schedule:
        try:
            parse_schedule(when.schedule, now)
        except InvalidScheduleError as e:
            issues.append(f"schedule invalid cron: {e.reason}")
        if when.has_day_gates:
            issues.append("schedule present; day/week gates will be ignored")

    for ref in variable_refs(when.condition):
        if ref not in variables:
            issues.append(f'condition references unknown variable "{ref}"')

    return issues


def lint_rules(
    rules: list[Rule],
    now: datetime,
    poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
) -> list[LintResult]:
    """Lint already-loaded rules.

    Variable references are checked against the Observe entries of the
    same rule only.

    Args:
        rules: Rules in load order.
        now: Reference instant for next-evaluation estimates.
        poll_interval: Daemon poll interval.

    Returns:
        One LintResult per rule, in input order.
    """
    seen: set[str] = set()
    results: list[LintResult] = []

    for rule in rules:
        result = LintResult(name=rule.name)

        if not rule.name:
            result.issues.append("rule has no name")
        elif rule.name in seen:
            result.issues.append("duplicate rule name")
        seen.add(rule.name)

        variables: set[str] = set()
        for observe in rule.observe:
            result.issues.extend(_lint_observe(observe))
            if observe.variable:
                variables.add(observe.variable)

        if not rule.when:
            result.issues.append("no when clause defined; rule will never run")
        for when in rule.when:
            result.issues.extend(_lint_when(when, variables, now))

        result.next_eval = next_eligible(rule.when, now, poll_interval)
        results.append(result)

    logger.debug("Linted %d rule(s)", len(results))
    return results


def lint_dir(
    directory: str | Path,
    now: datetime,
    poll_interval: timedelta = DEFAULT_POLL_INTERVAL,
) -> list[LintResult]:
    """Load a rules directory and lint it.

    Raises:
        RuleLoadError: If the rules cannot be loaded.
    """
    return lint_rules(load_rules_dir(directory), now, poll_interval)
