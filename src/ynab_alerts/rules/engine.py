"""Rule evaluation engine.

This module provides the RulesEngine class for evaluating rules against a
data snapshot. For each rule, in order, it:
- Captures observations (Observe entries) into the observation store
- Refreshes the snapshot's variables so later entries see fresh captures
- Gates each When entry on the current instant
- Evaluates the When condition and records a Trigger when it holds

Resolver and capture errors abort the rest of the batch. The raised error
carries the offending rule name and the triggers collected so far.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Protocol

from ynab_alerts.errors import (
    CaptureFieldMissingError,
    EvaluationCancelledError,
    RuleError,
)
from ynab_alerts.rules.expressions import evaluate_condition, resolve
from ynab_alerts.rules.gates import is_eligible
from ynab_alerts.rules.schema import Observe, Rule, Snapshot, Trigger
from ynab_alerts.state.store import ObservedValue

if TYPE_CHECKING:
    import threading
    from datetime import datetime

    from ynab_alerts.state.store import ObservationStore

logger = logging.getLogger(__name__)


class DiagnosticSink(Protocol):
    """Receives verbose tracing from the evaluator.

    Passed explicitly to each evaluation; no sink means no tracing.
    """

    def debug(self, event: str, **fields: Any) -> None:
        """Record a diagnostic event."""
        ...


class _NullSink:
    def debug(self, event: str, **fields: Any) -> None:
        pass


class RulesEngine:
    """Evaluates rules against data snapshots.

    Supports:
    - Observation capture with once-per-day idempotency
    - Schedule and day gating per When entry
    - Cooperative cancellation between rules
    - Optional diagnostic tracing via a DiagnosticSink
    """

    def __init__(
        self,
        store: ObservationStore | None = None,
        *,
        sink: DiagnosticSink | None = None,
    ) -> None:
        """Initialize rules engine.

        Args:
            store: Observation store. Without one, Observe entries are skipped.
            sink: Optional diagnostic sink for verbose tracing.
        """
        self._store = store
        self._sink: DiagnosticSink = sink or _NullSink()

    def evaluate(
        self,
        rules: list[Rule],
        snapshot: Snapshot,
        *,
        cancel_event: threading.Event | None = None,
    ) -> list[Trigger]:
        """Evaluate a batch of rules.

        The caller's snapshot is not mutated; variable refreshes apply to
        a private copy.

        Args:
            rules: Rules to evaluate, in order.
            snapshot: Data snapshot for this cycle.
            cancel_event: Optional cancellation signal, checked before each rule.

        Returns:
            Triggers for every (rule, When) pair that fired.

        Raises:
            RuleError: On resolver/capture/store failure, with ``rule_name``
                and partial ``triggers`` attached.
            EvaluationCancelledError: If ``cancel_event`` was set.
        """
        data = replace(snapshot, variables=dict(snapshot.variables))
        triggers: list[Trigger] = []

        for rule in rules:
            if cancel_event is not None and cancel_event.is_set():
                self._sink.debug("evaluation_cancelled", triggers=len(triggers))
                raise EvaluationCancelledError(list(triggers))

            try:
                triggers.extend(self._evaluate_rule(rule, data))
            except RuleError as e:
                e.rule_name = rule.name
                e.triggers = list(triggers)
                raise

        return triggers

    def _evaluate_rule(self, rule: Rule, data: Snapshot) -> list[Trigger]:
        """Capture observations for a rule, then evaluate its When entries."""
        store = self._store
        if store is not None:
            for observe in rule.observe:
                self._capture(store, rule, observe, data)
                data.variables = store.snapshot()

        fired: list[Trigger] = []
        for when in rule.when:
            if not when.condition:
                continue

            if not is_eligible(when, data.now):
                self._sink.debug(
                    "when_not_eligible",
                    rule=rule.name,
                    condition=when.condition,
                    now=data.now.isoformat(),
                )
                continue

            matched = evaluate_condition(when.condition, data)
            self._sink.debug(
                "condition_evaluated",
                rule=rule.name,
                condition=when.condition,
                matched=matched,
            )
            if matched:
                fired.append(
                    Trigger(
                        rule=rule,
                        message=f"Rule {rule.name} triggered: {when.condition}",
                    )
                )
                logger.debug("Rule '%s' triggered: %s", rule.name, when.condition)

        return fired

    def _capture(
        self, store: ObservationStore, rule: Rule, observe: Observe, data: Snapshot
    ) -> None:
        """Capture one observation if its policy allows it right now.

        Raises:
            CaptureFieldMissingError: If variable or value is empty.
            RuleError: If the value cannot be resolved or stored.
        """
        if not observe.variable or not observe.value:
            raise CaptureFieldMissingError()

        if not self._should_capture(store, observe, data.now):
            self._sink.debug(
                "capture_skipped",
                rule=rule.name,
                variable=observe.variable,
                capture_on=observe.capture_on,
            )
            return

        value = resolve(observe.value, data)
        store.set(observe.variable, ObservedValue(value=value, recorded_at=data.now))
        self._sink.debug(
            "observation_captured",
            rule=rule.name,
            variable=observe.variable,
            value=value,
        )

    def _should_capture(
        self, store: ObservationStore, observe: Observe, now: datetime
    ) -> bool:
        """Apply the capture_on policy.

        "always"/empty captures every cycle. A day-of-month captures only on
        that day, and only if nothing was recorded earlier that same day.
        Any other value never captures.
        """
        if observe.captures_always:
            return True

        try:
            day = int(observe.capture_on.strip())
        except ValueError:
            return False

        if now.day != day:
            return False

        existing = store.get(observe.variable)
        return existing is None or not same_calendar_day(existing.recorded_at, now)


def same_calendar_day(a: datetime, b: datetime) -> bool:
    """Whether two instants share a calendar date.

    Aware instants are compared in ``b``'s timezone.
    """
    if a.tzinfo is not None and b.tzinfo is not None:
        a = a.astimezone(b.tzinfo)
    return a.date() == b.date()


def evaluate_rules(
    rules: list[Rule],
    store: ObservationStore | None,
    snapshot: Snapshot,
    *,
    cancel_event: threading.Event | None = None,
    sink: DiagnosticSink | None = None,
) -> list[Trigger]:
    """Evaluate a batch of rules against a snapshot.

    This is a convenience function that creates a RulesEngine and evaluates.

    Args:
        rules: Rules to evaluate, in order.
        store: Observation store, or None to skip observation capture.
        snapshot: Data snapshot for this cycle.
        cancel_event: Optional cancellation signal.
        sink: Optional diagnostic sink.

    Returns:
        Triggers for every (rule, When) pair that fired.
    """
    engine = RulesEngine(store, sink=sink)
    return engine.evaluate(rules, snapshot, cancel_event=cancel_event)
