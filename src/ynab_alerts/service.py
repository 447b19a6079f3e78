"""Polling service: fetch balances, evaluate rules, send alerts.

One ``tick`` is a full evaluation cycle:
1. Skip if outside the configured daily evaluation window
2. Fetch current account balances from YNAB
3. Reload rules from disk (edits take effect on the next tick)
4. Build a snapshot with variables preloaded from the observation store
5. Evaluate rules and notify once per trigger

``run`` ticks immediately and then once per poll interval until stopped.
"""

from __future__ import annotations

import random
import time
from dataclasses import dataclass, field
from datetime import datetime  # noqa: TC003 - used in dataclass field types
from typing import TYPE_CHECKING, Protocol

from ynab_alerts.clock import SystemTimeProvider
from ynab_alerts.errors import EvaluationCancelledError, RuleError
from ynab_alerts.logging import get_logger, log_poll_cycle, log_trigger_notified
from ynab_alerts.notifiers import NotificationError
from ynab_alerts.rules import RulesEngine, Snapshot, load_rules_dir

if TYPE_CHECKING:
    import threading

    from ynab_alerts.clock import TimeProvider
    from ynab_alerts.config.schema import Config
    from ynab_alerts.notifiers import Notifier
    from ynab_alerts.rules import DiagnosticSink, Trigger
    from ynab_alerts.state import ObservationStore

# Upper bound of random delay added to each poll sleep, as a fraction of the interval
POLL_JITTER_FRACTION = 0.1


class BalanceSource(Protocol):
    """Anything that can report current balances for a budget."""

    def get_current_balances(self, budget_id: str) -> dict[str, int]:
        """Return account name -> balance in milli-units."""
        ...


@dataclass
class TickResult:
    """Outcome of one evaluation cycle."""

    started_at: datetime
    skipped: bool = False
    accounts: int = 0
    rules: int = 0
    triggers: list[Trigger] = field(default_factory=list)
    notifications_failed: int = 0


@dataclass
class RunSummary:
    """Totals for a daemon run."""

    cycles: int = 0
    triggers: int = 0
    errors: int = 0


class AlertService:
    """Orchestrates polling YNAB, evaluating rules and sending alerts."""

    def __init__(
        self,
        config: Config,
        client: BalanceSource,
        notifier: Notifier,
        store: ObservationStore | None,
        *,
        time_provider: TimeProvider | None = None,
        sink: DiagnosticSink | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Runtime configuration.
            client: Balance source (normally a YNABClient).
            notifier: Alert delivery channel.
            store: Observation store; None disables observation capture.
            time_provider: Clock (default: system local time).
            sink: Optional diagnostic sink for evaluator tracing.
        """
        self._config = config
        self._client = client
        self._notifier = notifier
        self._store = store
        self._clock = time_provider or SystemTimeProvider()
        self._engine = RulesEngine(store, sink=sink)
        self._log = get_logger("ynab_alerts.service")

    def within_eval_window(self, now: datetime) -> bool:
        """Check whether ``now`` falls inside the daily [start, end) window."""
        window = self._config.evaluation_window
        if window is None:
            return True
        start, end = window
        current = now.time().replace(microsecond=0, tzinfo=None)
        if current < start:
            return False
        return end is None or current < end

    def tick(self, cancel_event: threading.Event | None = None) -> TickResult:
        """Run one evaluation cycle.

        Triggers produced before a rule error are still notified before
        the error propagates.

        Args:
            cancel_event: Optional cancellation signal passed to the evaluator.

        Returns:
            TickResult describing the cycle.

        Raises:
            YNABAPIError: If balances cannot be fetched.
            RuleError: If rules cannot be loaded or evaluation fails.
        """
        started = time.monotonic()
        now = self._clock.now()
        result = TickResult(started_at=now)

        if not self.within_eval_window(now):
            self._log.debug(
                "evaluation_skipped",
                reason="outside evaluation window",
                window=self._window_str(),
            )
            result.skipped = True
            return result

        balances = self._client.get_current_balances(self._config.budget_id)
        result.accounts = len(balances)

        rules = load_rules_dir(self._config.get_rules_dir())
        result.rules = len(rules)

        snapshot = Snapshot(
            now=now,
            accounts=balances,
            variables=self._store.snapshot() if self._store is not None else {},
        )

        try:
            result.triggers = self._engine.evaluate(rules, snapshot, cancel_event=cancel_event)
        except EvaluationCancelledError as e:
            self._log.info("evaluation_cancelled", triggers=len(e.triggers))
            result.triggers = e.triggers
        except RuleError as e:
            result.triggers = e.triggers
            self._notify_all(result)
            raise

        self._notify_all(result)
        log_poll_cycle(
            accounts_fetched=result.accounts,
            rules_evaluated=result.rules,
            triggers_fired=len(result.triggers),
            notifications_failed=result.notifications_failed,
            duration_ms=(time.monotonic() - started) * 1000,
        )
        return result

    def _notify_all(self, result: TickResult) -> None:
        """Notify once per trigger; failures are logged, never retried."""
        for trigger in result.triggers:
            try:
                self._notifier.notify(trigger.rule.name, trigger.message)
            except NotificationError as e:
                result.notifications_failed += 1
                log_trigger_notified(
                    trigger.rule.name,
                    trigger.message,
                    self._notifier.kind,
                    "failed",
                    error=str(e),
                )
            else:
                log_trigger_notified(
                    trigger.rule.name, trigger.message, self._notifier.kind, "success"
                )

    def run(self, stop_event: threading.Event, *, jitter: bool = True) -> RunSummary:
        """Tick immediately, then once per poll interval until stopped.

        Per-tick errors are logged and do not stop the loop. The stop event
        also cancels an in-progress evaluation between rules.

        Args:
            stop_event: Set to request shutdown.
            jitter: Add up to 10% random delay to each sleep.

        Returns:
            Totals for the run.
        """
        summary = RunSummary()
        interval = self._config.poll_interval.total_seconds()
        self._log.info("daemon_starting", poll_interval_seconds=interval)

        while not stop_event.is_set():
            summary.cycles += 1
            try:
                result = self.tick(cancel_event=stop_event)
                summary.triggers += len(result.triggers)
            except Exception:
                summary.errors += 1
                self._log.exception("tick_failed", cycle=summary.cycles)

            sleep_time = interval
            if jitter:
                sleep_time += random.uniform(0, interval * POLL_JITTER_FRACTION)
            self._log.debug("sleeping_until_next_cycle", sleep_seconds=round(sleep_time, 2))
            stop_event.wait(sleep_time)

        self._log.info("daemon_stopped", cycles=summary.cycles, errors=summary.errors)
        return summary

    def _window_str(self) -> str:
        window = self._config.evaluation_window
        if window is None:
            return "none"
        start, end = window
        until = f"{end:%H:%M}" if end is not None else "midnight"
        return f"{start:%H:%M}-{until}"
