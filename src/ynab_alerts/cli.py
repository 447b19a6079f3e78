"""CLI entry point for ynab-alerts.

This module provides the Typer-based CLI with commands:
- ynab-alerts run: Run the daemon (continuous polling, or --once)
- ynab-alerts lint: Report rule problems and next evaluation times
- ynab-alerts validate: Validate configuration and rules
- ynab-alerts list-budgets: List budgets available to the token
- ynab-alerts list-accounts: List accounts and balances for a budget
- ynab-alerts observations: Show stored observations

Exit codes:
- 0: Success
- 1: Configuration error
- 2: Rule error
- 3: API or notification error
- 4: Fatal error
"""

from __future__ import annotations

import signal
import threading
from datetime import timedelta
from enum import IntEnum
from pathlib import Path
from typing import TYPE_CHECKING, Annotated, Any

import typer

from ynab_alerts import __version__
from ynab_alerts.clock import SystemTimeProvider, format_duration
from ynab_alerts.config import ConfigError, load_config
from ynab_alerts.errors import RuleError, StorePersistenceError
from ynab_alerts.logging import StructlogDiagnosticSink, configure_logging, get_logger
from ynab_alerts.notifiers import NotifierConfigError, build_notifier
from ynab_alerts.rules import lint_dir, load_rules_dir
from ynab_alerts.service import AlertService
from ynab_alerts.state import ObservationStore
from ynab_alerts.ynab import YNABAPIError, YNABClient, format_money

if TYPE_CHECKING:
    from ynab_alerts.config.schema import Config


class ExitCode(IntEnum):
    """CLI exit codes."""

    SUCCESS = 0
    CONFIG_ERROR = 1
    RULE_ERROR = 2
    API_ERROR = 3
    FATAL_ERROR = 4


app = typer.Typer(
    name="ynab-alerts",
    help="YNAB alerts - evaluate balance rules and send notifications.",
    add_completion=False,
    no_args_is_help=True,
)


ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", "-c", help="Path to configuration file."),
]
TokenOption = Annotated[
    str | None,
    typer.Option("--token", help="YNAB API token (overrides YNAB_TOKEN)."),
]
BaseURLOption = Annotated[
    str | None,
    typer.Option("--base-url", help="YNAB API base URL."),
]
RulesOption = Annotated[
    str | None,
    typer.Option("--rules", help="Directory of YAML rule files."),
]
PollOption = Annotated[
    str | None,
    typer.Option("--poll", help="Poll interval (e.g. 30s, 5m, 1h)."),
]


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"ynab-alerts {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
) -> None:
    """YNAB alerts - balance rule evaluation and notifications."""


def _error(message: str) -> None:
    typer.echo(typer.style(f"✗ {message}", fg=typer.colors.RED), err=True)


def _load_config_or_exit(config: Path | None, overrides: dict[str, Any]) -> Config:
    """Load configuration, exiting with CONFIG_ERROR on failure."""
    try:
        return load_config(config, overrides=overrides)
    except ConfigError as e:
        _error(f"Configuration error: {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e


def _require_token(cfg: Config) -> None:
    if not cfg.token:
        _error("YNAB_TOKEN is required")
        raise typer.Exit(ExitCode.CONFIG_ERROR)


@app.command("run")
def run_daemon(  # noqa: PLR0913
    config: ConfigOption = None,
    token: TokenOption = None,
    budget: Annotated[
        str | None,
        typer.Option("--budget", help="YNAB budget ID (overrides YNAB_BUDGET_ID)."),
    ] = None,
    base_url: BaseURLOption = None,
    rules: RulesOption = None,
    notifier: Annotated[
        str | None,
        typer.Option("--notifier", help="Notifier kind (pushover|log)."),
    ] = None,
    poll: PollOption = None,
    observe_path: Annotated[
        str | None,
        typer.Option("--observe-path", help="Observation store path (default: XDG cache)."),
    ] = None,
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Enable debug logging and evaluator tracing."),
    ] = False,
    day_start: Annotated[
        str | None,
        typer.Option("--day-start", help="Earliest time of day to evaluate (HH:MM)."),
    ] = None,
    day_end: Annotated[
        str | None,
        typer.Option("--day-end", help="Latest time of day to evaluate (HH:MM)."),
    ] = None,
    once: Annotated[
        bool,
        typer.Option("--once", help="Run one evaluation cycle and exit."),
    ] = False,
) -> None:
    """Run the alerts daemon.

    Fetches balances, evaluates rules and sends notifications every poll
    interval until interrupted (Ctrl+C).
    """
    cfg = _load_config_or_exit(
        config,
        {
            "token": token,
            "budget_id": budget,
            "base_url": base_url,
            "rules_dir": rules,
            "notifier": notifier,
            "poll_interval": poll,
            "observe_path": observe_path,
            "debug": True if debug else None,
            "day_start": day_start,
            "day_end": day_end,
        },
    )
    configure_logging(verbose=cfg.debug)
    log = get_logger("ynab_alerts.cli")

    try:
        cfg.validate_for_daemon()
    except ValueError as e:
        _error(f"Configuration error: {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    try:
        notify = build_notifier(cfg.notifier, cfg.pushover)
    except NotifierConfigError as e:
        _error(f"Notifier error: {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e

    try:
        store = ObservationStore(cfg.get_observe_path())
    except StorePersistenceError as e:
        _error(f"Observation store error: {e}")
        raise typer.Exit(ExitCode.FATAL_ERROR) from e
    log.info("Initialized observation store", path=str(store.path), entries=len(store))

    sink = StructlogDiagnosticSink() if cfg.debug else None

    with YNABClient(cfg.token, base_url=cfg.base_url) as client:
        service = AlertService(cfg, client, notify, store, sink=sink)
        if once:
            _run_once_impl(service)
        else:
            _run_daemon_impl(service, cfg.poll_interval)


def _run_once_impl(service: AlertService) -> None:
    """Run a single evaluation cycle and exit with its status."""
    try:
        result = service.tick()
    except YNABAPIError as e:
        _error(f"YNAB API error: {e}")
        raise typer.Exit(ExitCode.API_ERROR) from e
    except RuleError as e:
        _error(f"Rule error: {e}")
        raise typer.Exit(ExitCode.RULE_ERROR) from e

    typer.echo()
    if result.skipped:
        typer.echo(typer.style("Outside evaluation window; nothing evaluated", bold=True))
        raise typer.Exit(ExitCode.SUCCESS)

    typer.echo(typer.style("Evaluation cycle complete", bold=True))
    typer.echo(f"  Accounts: {result.accounts}")
    typer.echo(f"  Rules evaluated: {result.rules}")
    typer.echo(f"  Triggers: {len(result.triggers)}")

    if result.notifications_failed:
        typer.echo(
            typer.style(
                f"  Failed notifications: {result.notifications_failed}",
                fg=typer.colors.YELLOW,
            )
        )
        raise typer.Exit(ExitCode.API_ERROR)

    raise typer.Exit(ExitCode.SUCCESS)


def _run_daemon_impl(service: AlertService, poll_interval: timedelta) -> None:
    """Run the polling loop until SIGINT/SIGTERM."""
    stop_event = threading.Event()

    def _signal_handler(signum: int, _frame: object) -> None:
        signal_name = signal.Signals(signum).name
        typer.echo(f"\n⚡ Received {signal_name}, shutting down gracefully...")
        stop_event.set()

    original_sigint = signal.signal(signal.SIGINT, _signal_handler)
    original_sigterm = signal.signal(signal.SIGTERM, _signal_handler)

    typer.echo(
        typer.style(
            f"🚀 Starting ynab-alerts daemon (interval: {format_duration(poll_interval)})",
            fg=typer.colors.GREEN,
            bold=True,
        )
    )
    typer.echo("Press Ctrl+C to stop.")

    try:
        summary = service.run(stop_event)
    finally:
        signal.signal(signal.SIGINT, original_sigint)
        signal.signal(signal.SIGTERM, original_sigterm)

    typer.echo()
    typer.echo(typer.style("Daemon stopped", bold=True))
    typer.echo(f"  Poll cycles: {summary.cycles}")
    typer.echo(f"  Total triggers: {summary.triggers}")
    if summary.errors:
        typer.echo(typer.style(f"  Failed cycles: {summary.errors}", fg=typer.colors.YELLOW))

    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def lint(
    config: ConfigOption = None,
    rules: RulesOption = None,
    poll: PollOption = None,
) -> None:
    """Lint rule files and show when each rule is next evaluated."""
    cfg = _load_config_or_exit(config, {"rules_dir": rules, "poll_interval": poll})
    configure_logging(verbose=cfg.debug, json_output=False)

    now = SystemTimeProvider().now()
    try:
        results = lint_dir(cfg.get_rules_dir(), now, cfg.poll_interval)
    except RuleError as e:
        _error(f"Rule error: {e}")
        raise typer.Exit(ExitCode.RULE_ERROR) from e

    for result in results:
        next_eval = "unknown"
        if result.next_eval is not None:
            next_eval = result.next_eval.isoformat(timespec="seconds")
        typer.echo(f"{result.name}:")
        typer.echo(f"  next: {next_eval}")
        if not result.issues:
            typer.echo("  issues: none")
        else:
            typer.echo("  issues:")
            for issue in result.issues:
                typer.echo(f"    - {issue}")

    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def validate(
    config: ConfigOption = None,
    rules: RulesOption = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show a configuration summary."),
    ] = False,
) -> None:
    """Validate configuration and rules without running.

    Exits with code 0 if valid, 1 for configuration problems, or 2 if the
    rules cannot be loaded.
    """
    cfg = _load_config_or_exit(config, {"rules_dir": rules})
    configure_logging(verbose=verbose, json_output=False)

    try:
        cfg.validate_for_daemon()
    except ValueError as e:
        _error(f"Configuration error: {e}")
        raise typer.Exit(ExitCode.CONFIG_ERROR) from e
    typer.echo(typer.style("✓ Configuration is valid", fg=typer.colors.GREEN))

    try:
        loaded = load_rules_dir(cfg.get_rules_dir())
    except RuleError as e:
        _error(f"Rule error: {e}")
        raise typer.Exit(ExitCode.RULE_ERROR) from e
    typer.echo(typer.style(f"✓ Loaded {len(loaded)} rule(s)", fg=typer.colors.GREEN))

    if verbose:
        window = cfg.evaluation_window
        typer.echo("\nConfiguration summary:")
        typer.echo(f"  Budget: {cfg.budget_id}")
        typer.echo(f"  Rules directory: {cfg.get_rules_dir()}")
        typer.echo(f"  Poll interval: {format_duration(cfg.poll_interval)}")
        typer.echo(f"  Notifier: {cfg.notifier}")
        typer.echo(f"  Observations: {cfg.get_observe_path()}")
        if window is not None:
            start, end = window
            until = f"{end:%H:%M}" if end is not None else "midnight"
            typer.echo(f"  Evaluation window: {start:%H:%M}-{until}")

    raise typer.Exit(ExitCode.SUCCESS)


@app.command("list-budgets")
def list_budgets(
    config: ConfigOption = None,
    token: TokenOption = None,
    base_url: BaseURLOption = None,
) -> None:
    """List budgets available to the token."""
    cfg = _load_config_or_exit(config, {"token": token, "base_url": base_url})
    configure_logging(verbose=cfg.debug, json_output=False)
    _require_token(cfg)

    try:
        with YNABClient(cfg.token, base_url=cfg.base_url) as client:
            budgets = client.get_budgets()
    except YNABAPIError as e:
        _error(f"YNAB API error: {e}")
        raise typer.Exit(ExitCode.API_ERROR) from e

    for b in budgets:
        typer.echo(f"{b.id}\t{b.name}\t{b.currency_label}")

    raise typer.Exit(ExitCode.SUCCESS)


@app.command("list-accounts")
def list_accounts(
    config: ConfigOption = None,
    token: TokenOption = None,
    base_url: BaseURLOption = None,
    budget: Annotated[
        str | None,
        typer.Option("--budget", help="Budget ID (defaults to YNAB_BUDGET_ID)."),
    ] = None,
) -> None:
    """List accounts and balances for a budget."""
    cfg = _load_config_or_exit(
        config, {"token": token, "base_url": base_url, "budget_id": budget}
    )
    configure_logging(verbose=cfg.debug, json_output=False)
    log = get_logger("ynab_alerts.cli")
    _require_token(cfg)
    if not cfg.budget_id:
        _error("budget ID required via --budget or YNAB_BUDGET_ID")
        raise typer.Exit(ExitCode.CONFIG_ERROR)

    try:
        with YNABClient(cfg.token, base_url=cfg.base_url) as client:
            currency = None
            try:
                currency = client.get_budget(cfg.budget_id).currency_format
            except YNABAPIError as e:
                log.warning("budget_metadata_unavailable", budget=cfg.budget_id, error=str(e))
            accounts = client.get_accounts(cfg.budget_id)
    except YNABAPIError as e:
        _error(f"YNAB API error: {e}")
        raise typer.Exit(ExitCode.API_ERROR) from e

    typer.echo(f"Budget: {cfg.budget_id}")
    for a in accounts:
        typer.echo(f"{a.id}\t{a.name}\t{format_money(a.balance, currency)}")

    raise typer.Exit(ExitCode.SUCCESS)


@app.command()
def observations(
    config: ConfigOption = None,
    observe_path: Annotated[
        str | None,
        typer.Option("--observe-path", help="Observation store path (default: XDG cache)."),
    ] = None,
) -> None:
    """Show stored observations."""
    cfg = _load_config_or_exit(config, {"observe_path": observe_path})
    path = cfg.get_observe_path()

    if not path.exists():
        typer.echo(typer.style(f"No observation store found at {path}", fg=typer.colors.YELLOW))
        raise typer.Exit(ExitCode.SUCCESS)

    try:
        store = ObservationStore(path)
    except StorePersistenceError as e:
        _error(f"Observation store error: {e}")
        raise typer.Exit(ExitCode.FATAL_ERROR) from e

    entries = store.items()
    if not entries:
        typer.echo("No observations recorded.")
        raise typer.Exit(ExitCode.SUCCESS)

    typer.echo(typer.style(f"Observations ({len(entries)})", bold=True))
    typer.echo("─" * 60)
    for name, observed in entries:
        typer.echo(
            f"{name}\t{format_money(observed.value)}\t"
            f"{observed.recorded_at.isoformat(timespec='seconds')}"
        )

    raise typer.Exit(ExitCode.SUCCESS)

