"""Rule engine: documents, expressions, gates, evaluation and lint."""

from ynab_alerts.rules.engine import DiagnosticSink, RulesEngine, evaluate_rules
from ynab_alerts.rules.expressions import evaluate_condition, resolve, resolve_value
from ynab_alerts.rules.gates import is_eligible
from ynab_alerts.rules.lint import LintResult, lint_dir, lint_rules, next_eligible
from ynab_alerts.rules.loader import load_rule_file, load_rules_dir
from ynab_alerts.rules.schema import Observe, Rule, Snapshot, Trigger, When

__all__ = [
    "DiagnosticSink",
    "LintResult",
    "Observe",
    "Rule",
    "RulesEngine",
    "Snapshot",
    "Trigger",
    "When",
    "evaluate_condition",
    "evaluate_rules",
    "is_eligible",
    "lint_dir",
    "lint_rules",
    "load_rule_file",
    "load_rules_dir",
    "next_eligible",
    "resolve",
    "resolve_value",
]
