"""Tests for rule linting and next-evaluation estimates."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from ynab_alerts.errors import NoRuleFilesFoundError
from ynab_alerts.rules import Rule, When, lint_dir, lint_rules, next_eligible

NOW = datetime(2024, 3, 14, 9, 30, tzinfo=UTC)
POLL = timedelta(minutes=5)


def _rule(name: str, **fields: Any) -> Rule:
    return Rule.model_validate({"name": name, **fields})


def _issues(rule: Rule) -> list[str]:
    (result,) = lint_rules([rule], NOW, POLL)
    return result.issues


class TestLintIssues:
    def test_clean_rule_has_no_issues(self):
        rule = _rule(
            "clean",
            observe={"capture_on": "1", "variable": "start", "value": 'account.balance("A")'},
            when={"day_of_month": [14], "condition": 'account.balance("A") < 0.5 * var.start'},
        )
        assert _issues(rule) == []

    def test_unknown_variable_reference(self):
        rule = _rule("r", when={"condition": 'account.balance("A") < var.missing_var'})
        assert 'condition references unknown variable "missing_var"' in _issues(rule)

    def test_variable_from_other_rule_is_unknown(self):
        rules = [
            _rule("capture", observe={"variable": "shared", "value": "1"}),
            _rule("use", when={"condition": "var.shared > 0"}),
        ]
        results = lint_rules(rules, NOW, POLL)

        assert 'condition references unknown variable "shared"' in results[1].issues

    def test_missing_name(self):
        assert "rule has no name" in _issues(_rule("", when={"condition": "1 < 2"}))

    def test_duplicate_name(self):
        rules = [
            _rule("dup", when={"condition": "1 < 2"}),
            _rule("dup", when={"condition": "1 < 2"}),
        ]
        results = lint_rules(rules, NOW, POLL)

        assert "duplicate rule name" not in results[0].issues
        assert "duplicate rule name" in results[1].issues

    def test_no_when(self):
        assert _issues(_rule("idle")) == ["no when clause defined; rule will never run"]

    def test_empty_condition(self):
        assert "condition is empty; rule will never fire" in _issues(
            _rule("r", when={"day_of_month": [1]})
        )

    def test_observe_fields(self):
        issues = _issues(_rule("r", observe={"capture_on": "40"}, when={"condition": "1 < 2"}))

        assert "observe variable is empty" in issues
        assert "observe value is empty" in issues
        assert 'observe capture_on value "40" is invalid' in issues

    def test_observe_capture_on_always_is_valid(self):
        rule = _rule(
            "r",
            observe={"capture_on": "always", "variable": "v", "value": "1"},
            when={"condition": "var.v > 0"},
        )
        assert _issues(rule) == []

    @pytest.mark.parametrize("day", [0, 32, -32])
    def test_day_of_month_out_of_range(self, day):
        issues = _issues(_rule("r", when={"day_of_month": [day], "condition": "1 < 2"}))
        assert f"day_of_month value {day} is out of range -31..-1 or 1..31" in issues

    def test_day_of_month_range_invalid(self):
        issues = _issues(
            _rule("r", when={"day_of_month_range": ["x-y", "0-40"], "condition": "1 < 2"})
        )

        assert 'day_of_month_range value "x-y" is invalid' in issues
        assert 'day_of_month_range "0-40" values must be within 1..31' in issues

    def test_wrapping_range_is_valid(self):
        assert _issues(_rule("r", when={"day_of_month_range": ["27-5"], "condition": "1 < 2"})) == []

    def test_days_of_week_invalid(self):
        issues = _issues(_rule("r", when={"days_of_week": ["Mon", "Caturday"], "condition": "1 < 2"}))
        assert issues == ['days_of_week value "Caturday" is invalid']

    def test_nth_weekday_invalid(self):
        issues = _issues(_rule("r", when={"nth_weekday": "6th Monday", "condition": "1 < 2"}))
        assert 'nth_weekday value "6th Monday" is invalid' in issues

    def test_invalid_cron(self):
        issues = _issues(_rule("r", when={"schedule": "0 9 * *", "condition": "1 < 2"}))
        assert any(issue.startswith("schedule invalid cron: ") for issue in issues)

    def test_schedule_with_day_gates(self):
        issues = _issues(
            _rule("r", when={"schedule": "0 9 * * *", "day_of_month": [1], "condition": "1 < 2"})
        )
        assert issues == ["schedule present; day/week gates will be ignored"]


class TestNextEligible:
    def test_no_whens(self):
        assert next_eligible([], NOW, POLL) is None

    def test_ungated_is_next_poll(self):
        assert next_eligible([When(condition="1 < 2")], NOW, POLL) == NOW + POLL

    def test_schedule(self):
        whens = [When(condition="1 < 2", schedule="0 9 * * *")]
        assert next_eligible(whens, NOW, POLL) == datetime(2024, 3, 15, 9, 0, tzinfo=UTC)

    def test_soonest_schedule_wins(self):
        whens = [
            When(condition="1 < 2", schedule="0 9 * * *"),
            When(condition="1 < 2", schedule="0 12 * * *"),
        ]
        assert next_eligible(whens, NOW, POLL) == datetime(2024, 3, 14, 12, 0, tzinfo=UTC)

    def test_invalid_schedule_is_skipped(self):
        whens = [
            When(condition="1 < 2", schedule="bogus"),
            When(condition="1 < 2", schedule="0 12 * * *"),
        ]
        assert next_eligible(whens, NOW, POLL) == datetime(2024, 3, 14, 12, 0, tzinfo=UTC)

    def test_future_day_gate(self):
        whens = [When(condition="1 < 2", day_of_month=[20])]
        expected = datetime(2024, 3, 20, 0, 0, tzinfo=UTC) + POLL
        assert next_eligible(whens, NOW, POLL) == expected

    def test_day_gate_matching_today_is_clamped_to_now(self):
        whens = [When(condition="1 < 2", day_of_month=[14])]
        assert next_eligible(whens, NOW, POLL) == NOW + POLL

    def test_day_gate_in_next_month(self):
        whens = [When(condition="1 < 2", day_of_month=[1])]
        expected = datetime(2024, 4, 1, 0, 0, tzinfo=UTC) + POLL
        assert next_eligible(whens, NOW, POLL) == expected

    def test_unsatisfiable_gates(self):
        whens = [When(condition="1 < 2", day_of_month=[31], days_of_week=["Funday"])]
        assert next_eligible(whens, NOW, POLL) is None

    def test_lint_result_exposes_next(self):
        (result,) = lint_rules([_rule("r", when={"condition": "1 < 2"})], NOW, POLL)

        assert result.has_next is True
        assert result.next_eval == NOW + POLL

    def test_lint_result_without_next(self):
        (result,) = lint_rules([_rule("idle")], NOW, POLL)

        assert result.has_next is False
        assert result.next_eval is None


class TestLintDir:
    def test_lints_loaded_rules(self, rules_dir, write_rules):
        write_rules(
            [
                {"name": "a", "when": {"condition": "var.missing_var > 0"}},
                {"name": "b", "when": {"condition": "1 < 2"}},
            ]
        )
        results = lint_dir(rules_dir, NOW, POLL)

        assert [r.name for r in results] == ["a", "b"]
        assert results[0].issues == ['condition references unknown variable "missing_var"']
        assert results[1].issues == []

    def test_empty_directory(self, rules_dir):
        with pytest.raises(NoRuleFilesFoundError):
            lint_dir(rules_dir, NOW, POLL)
