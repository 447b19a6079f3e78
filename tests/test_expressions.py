"""Tests for value expressions and comparison conditions."""

from __future__ import annotations

from datetime import UTC, datetime

import pytest

from ynab_alerts.errors import (
    MalformedConditionError,
    RuleError,
    UnknownAccountError,
    UnknownVariableError,
    UnsupportedExpressionError,
)
from ynab_alerts.rules.expressions import (
    evaluate_condition,
    parse_condition,
    resolve,
    resolve_value,
    variable_refs,
)
from ynab_alerts.rules.schema import Snapshot


def _snapshot(
    accounts: dict[str, int] | None = None,
    variables: dict[str, int] | None = None,
) -> Snapshot:
    return Snapshot(
        now=datetime(2024, 3, 14, 9, 0, tzinfo=UTC),
        accounts=accounts or {},
        variables=variables or {},
    )


class TestResolveLiterals:
    def test_decimal_literal_in_milliunits(self):
        assert resolve_value("50.5", {}, {}) == 50500

    def test_integer_literal(self):
        assert resolve_value("100", {}, {}) == 100000

    def test_negative_literal(self):
        assert resolve_value("-12.34", {}, {}) == -12340

    def test_surrounding_whitespace_ignored(self):
        assert resolve_value("  7  ", {}, {}) == 7000

    def test_sub_milliunit_rounds_half_away_from_zero(self):
        assert resolve_value("0.0005", {}, {}) == 1
        assert resolve_value("-0.0005", {}, {}) == -1
        assert resolve_value("0.0004", {}, {}) == 0


class TestResolveReferences:
    def test_account_balance(self):
        assert resolve_value('account.balance("Checking")', {"Checking": 1234}, {}) == 1234

    def test_account_balance_single_quotes(self):
        assert resolve_value("account.balance('Checking')", {"Checking": 99}, {}) == 99

    def test_account_due_is_balance_alias(self):
        accounts = {"Visa": -320500}
        assert resolve_value('account.due("Visa")', accounts, {}) == resolve_value(
            'account.balance("Visa")', accounts, {}
        )

    def test_unknown_account(self):
        with pytest.raises(UnknownAccountError) as exc_info:
            resolve_value('account.balance("Savings")', {"Checking": 1}, {})
        assert exc_info.value.account == "Savings"
        assert 'account "Savings" not found' in str(exc_info.value)

    def test_empty_account_name_is_unsupported(self):
        with pytest.raises(UnsupportedExpressionError):
            resolve_value("account.balance()", {}, {})

    def test_variable(self):
        assert resolve_value("var.checking_start", {}, {"checking_start": 5000}) == 5000

    def test_unknown_variable(self):
        with pytest.raises(UnknownVariableError) as exc_info:
            resolve_value("var.missing", {}, {})
        assert exc_info.value.variable == "missing"

    def test_unsupported_expression(self):
        with pytest.raises(UnsupportedExpressionError):
            resolve_value("balance of checking", {}, {})

    def test_resolver_errors_are_rule_errors(self):
        with pytest.raises(RuleError):
            resolve_value("nonsense", {}, {})


class TestMultiplication:
    def test_literal_times_literal(self):
        assert resolve_value("2 * 25.25", {}, {}) == 50500

    def test_literal_times_account(self):
        assert resolve_value('0.5 * account.balance("Checking")', {"Checking": 10000}, {}) == 5000

    def test_literal_times_variable(self):
        assert resolve_value("1.5 * var.start", {}, {"start": 3000}) == 4500

    def test_product_rounds_half_away_from_zero(self):
        assert resolve_value("0.5 * var.x", {}, {"x": 1}) == 1
        assert resolve_value("0.5 * var.x", {}, {"x": -1}) == -1
        assert resolve_value("0.5 * var.x", {}, {"x": 3}) == 2

    def test_non_literal_left_operand_is_not_a_multiplication(self):
        with pytest.raises(RuleError):
            resolve_value("var.x * 2", {}, {"x": 10})

    def test_more_than_one_multiplication_is_unsupported(self):
        with pytest.raises(UnsupportedExpressionError):
            resolve_value("2 * 3 * 4", {}, {})


class TestConditions:
    def test_parse_condition(self):
        assert parse_condition(' account.balance("A")  <=  10 ') == (
            'account.balance("A")',
            "<=",
            "10",
        )

    @pytest.mark.parametrize(
        ("condition", "expected"),
        [
            ("1 < 2", True),
            ("2 < 1", False),
            ("2 <= 2", True),
            ("3 > 2", True),
            ("2 >= 3", False),
            ("2 == 2.000", True),
            ("2 != 2", False),
        ],
    )
    def test_operators(self, condition, expected):
        assert evaluate_condition(condition, _snapshot()) is expected

    def test_account_condition(self):
        snapshot = _snapshot(accounts={"Checking": 50000})
        assert evaluate_condition('account.balance("Checking") < 50.5', snapshot) is True

    def test_condition_with_variable_factor(self):
        snapshot = _snapshot(accounts={"Checking": 400000}, variables={"start": 1000000})
        assert evaluate_condition(
            'account.balance("Checking") < 0.5 * var.start', snapshot
        ) is True

    def test_malformed_condition(self):
        with pytest.raises(MalformedConditionError) as exc_info:
            evaluate_condition('account.balance("Checking")', _snapshot())
        assert "unable to parse condition" in str(exc_info.value)

    def test_operand_errors_propagate(self):
        with pytest.raises(UnknownAccountError):
            evaluate_condition('account.balance("Nope") < 1', _snapshot())

    def test_resolve_uses_snapshot(self):
        snapshot = _snapshot(accounts={"A": 7}, variables={"v": 8})
        assert resolve('account.balance("A")', snapshot) == 7
        assert resolve("var.v", snapshot) == 8


class TestVariableRefs:
    def test_finds_all_references_in_order(self):
        assert variable_refs("var.a < 2 * var.b_2") == ["a", "b_2"]

    def test_no_references(self):
        assert variable_refs('account.balance("A") < 1') == []
