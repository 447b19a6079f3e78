"""Value expressions and comparison conditions.

Value expressions resolve to signed integers in milli-units (1/1000 of a
currency unit). Recognized forms, in priority order:

- ``<factor> * <expr>``      literal factor times a sub-expression
- ``account.balance("Name")`` current balance of an account
- ``account.due("Name")``     alias of account.balance
- ``var.<name>``             last observed value of a variable
- ``<number>``               currency amount in whole units (50.5 -> 50500)

Conditions compare two value expressions with one of
``< <= > >= == !=``.
"""

from __future__ import annotations

import operator
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING

from ynab_alerts.errors import (
    MalformedConditionError,
    UnknownAccountError,
    UnknownVariableError,
    UnsupportedExpressionError,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ynab_alerts.rules.schema import Snapshot

MILLIUNITS_PER_UNIT = 1000

_NUMBER_PATTERN = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")

CONDITION_PATTERN = re.compile(r"^\s*(.+?)\s*(<=|>=|==|!=|<|>)\s*(.+?)\s*$")

VARIABLE_REF_PATTERN = re.compile(r"var\.([A-Za-z0-9_]+)")

_ACCOUNT_FUNCTIONS = ("account.balance", "account.due")

_OPERATORS: dict[str, Callable[[int, int], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


def parse_number(text: str) -> Decimal | None:
    """Parse a finite decimal literal, or return None."""
    text = text.strip()
    if not _NUMBER_PATTERN.match(text):
        return None
    try:
        return Decimal(text)
    except InvalidOperation:
        return None


def round_half_away(value: Decimal) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_milliunits(amount: Decimal) -> int:
    """Convert a whole-unit currency amount to milli-units."""
    return round_half_away(amount * MILLIUNITS_PER_UNIT)


def resolve_value(
    expression: str,
    accounts: Mapping[str, int],
    variables: Mapping[str, int],
) -> int:
    """Resolve a value expression to milli-units.

    Args:
        expression: Expression text.
        accounts: Account name to balance (milli-units).
        variables: Variable name to observed value (milli-units).

    Returns:
        Resolved value in milli-units.

    Raises:
        UnknownAccountError: If an account lookup misses.
        UnknownVariableError: If a variable lookup misses.
        UnsupportedExpressionError: If no form matches.
    """
    expr = expression.strip()

    # Only "<literal> * <expr>" is recognized; a non-numeric left side
    # falls through to the remaining forms.
    parts = expr.split("*")
    if len(parts) == 2:
        factor = parse_number(parts[0])
        if factor is not None:
            inner = resolve_value(parts[1], accounts, variables)
            return round_half_away(Decimal(inner) * factor)

    for function in _ACCOUNT_FUNCTIONS:
        if expr.startswith(function + "("):
            name = _extract_argument(expr)
            if not name:
                raise UnsupportedExpressionError(
                    expr, f"{function} requires an account name"
                )
            if name not in accounts:
                raise UnknownAccountError(name)
            return accounts[name]

    if expr.startswith("var."):
        key = expr[len("var.") :]
        if key not in variables:
            raise UnknownVariableError(key)
        return variables[key]

    amount = parse_number(expr)
    if amount is not None:
        return to_milliunits(amount)

    raise UnsupportedExpressionError(expr)


def resolve(expression: str, snapshot: Snapshot) -> int:
    """Resolve a value expression against a snapshot."""
    return resolve_value(expression, snapshot.accounts, snapshot.variables)


def parse_condition(condition: str) -> tuple[str, str, str]:
    """Split a condition into (left, operator, right).

    Raises:
        MalformedConditionError: If the text is not "left OP right".
    """
    match = CONDITION_PATTERN.match(condition)
    if not match:
        raise MalformedConditionError(condition)
    left, op, right = match.groups()
    return left.strip(), op, right.strip()


def evaluate_condition(condition: str, snapshot: Snapshot) -> bool:
    """Evaluate a single comparison against a snapshot.

    Args:
        condition: Condition text.
        snapshot: Evaluation context.

    Returns:
        Result of the comparison.

    Raises:
        MalformedConditionError: If the condition cannot be parsed.
        RuleError: Any resolver error from either operand.
    """
    left, op, right = parse_condition(condition)
    left_value = resolve(left, snapshot)
    right_value = resolve(right, snapshot)
    return _OPERATORS[op](left_value, right_value)


def variable_refs(condition: str) -> list[str]:
    """Return the variable names referenced by a condition, in order."""
    return VARIABLE_REF_PATTERN.findall(condition)


def _extract_argument(expr: str) -> str:
    """Return the quoted argument of a call-like expression."""
    start = expr.find("(")
    end = expr.rfind(")")
    if start == -1 or end == -1 or end <= start:
        return ""
    arg = expr[start + 1 : end].strip()
    return arg.strip('"').strip("'")
