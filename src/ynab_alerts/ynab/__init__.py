"""YNAB API access."""

from ynab_alerts.ynab.client import (
    Account,
    Budget,
    CurrencyFormat,
    YNABAPIError,
    YNABClient,
    balance_map,
    format_money,
)

__all__ = [
    "Account",
    "Budget",
    "CurrencyFormat",
    "YNABAPIError",
    "YNABClient",
    "balance_map",
    "format_money",
]
