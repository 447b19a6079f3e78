"""YNAB Alerts - rule-driven balance alerts for YNAB budgets."""

__version__ = "0.1.0"
