"""Entry point for running ynab-alerts as a module.

Allows running the application with:
    python -m ynab_alerts

This delegates to the Typer CLI app.
"""

from ynab_alerts.cli import app

if __name__ == "__main__":
    app()
