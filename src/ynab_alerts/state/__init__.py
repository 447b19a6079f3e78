"""Observation persistence for ynab-alerts.

Observed values are kept in a single JSON document so that rules can
compare current balances against values captured on earlier days.

Usage:
    from ynab_alerts.state import ObservationStore
    from ynab_alerts.paths import get_default_observations_path

    store = ObservationStore(get_default_observations_path())
    store.snapshot()
"""

from ynab_alerts.state.store import ObservationStore, ObservedValue

__all__ = [
    "ObservationStore",
    "ObservedValue",
]
