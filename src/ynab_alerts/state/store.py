"""JSON-file observation store.

Observed values survive across evaluation cycles and daemon restarts.
The backing document maps variable names to their last observation:

    {
      "checking_start": {"value": 1250000, "recorded_at": "2024-03-01T09:00:00+00:00"}
    }

All operations are serialized by a single lock covering both the
in-memory map and the file write.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from datetime import datetime  # noqa: TC003 - pydantic field type
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from ynab_alerts.errors import StorePersistenceError

logger = logging.getLogger(__name__)


class ObservedValue(BaseModel):
    """A captured value and the instant it was recorded.

    Attributes:
        value: Captured value in milli-units.
        recorded_at: When the value was captured.
    """

    model_config = ConfigDict(frozen=True)

    value: int
    recorded_at: datetime


class ObservationStore:
    """Persisted variable name -> ObservedValue mapping.

    The store is loaded once at construction. Every ``set`` re-reads the
    document, merges the new value and rewrites the whole file, so keys
    written by another process since load are kept.

    Args:
        path: Location of the JSON document. Missing parent directories
            are created on first use.

    Example:
        >>> store = ObservationStore("~/.cache/ynab-alerts/observations.json")
        >>> store.set("checking_start", ObservedValue(value=1000, recorded_at=now))
        >>> store.snapshot()
        {'checking_start': 1000}
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the store, loading any existing document.

        Raises:
            StorePersistenceError: If the document exists but cannot be
                read or parsed, or the directory cannot be created.
        """
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()
        self._values: dict[str, ObservedValue] = {}

        with self._lock:
            self._ensure_directory()
            self._values = self._read()
        logger.debug("Loaded %d observation(s) from %s", len(self._values), self.path)

    def _ensure_directory(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            msg = f"Cannot create observation directory: {e}"
            raise StorePersistenceError(msg, self.path) from e

    def _read(self) -> dict[str, ObservedValue]:
        """Read the backing document; an absent file is an empty store."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as e:
            msg = f"Cannot read observation store: {e}"
            raise StorePersistenceError(msg, self.path) from e

        if not content.strip():
            return {}

        try:
            raw: Any = json.loads(content)
        except json.JSONDecodeError as e:
            msg = f"Invalid observation store JSON: {e}"
            raise StorePersistenceError(msg, self.path) from e

        if not isinstance(raw, dict):
            msg = "Observation store must contain a JSON object"
            raise StorePersistenceError(msg, self.path)

        try:
            return {
                name: ObservedValue.model_validate(entry) for name, entry in raw.items()
            }
        except ValidationError as e:
            msg = f"Invalid observation entry: {e}"
            raise StorePersistenceError(msg, self.path) from e

    def _write(self, values: dict[str, ObservedValue]) -> None:
        """Atomically replace the backing document."""
        payload = {
            name: entry.model_dump(mode="json") for name, entry in sorted(values.items())
        }
        try:
            fd, tmp_name = tempfile.mkstemp(
                dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2)
                    f.write("\n")
                os.replace(tmp_name, self.path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            msg = f"Cannot write observation store: {e}"
            raise StorePersistenceError(msg, self.path) from e

    def get(self, name: str) -> ObservedValue | None:
        """Return the observation for ``name``, or None if never captured."""
        with self._lock:
            return self._values.get(name)

    def set(self, name: str, value: ObservedValue) -> None:
        """Record an observation and persist it synchronously.

        Raises:
            StorePersistenceError: If the document cannot be written. The
                in-memory store is left unchanged in that case.
        """
        with self._lock:
            merged = dict(self._values)
            merged.update(self._read())
            merged[name] = value
            self._write(merged)
            self._values = merged
        logger.debug("Stored observation %s=%d", name, value.value)

    def snapshot(self) -> dict[str, int]:
        """Return a copy of all stored values keyed by variable name."""
        with self._lock:
            return {name: entry.value for name, entry in self._values.items()}

    def items(self) -> list[tuple[str, ObservedValue]]:
        """Return all observations sorted by variable name."""
        with self._lock:
            return sorted(self._values.items())

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)
