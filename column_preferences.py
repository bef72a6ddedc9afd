"""Remembered CSV column choices keyed by a header-set fingerprint."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Protocol, Sequence

logger = logging.getLogger(__name__)

COLUMN_PREFS_KEY = "chorus.csvColumnPrefs"
LAST_COLUMN_KEY = "chorus.lastSelectedColumnName"


class KeyValueStore(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...

    def set(self, key: str, value: Any) -> None: ...

    def has(self, key: str) -> bool: ...


class InMemoryStore:
    """Dictionary-backed store, used by tests and as the service default."""

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def has(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """Best-effort JSON file store.

    Read and write failures never propagate: an unreadable file behaves like an
    empty store and a failed write only logs a warning.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable preference file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def get(self, key: str, default: Any = None) -> Any:
        return self._load().get(key, default)

    def set(self, key: str, value: Any) -> None:
        data = self._load()
        data[key] = value
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as exc:
            logger.warning("Could not persist preference %s to %s: %s", key, self.path, exc)

    def has(self, key: str) -> bool:
        return key in self._load()


def header_set_hash(headers: Sequence[str]) -> str:
    return "|".join(sorted(header.lower().strip() for header in headers))


class ColumnPreferences:
    """Looks up and records which column holds feedback for a given header set."""

    def __init__(self, store: KeyValueStore) -> None:
        self.store = store

    def _column_prefs(self) -> dict[str, str]:
        prefs = self.store.get(COLUMN_PREFS_KEY) or {}
        return prefs if isinstance(prefs, dict) else {}

    def last_selected_column(self) -> str:
        value = self.store.get(LAST_COLUMN_KEY) or ""
        return value if isinstance(value, str) else ""

    def saved_column_for(self, headers: Sequence[str]) -> str | None:
        """Return the remembered column name if it is present in ``headers``.

        The per-fingerprint choice wins; the last selected column name is the
        fallback when this exact header set has never been seen.
        """
        saved = self._column_prefs().get(header_set_hash(headers))
        if saved and saved in headers:
            return saved

        last_column = self.last_selected_column()
        if last_column and last_column in headers:
            return last_column
        return None

    def remember(self, headers: Sequence[str], column_name: str) -> None:
        prefs = self._column_prefs()
        prefs[header_set_hash(headers)] = column_name
        self.store.set(COLUMN_PREFS_KEY, prefs)
        self.store.set(LAST_COLUMN_KEY, column_name)
        logger.info("Remembered column %r for header set", column_name)
