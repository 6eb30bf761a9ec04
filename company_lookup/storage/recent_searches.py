"""Recent searches: a bounded, most-recent-first list persisted as a JSON array."""

import json
from pathlib import Path
from typing import Protocol

from loguru import logger

from company_lookup.constants import MAX_RECENT_SEARCHES, RECENT_SEARCHES_KEY


class KeyValueStorage(Protocol):
    """Durable string storage, keyed by name."""

    def get_item(self, key: str) -> str | None: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...


class MemoryStorage:
    """Process-local storage; nothing survives a restart."""

    def __init__(self, initial: dict[str, str] | None = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> str | None:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)


class JsonFileStorage:
    """All keys live in one JSON object file, rewritten on every change."""

    def __init__(self, path: str | Path):
        self.path = Path(path).expanduser()

    def _read(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except ValueError as e:
            # Undecodable file; the next write replaces it
            logger.warning(f"Ignoring unreadable storage file {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(items, indent=2), encoding="utf-8")
        tmp_path.replace(self.path)

    def get_item(self, key: str) -> str | None:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        items = self._read()
        items[key] = value
        self._write(items)

    def remove_item(self, key: str) -> None:
        items = self._read()
        if items.pop(key, None) is not None:
            self._write(items)


class RecentSearchStore:
    """Distinct queries, most recent first, capped at ``max_entries``."""

    def __init__(
        self,
        storage: KeyValueStorage,
        max_entries: int = MAX_RECENT_SEARCHES,
        key: str = RECENT_SEARCHES_KEY,
    ):
        self._storage = storage
        self._max_entries = max_entries
        self._key = key

    def load(self) -> list[str]:
        """Load the stored list. Unreadable storage yields an empty list."""
        try:
            stored = self._storage.get_item(self._key)
            if not stored:
                return []
            items = json.loads(stored)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to load recent searches: {e}")
            return []

        if not isinstance(items, list):
            logger.warning("Ignoring malformed recent searches entry")
            return []
        return [q for q in items if isinstance(q, str)][: self._max_entries]

    def add(self, query: str) -> list[str]:
        """Move ``query`` to the front, persist, and return the new list."""
        updated = [query] + [q for q in self.load() if q != query]
        updated = updated[: self._max_entries]
        try:
            self._storage.set_item(self._key, json.dumps(updated))
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to save recent search '{query}': {e}")
        return updated

    def clear(self) -> None:
        try:
            self._storage.remove_item(self._key)
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to clear recent searches: {e}")
