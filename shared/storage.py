"""
Durable key-value storage for the host process.

This is the Python stand-in for the browser's local storage: string values
under string keys, surviving restarts. The cart slice persists its snapshot
here and the service clients read the auth token from it.

Design decisions:
- JSON file on disk, one object mapping key -> string value
- The whole file is rewritten on every change (the data is tiny)
- Writes go to a temp file first and are renamed into place
- Failures are raised as PersistenceError; callers decide whether to absorb them
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional, Protocol

from shared.errors import PersistenceError

logger = logging.getLogger("storage")


class LocalStorage(Protocol):
    """The storage primitive the core depends on."""

    def get_item(self, key: str) -> Optional[str]:
        ...

    def set_item(self, key: str, value: str) -> None:
        ...

    def remove_item(self, key: str) -> None:
        ...


class MemoryStorage:
    """
    In-process storage. Used by tests and when no storage path is configured.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._items)


class JsonFileStorage:
    """
    Storage backed by a single JSON file.

    The file is loaded lazily on first access and kept in memory afterwards.
    """

    def __init__(self, path: Path):
        """
        Args:
            path: Location of the JSON file. Parent directories are created on write.
        """
        self.path = Path(path)
        self._items: Optional[dict[str, str]] = None

    def _ensure_loaded(self) -> dict[str, str]:
        if self._items is None:
            if not self.path.exists():
                self._items = {}
            else:
                try:
                    with open(self.path, "r") as f:
                        data = json.load(f)
                except (OSError, ValueError) as e:
                    raise PersistenceError(f"Cannot read {self.path}: {e}") from e
                if not isinstance(data, dict):
                    raise PersistenceError(f"Storage file {self.path} is not a JSON object")
                self._items = {str(k): str(v) for k, v in data.items()}
        return self._items

    def _flush(self) -> None:
        items = self._ensure_loaded()
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w") as f:
                json.dump(items, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except OSError as e:
            raise PersistenceError(f"Cannot write {self.path}: {e}") from e

    def get_item(self, key: str) -> Optional[str]:
        return self._ensure_loaded().get(key)

    def set_item(self, key: str, value: str) -> None:
        self._ensure_loaded()[key] = value
        self._flush()

    def remove_item(self, key: str) -> None:
        if self._ensure_loaded().pop(key, None) is not None:
            self._flush()

    def reload(self) -> None:
        """Drop the in-memory copy so the next access re-reads the file."""
        self._items = None


# =============================================================================
# JSON helpers
# =============================================================================

def read_json(storage: LocalStorage, key: str) -> Optional[Any]:
    """
    Read and decode a JSON value.

    Returns None if the key is absent. Raises PersistenceError for a corrupt value.
    """
    raw = storage.get_item(key)
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        raise PersistenceError(f"Corrupt snapshot under '{key}': {e}") from e


def write_json(storage: LocalStorage, key: str, value: Any) -> None:
    """Encode and store a JSON value."""
    try:
        encoded = json.dumps(value)
    except (TypeError, ValueError) as e:
        raise PersistenceError(f"Cannot serialize value for '{key}': {e}") from e
    storage.set_item(key, encoded)
