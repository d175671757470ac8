"""Persistent credential storage for studiosync.

This module provides:
- KeyValueStore: protocol for the small local store the CLI persists into
- JsonFileStore: key-value store backed by a JSON file in the tool home
- TokenStore: reads and writes the studio auth cookie under a fixed key,
  mirrored into the OS keyring when one is available
"""

from __future__ import annotations

import contextlib
import json
import logging
from pathlib import Path
from typing import Protocol

import keyring

logger = logging.getLogger(__name__)

STORE_FILE_NAME = "store.json"
KEYRING_SERVICE = "studiosync"
AUTH_TOKEN_KEY = "user.auth.token"


class StoreError(Exception):
    """Exception raised when the local store cannot be read or written."""


class KeyValueStore(Protocol):
    """Protocol for a string key-value store."""

    def get_item(self, key: str) -> str | None:
        """Get the value stored under key, or None."""
        ...

    def set_item(self, key: str, value: str) -> None:
        """Store value under key."""
        ...

    def remove_item(self, key: str) -> None:
        """Remove key if present."""
        ...

    def clear(self) -> None:
        """Remove every key."""
        ...


class JsonFileStore:
    """Key-value store persisted as one JSON object on disk."""

    def __init__(self, store_dir: Path) -> None:
        """Initialize the store.

        Args:
            store_dir: Directory holding the store file. Created on first write.
        """
        self._path = Path(store_dir) / STORE_FILE_NAME

    @property
    def path(self) -> Path:
        """Path of the backing JSON file."""
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text())
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupted store file {self._path}: {e}") from e
        if not isinstance(data, dict):
            raise StoreError(f"Invalid store file format: {self._path}")
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, indent=2))

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()


class TokenStore:
    """Stores the studio auth cookie.

    The cookie lives under ``user.auth.token`` in the key-value store and is
    cached in the OS keyring. Keyring failures are ignored: the file store
    is the source of truth.
    """

    def __init__(self, store: KeyValueStore, key: str = AUTH_TOKEN_KEY) -> None:
        self._store = store
        self._key = key

    def load(self) -> str | None:
        """Return the stored cookie, falling back to the keyring cache."""
        value = self._store.get_item(self._key)
        if value:
            return value
        cached: str | None = None
        with contextlib.suppress(Exception):
            cached = keyring.get_password(KEYRING_SERVICE, self._key)
        if cached:
            logger.debug("Auth cookie restored from keyring")
            self._store.set_item(self._key, cached)
        return cached

    def save(self, cookie: str) -> None:
        """Persist the cookie after a successful validation."""
        self._store.set_item(self._key, cookie)
        with contextlib.suppress(Exception):
            keyring.set_password(KEYRING_SERVICE, self._key, cookie)

    def clear(self) -> None:
        """Forget the stored cookie."""
        self._store.remove_item(self._key)
        with contextlib.suppress(Exception):
            keyring.delete_password(KEYRING_SERVICE, self._key)
