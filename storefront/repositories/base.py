"""Repository base class used by all concrete repositories."""
import json
import logging
from typing import Any, Optional

from ..errors import StorageUnavailable
from .storage import KeyValueStore


class BaseRepository:
    """Provides JSON-blob persistence on top of a
    :class:`~storefront.repositories.storage.KeyValueStore`.

    Each repository owns one primary key (``self.key``); the helpers also take
    an explicit key for repositories that span several.  Reads never raise: a
    missing key, corrupt JSON or an unavailable store all yield the supplied
    default.  Write failures (store full or disabled) are logged and
    otherwise ignored so that the in-memory state stays usable.
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        self._store = store
        self.key = key
        self._log = logging.getLogger(f'gameverse.repository.{type(self).__name__}')

    def _load_raw(self, key: Optional[str] = None) -> Optional[str]:
        key = key or self.key
        try:
            return self._store.get(key)
        except StorageUnavailable as exc:
            self._log.warning("Storage unavailable reading %s: %s", key, exc)
            return None

    def _load(self, default: Any, key: Optional[str] = None) -> Any:
        """Decode the JSON stored under *key*, or return *default*."""
        key = key or self.key
        raw = self._load_raw(key)
        if not raw:
            return default
        try:
            return json.loads(raw)
        except (json.JSONDecodeError, TypeError) as exc:
            self._log.warning("Could not decode %s: %s", key, exc)
            return default

    def _save_raw(self, value: str, key: Optional[str] = None) -> None:
        key = key or self.key
        try:
            self._store.set(key, value)
        except StorageUnavailable as exc:
            self._log.warning("Could not persist %s: %s", key, exc)

    def _save(self, data: Any, key: Optional[str] = None) -> None:
        """Encode *data* as JSON under *key*."""
        self._save_raw(json.dumps(data), key)

    def _clear(self, key: Optional[str] = None) -> None:
        key = key or self.key
        try:
            self._store.remove(key)
        except StorageUnavailable as exc:
            self._log.warning("Could not remove %s: %s", key, exc)
