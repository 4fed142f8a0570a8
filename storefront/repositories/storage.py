"""Key-value persistence port and its adapters.

Repositories never touch files directly; they talk to a :class:`KeyValueStore`
which mirrors the browser's local storage: string keys mapped to string
values, with ``get`` / ``set`` / ``remove``.  Two adapters are provided:

* :class:`MemoryStore`: a dict, used by tests and throwaway sessions.
* :class:`JsonFileStore`: one JSON object on disk, written atomically.
"""
import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional

from ..errors import StorageUnavailable


class KeyValueStore(ABC):
    """Abstract string-to-string store."""

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the value under *key*, or ``None`` if absent."""

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store *value* under *key*, replacing any previous value."""

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete *key*; missing keys are ignored."""


class MemoryStore(KeyValueStore):
    """In-process store backed by a plain dict."""

    def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def remove(self, key: str) -> None:
        self.data.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Persists every key in a single JSON object file.

    The file is re-read on each access so that separate processes sharing it
    see each other's writes (last write wins).  Writes use a
    write-then-rename strategy so the file is never left partially written.
    """

    def __init__(self, file_path: str = '.gameverse_storage.json') -> None:
        self._path = file_path
        self._lock = threading.Lock()
        self._log = logging.getLogger('gameverse.storage')

    @property
    def path(self) -> str:
        return self._path

    def _read_all(self) -> Dict[str, str]:
        if not os.path.exists(self._path):
            return {}
        try:
            with open(self._path, 'r') as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, IOError) as exc:
            raise StorageUnavailable(f"Could not read {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StorageUnavailable(f"{self._path} does not hold a JSON object")
        return data

    def _write_all(self, data: Dict[str, str]) -> None:
        dir_name = os.path.dirname(os.path.abspath(self._path))
        try:
            fd, tmp_path = tempfile.mkstemp(dir=dir_name, suffix='.tmp')
        except OSError as exc:
            raise StorageUnavailable(f"Could not write {self._path}: {exc}") from exc
        try:
            with os.fdopen(fd, 'w') as fh:
                json.dump(data, fh, indent=2)
            os.replace(tmp_path, self._path)
        except OSError as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            raise StorageUnavailable(f"Could not write {self._path}: {exc}") from exc

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            value = self._read_all().get(key)
        return value if isinstance(value, str) else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            try:
                data = self._read_all()
            except StorageUnavailable as exc:
                # A corrupt file is replaced rather than blocking every write.
                self._log.warning("Resetting unreadable storage file: %s", exc)
                data = {}
            data[key] = value
            self._write_all(data)

    def remove(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)
