"""
Key-value storage service - single source of truth for persisted quote state

Two interchangeable backends with synchronous get/set/remove/clear:
- JsonFileStore: durable, one JSON object on disk, written through on every set
- MemoryStore: process-local stand-in, lost on restart

get_storage() returns the process-wide store. When the data directory is not
writable the in-memory store is substituted transparently; callers never
check which backend is active.
"""

import json
import logging
import os
import tempfile
from abc import ABC, abstractmethod
from functools import lru_cache
from typing import Dict, Optional

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_DATA_DIR = "data"
STORE_FILENAME = "quote_store.json"


class StorageUnavailableError(OSError):
    """Durable backend cannot be read or written"""


class KeyValueStore(ABC):
    """String key -> string value storage"""

    durable = False

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def remove(self, key: str) -> None:
        ...

    @abstractmethod
    def clear(self) -> None:
        ...


class MemoryStore(KeyValueStore):
    """In-memory store with the same interface (does not survive a restart)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()


class JsonFileStore(KeyValueStore):
    """
    Durable store backed by a single JSON file.

    The whole mapping is rewritten atomically (temp file + os.replace) on
    every mutation, so the file is never more than one operation stale.
    """

    durable = True

    def __init__(self, path: str):
        self.path = path
        self._data = self._read()

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            logger.warning(f"Storage file {self.path} is corrupt, starting empty: {e}")
            return {}
        except OSError as e:
            raise StorageUnavailableError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(data, dict):
            logger.warning(f"Storage file {self.path} does not hold an object, starting empty")
            return {}
        return {str(k): v for k, v in data.items() if isinstance(v, str)}

    def _write(self) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".quote_store_", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.remove(tmp_path)
                raise
        except OSError as e:
            raise StorageUnavailableError(f"Cannot write {self.path}: {e}") from e

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._write()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._write()

    def clear(self) -> None:
        self._data = {}
        self._write()


class FallbackStore(KeyValueStore):
    """
    Wraps a durable store and switches to memory on the first I/O failure.

    The memory copy starts from whatever the durable store held, so reads
    stay consistent after the switch.
    """

    def __init__(self, primary: JsonFileStore):
        self._primary = primary
        self._active: KeyValueStore = primary

    @property
    def durable(self) -> bool:
        return self._active.durable

    def _fall_back(self, error: Exception) -> None:
        logger.warning(f"Durable storage unavailable, using in-memory storage: {error}")
        self._active = MemoryStore(self._primary._data)

    def get(self, key: str) -> Optional[str]:
        return self._active.get(key)

    def set(self, key: str, value: str) -> None:
        try:
            self._active.set(key, value)
        except StorageUnavailableError as e:
            self._fall_back(e)
            self._active.set(key, value)

    def remove(self, key: str) -> None:
        try:
            self._active.remove(key)
        except StorageUnavailableError as e:
            self._fall_back(e)
            self._active.remove(key)

    def clear(self) -> None:
        try:
            self._active.clear()
        except StorageUnavailableError as e:
            self._fall_back(e)
            self._active.clear()


def get_data_dir() -> str:
    """Directory of the durable store (QUOTE_DATA_DIR, default ./data)"""
    return os.getenv("QUOTE_DATA_DIR") or DEFAULT_DATA_DIR


def open_storage(data_dir: Optional[str] = None) -> KeyValueStore:
    """
    Open the durable store in data_dir, or an in-memory store if it is blocked.

    Args:
        data_dir: Directory for the JSON file (defaults to get_data_dir())

    Returns:
        FallbackStore over a JsonFileStore, or MemoryStore
    """
    path = os.path.join(data_dir or get_data_dir(), STORE_FILENAME)
    try:
        return FallbackStore(JsonFileStore(path))
    except StorageUnavailableError as e:
        logger.warning(f"Durable storage unavailable, using in-memory storage: {e}")
        return MemoryStore()


@lru_cache()
def get_storage() -> KeyValueStore:
    """Get the process-wide store (cached singleton)"""
    return open_storage()
