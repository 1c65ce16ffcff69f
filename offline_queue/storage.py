"""
Persistent key-value stores for the queue snapshot.

The engine serializes the whole queue under one key, so a store only needs
get/set/delete of bytes. Every backend reports failures as StorageError;
the engine logs those and keeps running on its in-memory state.

Backends:
- MemoryStore: process-local dict (tests, ephemeral sessions)
- JsonFileStore: one file per key with atomic temp-file + rename writes
- SQLiteStore: persist-queue's SQLite-backed PDict
"""

import os
import re
import sqlite3
import threading
from typing import Optional, Protocol, runtime_checkable

from persistqueue.pdict import PDict

from shared.log import create_logger

log_trace, log_debug, log_info, log_warn, log_error = create_logger("Storage")


class StorageError(Exception):
    """Persistent store unavailable, full, or unreadable."""
    pass


@runtime_checkable
class PersistentStore(Protocol):
    """Minimal key-value contract used by the queue engine."""

    def get(self, key: str) -> Optional[bytes]:
        ...

    def set(self, key: str, value: bytes) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


class MemoryStore:
    """In-process store. Contents are lost with the process."""

    def __init__(self):
        self._data: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: bytes) -> None:
        with self._lock:
            self._data[key] = bytes(value)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)


_SAFE_KEY = re.compile(r'[^A-Za-z0-9_.-]')


class JsonFileStore:
    """
    File-per-key store under a directory.

    Writes go to ``<key>.json.tmp`` and are moved into place with
    os.replace, so a crash mid-write never leaves a torn snapshot.

    Args:
        data_dir: Directory holding the key files (created on first write)
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir

    def _path(self, key: str) -> str:
        return os.path.join(self.data_dir, _SAFE_KEY.sub('_', key) + '.json')

    def get(self, key: str) -> Optional[bytes]:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise StorageError(f"Failed to read {path}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        path = self._path(key)
        tmp_path = path + '.tmp'
        try:
            os.makedirs(self.data_dir, exist_ok=True)
            with open(tmp_path, 'wb') as f:
                f.write(value)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Failed to write {path}: {e}") from e

    def delete(self, key: str) -> None:
        path = self._path(key)
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Failed to delete {path}: {e}") from e


class SQLiteStore:
    """
    SQLite-backed store using persist-queue's PDict.

    PDict auto-commits each assignment, so a set() is durable once it
    returns.

    Args:
        data_dir: Directory for the SQLite database
        name: Table name inside the database (default: offline_store)
    """

    def __init__(self, data_dir: str, name: str = 'offline_store'):
        self.data_dir = data_dir
        self.name = name
        try:
            os.makedirs(data_dir, exist_ok=True)
            self._dict = PDict(data_dir, name, multithreading=True)
        except (OSError, sqlite3.Error) as e:
            raise StorageError(f"Failed to open SQLite store at {data_dir}: {e}") from e
        log_debug(f"Opened SQLite store at {data_dir} (table {name})")

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self._dict[key]
        except KeyError:
            return None
        except sqlite3.Error as e:
            raise StorageError(f"Failed to read key {key}: {e}") from e

    def set(self, key: str, value: bytes) -> None:
        try:
            self._dict[key] = bytes(value)
        except sqlite3.Error as e:
            raise StorageError(f"Failed to write key {key}: {e}") from e

    def delete(self, key: str) -> None:
        try:
            del self._dict[key]
        except KeyError:
            pass
        except sqlite3.Error as e:
            raise StorageError(f"Failed to delete key {key}: {e}") from e


__all__ = [
    'StorageError',
    'PersistentStore',
    'MemoryStore',
    'JsonFileStore',
    'SQLiteStore',
]
