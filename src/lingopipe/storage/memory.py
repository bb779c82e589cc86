"""In-process storage backend, mainly for tests and one-shot runs."""

from __future__ import annotations

import copy
import threading
import time
from typing import Any

from lingopipe.storage.base import Storage


class MemoryStorage(Storage):
    """Dict-backed storage with optional TTL. Values are deep-copied in and out."""

    def __init__(self) -> None:
        self._data: dict[str, tuple[Any, float | None]] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Any | None:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at < time.time():
                del self._data[key]
                return None
            return copy.deepcopy(value)

    def put(self, key: str, value: Any, ttl: int | None = None) -> bool:
        expires_at = time.time() + ttl if ttl is not None else None
        with self._lock:
            self._data[key] = (copy.deepcopy(value), expires_at)
        return True

    def delete(self, key: str) -> bool:
        with self._lock:
            self._data.pop(key, None)
        return True

    def clear(self) -> bool:
        with self._lock:
            self._data.clear()
        return True

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def __len__(self) -> int:
        return len(self._data)
