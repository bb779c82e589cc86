"""Abstract key/value storage used for persisted diff states."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class Storage(ABC):
    """Interface for storage backends.

    Values are JSON-compatible structures. Backends raise
    :class:`~lingopipe.errors.StorageError` when a stored value exists but
    cannot be read; writes report failure by returning False.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None:
        """Return the stored value, or None if absent or expired."""
        ...

    @abstractmethod
    def put(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """Store a value, optionally expiring after ``ttl`` seconds."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @abstractmethod
    def clear(self) -> bool:
        ...

    def has(self, key: str) -> bool:
        """Default implementation uses get()."""
        return self.get(key) is not None
