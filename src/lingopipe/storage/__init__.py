"""Swappable key/value storage backends."""

from lingopipe.storage.base import Storage
from lingopipe.storage.file import FileStorage
from lingopipe.storage.memory import MemoryStorage
from lingopipe.storage.sqlite import SQLiteStorage

__all__ = ["FileStorage", "MemoryStorage", "SQLiteStorage", "Storage"]
