"""JSON file storage: one file per key, colons in keys become directories.

    translation_state:en:ko  →  <base>/translation_state/en/ko.json

Writes go to a temporary file in the same directory and are moved into place
with os.replace(), so readers never see a half-written state.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shutil
import tempfile
import threading
import time
from collections import defaultdict
from pathlib import Path
from typing import Any

from lingopipe.errors import StorageError
from lingopipe.storage.base import Storage

logger = logging.getLogger(__name__)

_EXTENSION = ".json"
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9_\-:.]")
_MULTI_UNDERSCORE = re.compile(r"_+")


class FileStorage(Storage):
    """Filesystem-backed storage with TTL and per-key locking."""

    def __init__(self, base_path: str | Path) -> None:
        self._base = Path(base_path)
        self._base.mkdir(parents=True, exist_ok=True)
        self._locks: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    @property
    def base_path(self) -> Path:
        return self._base

    def _lock(self, key: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks[key]

    @staticmethod
    def sanitize_key(key: str) -> str:
        key = _UNSAFE_CHARS.sub("_", key)
        key = _MULTI_UNDERSCORE.sub("_", key)
        return key.strip("_")

    def path_for(self, key: str) -> Path:
        parts = [p for p in self.sanitize_key(key).split(":") if p not in ("", ".", "..")]
        if not parts:
            raise StorageError(f"Invalid storage key: {key!r}")
        return self._base.joinpath(*parts[:-1], parts[-1] + _EXTENSION)

    def get(self, key: str) -> Any | None:
        path = self.path_for(key)
        with self._lock(key):
            if not path.exists():
                return None
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                raise StorageError(f"Cannot read state '{key}' from {path}: {e}") from e

            if not isinstance(data, dict):
                raise StorageError(f"Unexpected content for '{key}' in {path}")

            expires_at = data.pop("__ttl", None)
            if expires_at is not None and expires_at < time.time():
                path.unlink(missing_ok=True)
                return None
            data.pop("__stored_at", None)
            if "__value" in data:
                return data["__value"]
            return data

    def put(self, key: str, value: Any, ttl: int | None = None) -> bool:
        path = self.path_for(key)
        now = time.time()
        if isinstance(value, dict):
            payload = dict(value)
        else:
            payload = {"__value": value}
        payload["__stored_at"] = now
        if ttl is not None:
            payload["__ttl"] = now + ttl

        with self._lock(key):
            try:
                path.parent.mkdir(parents=True, exist_ok=True)
                fd, tmp_name = tempfile.mkstemp(
                    dir=path.parent, prefix=path.stem + ".", suffix=".tmp",
                )
                try:
                    with os.fdopen(fd, "w", encoding="utf-8") as f:
                        json.dump(payload, f, ensure_ascii=False, indent=2)
                    os.replace(tmp_name, path)
                except BaseException:
                    Path(tmp_name).unlink(missing_ok=True)
                    raise
            except (OSError, TypeError, ValueError) as e:
                logger.error("Failed to write state '%s' to %s: %s", key, path, e)
                return False
        return True

    def delete(self, key: str) -> bool:
        path = self.path_for(key)
        with self._lock(key):
            try:
                path.unlink(missing_ok=True)
            except OSError as e:
                logger.error("Failed to delete state '%s': %s", key, e)
                return False
        return True

    def clear(self) -> bool:
        try:
            for child in self._base.iterdir():
                if child.is_dir():
                    shutil.rmtree(child)
                else:
                    child.unlink()
        except OSError as e:
            logger.error("Failed to clear %s: %s", self._base, e)
            return False
        return True

    def keys(self) -> list[str]:
        """All stored keys, reconstructed from file paths."""
        keys = []
        for path in sorted(self._base.rglob("*" + _EXTENSION)):
            relative = path.relative_to(self._base).with_suffix("")
            keys.append(":".join(relative.parts))
        return keys

    def cleanup(self) -> int:
        """Remove expired entries. Returns the number removed."""
        removed = 0
        for key in self.keys():
            try:
                if self.get(key) is None:
                    removed += 1
            except StorageError:
                logger.warning("Skipping unreadable state '%s' during cleanup", key)
        return removed

    def stats(self) -> dict[str, Any]:
        files = [p for p in self._base.rglob("*" + _EXTENSION) if p.is_file()]
        total = sum(p.stat().st_size for p in files)
        return {
            "base_path": str(self._base),
            "total_files": len(files),
            "total_size": total,
            "total_size_mb": round(total / 1024 / 1024, 2),
        }
