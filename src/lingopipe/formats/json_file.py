"""JSON language files, nested or flat, flattened to dot-notation keys."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

COMMENT_KEY = "_comment"


class JSONFileTransformer:
    """Flattens nested JSON to ``{"a.b": "text"}`` and writes it back.

    With ``dot_notation=True`` files are written flat; otherwise keys are
    expanded back into nested objects.
    """

    def __init__(self, dot_notation: bool = False, source_locale: str = "en") -> None:
        self.dot_notation = dot_notation
        self.source_locale = source_locale

    def parse(self, path: str | Path) -> dict[str, Any]:
        path = Path(path)
        if not path.exists():
            return {}
        content = json.loads(path.read_text(encoding="utf-8"))
        return content if isinstance(content, dict) else {}

    def flatten(self, source: dict[str, Any] | str | Path, prefix: str = "") -> dict[str, str]:
        """Flatten a nested mapping (or a JSON file) to dot-notation keys.

        The generated ``_comment`` header and non-string leaves are skipped.
        """
        data = source if isinstance(source, dict) else self.parse(source)
        result: dict[str, str] = {}
        for key, value in data.items():
            if key == COMMENT_KEY and not prefix:
                continue
            full_key = f"{prefix}.{key}" if prefix else str(key)
            if isinstance(value, dict):
                result.update(self.flatten(value, full_key))
            elif isinstance(value, str):
                result[full_key] = value
            else:
                logger.debug("Skipping non-string value at %s", full_key)
        return result

    @staticmethod
    def unflatten(texts: dict[str, str]) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for key, value in texts.items():
            parts = key.split(".")
            current = result
            for part in parts[:-1]:
                node = current.get(part)
                if not isinstance(node, dict):
                    node = current[part] = {}
                current = node
            current[parts[-1]] = value
        return result

    def is_translated(self, content: dict[str, Any], key: str) -> bool:
        if key == COMMENT_KEY:
            return True
        return bool(self.flatten(content).get(key, "").strip())

    def write(self, path: str | Path, texts: dict[str, str]) -> Path:
        """Write ``texts`` to ``path`` with an auto-generated header comment."""
        path = Path(path)
        body = dict(texts) if self.dot_notation else self.unflatten(texts)
        body.pop(COMMENT_KEY, None)
        stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S %Z")
        content = {
            COMMENT_KEY: (
                "WARNING: This is an auto-generated file. Manual changes will be lost. "
                f"Translated from {self.source_locale} on {stamp}."
            ),
            **body,
        }
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(content, ensure_ascii=False, indent=2) + "\n", encoding="utf-8")
        return path
