"""Change detection against the previous run, with optional translation reuse.

For every target locale the plugin loads the state persisted by the last
successful run, compares checksums, and narrows the working set to texts that
were added or changed for at least one locale. After the run (as a
terminator) it persists a fresh state per locale, or deletes it on failure.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from typing import Any

from lingopipe.config import DiffConfig
from lingopipe.core import stages as st
from lingopipe.core.context import ContextSnapshot, RunContext
from lingopipe.core.pipeline import HandlerResult, Next, PipelineEngine
from lingopipe.core.plugin import MiddlewarePlugin
from lingopipe.core.request import TranslationRequest
from lingopipe.errors import StorageError
from lingopipe.storage.base import Storage
from lingopipe.storage.file import FileStorage

logger = logging.getLogger(__name__)

_WHITESPACE = re.compile(r"\s+")

STATE_PREFIX = "translation_state"


@dataclass
class DiffState:
    """Persisted snapshot for one (source, locale[, tenant][, domain]) scope."""

    texts: dict[str, str]
    translations: dict[str, str]
    checksums: dict[str, str]
    timestamp: float = field(default_factory=time.time)
    metadata: dict[str, Any] = field(default_factory=dict)
    token_usage: dict[str, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.checksums.keys() != self.texts.keys():
            raise ValueError("DiffState checksums must cover exactly the state's texts")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> DiffState:
        try:
            return cls(
                texts=dict(data["texts"]),
                translations=dict(data.get("translations", {})),
                checksums=dict(data["checksums"]),
                timestamp=float(data.get("timestamp", 0.0)),
                metadata=dict(data.get("metadata", {})),
                token_usage=dict(data.get("token_usage", {})),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise StorageError(f"Malformed diff state: {e}") from e


@dataclass(frozen=True)
class TextChange:
    old: str | None
    new: str


@dataclass
class ChangeSet:
    added: dict[str, str] = field(default_factory=dict)
    changed: dict[str, TextChange] = field(default_factory=dict)
    removed: dict[str, str | None] = field(default_factory=dict)
    unchanged: dict[str, str] = field(default_factory=dict)

    @property
    def has_changes(self) -> bool:
        return bool(self.added or self.changed)

    def keys_to_translate(self) -> set[str]:
        return set(self.added) | set(self.changed)

    def stats(self) -> dict[str, int]:
        return {
            "added": len(self.added),
            "changed": len(self.changed),
            "removed": len(self.removed),
            "unchanged": len(self.unchanged),
        }


def compute_checksums(
    texts: Mapping[str, str],
    *,
    algorithm: str = "sha256",
    include_keys: bool = True,
    normalize_whitespace: bool = True,
) -> dict[str, str]:
    """Digest each text, optionally whitespace-normalized and key-prefixed."""
    checksums: dict[str, str] = {}
    for key, text in texts.items():
        content = text
        if normalize_whitespace:
            content = _WHITESPACE.sub(" ", content.strip())
        if include_keys:
            content = f"{key}:{content}"
        checksums[key] = hashlib.new(algorithm, content.encode("utf-8")).hexdigest()
    return checksums


def detect_changes(
    current: Mapping[str, str],
    previous: Mapping[str, str],
    *,
    current_checksums: Mapping[str, str],
    previous_checksums: Mapping[str, str],
) -> ChangeSet:
    """Classify every key of ``current`` ∪ ``previous``."""
    changes = ChangeSet()
    for key, checksum in current_checksums.items():
        if key not in previous_checksums:
            changes.added[key] = current[key]
        elif previous_checksums[key] != checksum:
            changes.changed[key] = TextChange(old=previous.get(key), new=current[key])
        else:
            changes.unchanged[key] = current[key]
    for key in previous_checksums:
        if key not in current_checksums:
            changes.removed[key] = previous.get(key)
    return changes


def state_key(
    request: TranslationRequest,
    locale: str | None = None,
    metadata: Mapping[str, Any] | None = None,
) -> str:
    """Deterministic storage key for a request scope."""
    parts = [
        STATE_PREFIX,
        request.source_locale,
        locale or "_".join(request.target_locales),
    ]
    if request.tenant_id:
        parts.append(request.tenant_id)
    domain = (metadata if metadata is not None else request.metadata).get("domain")
    if domain:
        parts.append(str(domain))
    return ":".join(parts)


class DiffTrackingPlugin(MiddlewarePlugin):
    """Skips texts that did not change since the last persisted run."""

    name = "diff_tracking"
    stage = st.DIFF_DETECTION
    priority = 95

    def __init__(self, config: DiffConfig | None = None, storage: Storage | None = None) -> None:
        super().__init__()
        self.config = config or DiffConfig()
        self._storage = storage

    @property
    def storage(self) -> Storage:
        if self._storage is None:
            self._storage = FileStorage(self.config.storage_path)
        return self._storage

    def boot(self, pipeline: PipelineEngine) -> None:
        super().boot(pipeline)
        pipeline.register_service("diff.detect_changes", self.diff_texts)

    def checksums(self, texts: Mapping[str, str]) -> dict[str, str]:
        return compute_checksums(
            texts,
            algorithm=self.config.algorithm,
            include_keys=self.config.include_keys,
            normalize_whitespace=self.config.normalize_whitespace,
        )

    def diff_texts(self, current: Mapping[str, str], previous: Mapping[str, str]) -> ChangeSet:
        return detect_changes(
            current,
            previous,
            current_checksums=self.checksums(current),
            previous_checksums=self.checksums(previous),
        )

    # ── stage handler ──

    def handle(self, context: RunContext, next_: Next) -> HandlerResult:
        if not self.config.enabled or self.should_skip(context):
            return next_(context)

        original = dict(context.texts)
        use_cache = self.option(context, "use_cache", self.config.use_cache)
        data = context.plugin_data(self.name)
        data["original_texts"] = original
        data["locales"] = {}

        needed: set[str] = set()
        stats: dict[str, dict[str, int]] = {}

        for locale in context.request.target_locales:
            key = state_key(context.request, locale, context.metadata)
            previous = self._load(context, key)

            if previous is None:
                logger.info("No previous state for %s, processing all %d texts", locale, len(original))
                changes = ChangeSet(added=dict(original))
            else:
                changes = detect_changes(
                    original,
                    previous.texts,
                    current_checksums=self.checksums(original),
                    previous_checksums=previous.checksums,
                )

            locale_needed = changes.keys_to_translate()
            if previous is not None and use_cache:
                locale_needed |= self._apply_cached(context, locale, previous, changes)

            data["locales"][locale] = {
                "state_key": key,
                "changes": changes,
                "previous": previous,
            }
            stats[locale] = changes.stats()
            needed |= locale_needed
            self._log_statistics(locale, changes, len(original))

        context.metadata["diff"] = stats
        context.texts = {k: v for k, v in original.items() if k in needed}

        if not needed:
            logger.info("All texts unchanged across all locales, skipping translation")
            return None

        return next_(context)

    def _load(self, context: RunContext, key: str) -> DiffState | None:
        try:
            raw = self.storage.get(key)
            if raw is None:
                return None
            return DiffState.from_dict(raw)
        except StorageError as e:
            logger.warning("Could not load diff state %s, treating as first run: %s", key, e)
            context.add_warning(f"Diff state '{key}' unreadable; re-translating all texts")
            return None

    def _apply_cached(
        self,
        context: RunContext,
        locale: str,
        previous: DiffState,
        changes: ChangeSet,
    ) -> set[str]:
        """Write cached translations for unchanged keys. Returns unchanged keys without one."""
        applied = 0
        missing: set[str] = set()
        for key in changes.unchanged:
            cached = previous.translations.get(key)
            if cached is None:
                missing.add(key)
                continue
            context.add_translation(locale, key, cached)
            applied += 1
        if applied:
            logger.info("Applied %d cached translations for %s", applied, locale)
        if missing:
            logger.info("%d unchanged texts for %s have no cached translation", len(missing), locale)
        return missing

    @staticmethod
    def _log_statistics(locale: str, changes: ChangeSet, total: int) -> None:
        percent = round(len(changes.unchanged) / total * 100, 2) if total else 0
        logger.info(
            "Diff for %s: %s%% unchanged (%s)",
            locale, percent, ", ".join(f"{k}={v}" for k, v in changes.stats().items()),
        )

    # ── persistence ──

    def terminate(self, context: RunContext, snapshot: ContextSnapshot) -> None:
        data = context.get_plugin_data(self.name)
        if not data or "locales" not in data:
            return

        if context.failed:
            if self.config.invalidate_on_error:
                self.invalidate(info["state_key"] for info in data["locales"].values())
                context.add_warning("Diff states invalidated due to translation failure")
            return
        if context.aborted:
            logger.info("Run aborted; diff states left untouched")
            return

        original: dict[str, str] = data["original_texts"]
        checksums = self.checksums(original)
        for locale, info in data["locales"].items():
            state = self._build_state(context, locale, original, checksums, info)
            key = info["state_key"]
            if not self.storage.put(key, state.to_dict(), ttl=self.config.ttl):
                context.add_warning(f"Could not persist diff state '{key}'")
                continue
            if self.config.versioning and self.config.max_versions > 0:
                self._save_version(key, state)
            logger.info(
                "Saved state %s (%d texts, %d translations)",
                key, len(state.texts), len(state.translations),
            )

    def _build_state(
        self,
        context: RunContext,
        locale: str,
        original: dict[str, str],
        checksums: dict[str, str],
        info: dict[str, Any],
    ) -> DiffState:
        previous: DiffState | None = info["previous"]
        changes: ChangeSet = info["changes"]

        translations: dict[str, str] = {}
        if previous is not None:
            # Carry over translations of texts that did not change
            for key in changes.unchanged:
                if key in previous.translations:
                    translations[key] = previous.translations[key]
        for key, value in context.get_translations(locale).items():
            if key in original:
                translations[key] = value

        metadata: dict[str, Any] = {
            "source_locale": context.request.source_locale,
            "target_locale": locale,
            "version": self.config.state_version,
        }
        if self.config.track_metadata:
            metadata.update(_json_safe(context.metadata))

        return DiffState(
            texts=dict(original),
            translations=translations,
            checksums=dict(checksums),
            timestamp=time.time(),
            metadata=metadata,
            token_usage=context.token_usage.to_dict() if self.config.track_tokens else {},
        )

    def _save_version(self, key: str, state: DiffState) -> None:
        index_key = f"{key}:versions"
        try:
            index = self.storage.get(index_key) or {}
        except StorageError:
            index = {}
        versions: list[int] = list(index.get("versions", []))
        number = versions[-1] + 1 if versions else 1
        if not self.storage.put(f"{key}:v:{number}", state.to_dict(), ttl=self.config.ttl):
            logger.warning("Could not store version %d of %s", number, key)
            return
        versions.append(number)
        while len(versions) > self.config.max_versions:
            oldest = versions.pop(0)
            self.storage.delete(f"{key}:v:{oldest}")
        self.storage.put(index_key, {"versions": versions})

    def versions(self, key: str) -> list[int]:
        index = self.storage.get(f"{key}:versions") or {}
        return list(index.get("versions", []))

    # ── cache management ──

    def invalidate(self, keys: Any) -> None:
        count = 0
        for key in keys:
            self.storage.delete(key)
            count += 1
        logger.warning("Invalidated %d diff state(s)", count)

    def clear_all(self) -> None:
        self.storage.clear()
        logger.info("All translation states cleared")


def _json_safe(value: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(value, default=str))
