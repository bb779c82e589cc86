"""Mutable run state threaded through every stage of one translation run."""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from threading import Event
from typing import Any

from lingopipe.core.request import TranslationRequest
from lingopipe.errors import CancelledError, ContextCompletedError


@dataclass
class TokenUsage:
    """Token counters. ``total`` is derived, never stored."""

    input: int = 0
    output: int = 0
    cache_creation: int = 0
    cache_read: int = 0

    @property
    def total(self) -> int:
        return self.input + self.output

    def add(self, other: TokenUsage) -> None:
        self.input += other.input
        self.output += other.output
        self.cache_creation += other.cache_creation
        self.cache_read += other.cache_read

    def to_dict(self) -> dict[str, int]:
        return {
            "input": self.input,
            "output": self.output,
            "cache_creation": self.cache_creation,
            "cache_read": self.cache_read,
            "total": self.total,
        }


@dataclass(frozen=True)
class ContextSnapshot:
    """Immutable copy of a RunContext, used for reporting and by terminators."""

    texts: dict[str, str]
    translations: dict[str, dict[str, str]]
    metadata: dict[str, Any]
    plugin_data: dict[str, Any]
    errors: tuple[str, ...]
    warnings: tuple[str, ...]
    token_usage: dict[str, int]
    current_stage: str
    started_at: float
    ended_at: float | None
    duration: float
    aborted: bool
    failed: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "texts": self.texts,
            "translations": self.translations,
            "metadata": self.metadata,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "token_usage": self.token_usage,
            "current_stage": self.current_stage,
            "duration": self.duration,
            "aborted": self.aborted,
            "failed": self.failed,
        }


class RunContext:
    """Shared state for a single run.

    Handlers read and replace ``texts`` (the working set), record results with
    :meth:`add_translation`, and keep private state in their own plugin data
    namespace. Once :meth:`complete` has been called only errors and warnings
    may still be appended.
    """

    def __init__(
        self,
        request: TranslationRequest,
        *,
        cancel_event: Event | None = None,
    ) -> None:
        self.request = request
        self.cancel_event = cancel_event
        self._texts: dict[str, str] = dict(request.texts)
        self._translations: dict[str, dict[str, str]] = {}
        self._metadata: dict[str, Any] = dict(request.metadata)
        self._plugin_data: dict[str, Any] = {}
        self.errors: list[str] = []
        self.warnings: list[str] = []
        self.token_usage = TokenUsage()
        self.current_stage = ""
        self.completed_stages: set[str] = set()
        self.aborted = False
        self.abort_reason = ""
        self.failed = False
        self.started_at = time.time()
        self.ended_at: float | None = None

    # ── guarded state ──

    def _ensure_open(self) -> None:
        if self.ended_at is not None:
            raise ContextCompletedError("Run context is complete and can no longer be modified")

    @property
    def is_complete(self) -> bool:
        return self.ended_at is not None

    @property
    def texts(self) -> dict[str, str]:
        if self.is_complete:
            return dict(self._texts)
        return self._texts

    @texts.setter
    def texts(self, value: dict[str, str]) -> None:
        self._ensure_open()
        self._texts = dict(value)

    @property
    def translations(self) -> dict[str, dict[str, str]]:
        if self.is_complete:
            return {loc: dict(t) for loc, t in self._translations.items()}
        return self._translations

    @property
    def metadata(self) -> dict[str, Any]:
        if self.is_complete:
            return dict(self._metadata)
        return self._metadata

    def replace_translations(self, locale: str, translations: dict[str, str]) -> None:
        self._ensure_open()
        self._translations[locale] = dict(translations)

    def add_translation(self, locale: str, key: str, text: str) -> None:
        self._ensure_open()
        self._translations.setdefault(locale, {})[key] = text

    def get_translations(self, locale: str) -> dict[str, str]:
        return dict(self._translations.get(locale, {}))

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def add_token_usage(
        self,
        input_tokens: int,
        output_tokens: int,
        cache_creation: int = 0,
        cache_read: int = 0,
    ) -> None:
        self._ensure_open()
        self.token_usage.add(TokenUsage(input_tokens, output_tokens, cache_creation, cache_read))

    # ── plugin namespaces ──

    def set_plugin_data(self, plugin_name: str, data: Any) -> None:
        self._ensure_open()
        self._plugin_data[plugin_name] = data

    def get_plugin_data(self, plugin_name: str, default: Any = None) -> Any:
        return self._plugin_data.get(plugin_name, default)

    def plugin_data(self, plugin_name: str) -> dict[str, Any]:
        """Return the mutable dict namespace owned by ``plugin_name``, creating it if needed."""
        data = self._plugin_data.get(plugin_name)
        if data is None:
            self._ensure_open()
            data = self._plugin_data[plugin_name] = {}
        if not isinstance(data, dict):
            raise TypeError(f"Plugin data for '{plugin_name}' is not a dict namespace")
        if self.is_complete:
            return dict(data)
        return data

    # ── lifecycle ──

    def abort(self, reason: str = "") -> None:
        """Stop the run after the current stage. Terminators still run."""
        self._ensure_open()
        self.aborted = True
        self.abort_reason = reason

    def check_cancelled(self) -> None:
        """Raise CancelledError if the caller has set the cancel event."""
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise CancelledError("Translation run cancelled")

    def complete(self) -> None:
        """Mark the run finished. Calling it again keeps the first end time."""
        if self.ended_at is None:
            self.ended_at = time.time()

    @property
    def duration(self) -> float:
        end = self.ended_at if self.ended_at is not None else time.time()
        return end - self.started_at

    def snapshot(self) -> ContextSnapshot:
        return ContextSnapshot(
            texts=dict(self._texts),
            translations={loc: dict(t) for loc, t in self._translations.items()},
            metadata=copy.deepcopy(self._metadata),
            plugin_data=copy.deepcopy(self._plugin_data),
            errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            token_usage=self.token_usage.to_dict(),
            current_stage=self.current_stage,
            started_at=self.started_at,
            ended_at=self.ended_at,
            duration=self.duration,
            aborted=self.aborted,
            failed=self.failed,
        )

    # ── chunk dispatch ──

    def fork(self, texts: dict[str, str]) -> RunContext:
        """Create a child context for one chunk.

        The child shares the request and cancel event, gets copies of metadata
        and plugin data, and starts with no translations, errors or usage.
        """
        child = RunContext(self.request, cancel_event=self.cancel_event)
        child._texts = dict(texts)
        child._metadata = copy.deepcopy(self._metadata)
        child._plugin_data = copy.deepcopy(self._plugin_data)
        child.current_stage = self.current_stage
        return child

    def merge(self, child: RunContext) -> None:
        """Fold a child's results back in. Only the dispatching thread calls this."""
        self._ensure_open()
        for locale, entries in child._translations.items():
            self._translations.setdefault(locale, {}).update(entries)
        self.errors.extend(child.errors)
        self.warnings.extend(child.warnings)
        self.token_usage.add(child.token_usage)
        if child.aborted and not self.aborted:
            self.abort(child.abort_reason)

    def __repr__(self) -> str:
        return (
            f"RunContext(stage={self.current_stage!r}, texts={len(self._texts)}, "
            f"locales={list(self._translations)}, errors={len(self.errors)})"
        )
