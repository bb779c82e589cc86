"""Fluent entry point: configure a pipeline, run it, get a TranslationResult.

    result = (
        TranslationBuilder.make()
        .from_locale("en")
        .to(["ko", "ja"])
        .with_provider(DummyProvider())
        .track_changes()
        .with_token_chunking(1000)
        .translate({"greet": "Hello"})
    )
    result.translation("greet", "ko")
"""

from __future__ import annotations

import copy
import logging
import threading
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from lingopipe.config import LingopipeConfig
from lingopipe.core.context import ContextSnapshot, RunContext
from lingopipe.core.manager import PluginManager
from lingopipe.core.pipeline import PipelineEngine
from lingopipe.core.plugin import TranslationPlugin
from lingopipe.core.request import TranslationOutput, TranslationRequest
from lingopipe.errors import ConfigurationError, LingopipeError
from lingopipe.plugins.chunking import TokenChunkingPlugin
from lingopipe.plugins.diff_tracking import DiffTrackingPlugin
from lingopipe.plugins.glossary import GlossaryPlugin
from lingopipe.plugins.translation import ProviderTranslationPlugin
from lingopipe.plugins.validation import ValidationPlugin
from lingopipe.providers.base import TranslationProvider
from lingopipe.reporting.report import RunReport
from lingopipe.storage.base import Storage
from lingopipe.translation.glossary import Glossary

logger = logging.getLogger(__name__)

# Per-token USD rates used when cost() is called without explicit rates
DEFAULT_RATES = {"input": 0.00001, "output": 0.00003}


@dataclass
class TranslationResult:
    """Outcome of one builder run."""

    translations: dict[str, dict[str, str]]
    source_locale: str
    target_locales: tuple[str, ...]
    snapshot: ContextSnapshot
    outputs: list[TranslationOutput] = field(default_factory=list)
    provider: str = ""

    @property
    def errors(self) -> list[str]:
        return list(self.snapshot.errors)

    @property
    def warnings(self) -> list[str]:
        return list(self.snapshot.warnings)

    @property
    def token_usage(self) -> dict[str, int]:
        return dict(self.snapshot.token_usage)

    @property
    def total_tokens(self) -> int:
        return self.snapshot.token_usage.get("total", 0)

    @property
    def duration(self) -> float:
        return self.snapshot.duration

    @property
    def diff(self) -> dict[str, dict[str, int]]:
        return dict(self.snapshot.metadata.get("diff", {}))

    @property
    def has_errors(self) -> bool:
        return bool(self.snapshot.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.snapshot.warnings)

    @property
    def successful(self) -> bool:
        return not (self.snapshot.failed or self.snapshot.errors)

    def for_locale(self, locale: str) -> dict[str, str]:
        return dict(self.translations.get(locale, {}))

    def translation(self, key: str, locale: str | None = None) -> str | None:
        return self.translations.get(locale or self.target_locales[0], {}).get(key)

    def cost(self, rates: Mapping[str, float] | None = None) -> float:
        """Estimated cost from token usage and per-token rates."""
        rates = rates or DEFAULT_RATES
        usage = self.snapshot.token_usage
        total = usage.get("input", 0) * rates.get("input", 0) + usage.get("output", 0) * rates.get("output", 0)
        return round(total, 4)

    def report(self, total_texts: int | None = None) -> RunReport:
        return RunReport.from_snapshot(
            self.snapshot,
            source_locale=self.source_locale,
            target_locales=list(self.target_locales),
            total_texts=total_texts,
            provider=self.provider,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "translations": self.translations,
            "source_locale": self.source_locale,
            "target_locales": list(self.target_locales),
            "token_usage": self.token_usage,
            "diff": self.diff,
            "errors": self.errors,
            "warnings": self.warnings,
            "duration": self.duration,
        }


class TranslationBuilder:
    """Collects settings, wires plugins into a fresh pipeline per run."""

    def __init__(self, config: LingopipeConfig | None = None) -> None:
        self.config = config or LingopipeConfig()
        self._source: str | None = None
        self._targets: tuple[str, ...] = ()
        self._provider: TranslationProvider | None = None
        self._track_changes = False
        self._diff_plugin: DiffTrackingPlugin | None = None
        self._storage: Storage | None = None
        self._chunking = False
        self._glossary: Glossary | None = None
        self._validation = False
        self._plugins: list[TranslationPlugin] = []
        self._tenant: str | None = None
        self._metadata: dict[str, Any] = {}
        self._options: dict[str, Any] = {}
        self._plugin_configs: dict[str, dict[str, Any]] = {}
        self._progress: Callable[[TranslationOutput], None] | None = None
        self._cancel_event: threading.Event | None = None

    @classmethod
    def make(cls, config: LingopipeConfig | None = None) -> TranslationBuilder:
        return cls(config)

    # ── fluent setters ──

    def from_locale(self, locale: str) -> TranslationBuilder:
        self._source = locale
        return self

    def to(self, locales: str | Iterable[str]) -> TranslationBuilder:
        self._targets = (locales,) if isinstance(locales, str) else tuple(locales)
        return self

    def with_provider(self, provider: TranslationProvider) -> TranslationBuilder:
        self._provider = provider
        return self

    def track_changes(self, enable: bool = True, storage: Storage | None = None) -> TranslationBuilder:
        self._track_changes = enable
        if storage is not None:
            self._storage = storage
            self._diff_plugin = None
        return self

    def with_token_chunking(self, max_tokens: int | None = None) -> TranslationBuilder:
        self._chunking = True
        if max_tokens is not None:
            self.config.chunking.max_tokens_per_chunk = max_tokens
            self.config.chunking.validate()
        return self

    def with_glossary(self, glossary: Glossary | Mapping[str, Any]) -> TranslationBuilder:
        if not isinstance(glossary, Glossary):
            glossary = Glossary.from_dict({"terms": dict(glossary)})
        self._glossary = glossary
        return self

    def with_validation(self, checks: list[str] | None = None, strict: bool | None = None) -> TranslationBuilder:
        self._validation = True
        if checks is not None:
            self.config.validation.checks = list(checks)
        if strict is not None:
            self.config.validation.strict = strict
        return self

    def with_plugin(self, plugin: TranslationPlugin) -> TranslationBuilder:
        self._plugins.append(plugin)
        return self

    def with_plugin_config(self, name: str, **values: Any) -> TranslationBuilder:
        self._plugin_configs.setdefault(name, {}).update(values)
        return self

    def for_tenant(self, tenant_id: str) -> TranslationBuilder:
        self._tenant = tenant_id
        return self

    def with_metadata(self, metadata: Mapping[str, Any]) -> TranslationBuilder:
        self._metadata.update(metadata)
        return self

    def option(self, key: str, value: Any) -> TranslationBuilder:
        self._options[key] = value
        return self

    def options(self, values: Mapping[str, Any]) -> TranslationBuilder:
        self._options.update(values)
        return self

    def on_progress(self, callback: Callable[[TranslationOutput], None]) -> TranslationBuilder:
        """Called once per output, in pipeline order, after the run."""
        self._progress = callback
        return self

    def with_cancel_event(self, event: threading.Event) -> TranslationBuilder:
        self._cancel_event = event
        return self

    def clone(self) -> TranslationBuilder:
        other = copy.copy(self)
        other.config = copy.deepcopy(self.config)
        other._metadata = dict(self._metadata)
        other._options = dict(self._options)
        other._plugin_configs = {k: dict(v) for k, v in self._plugin_configs.items()}
        other._plugins = list(self._plugins)
        return other

    # ── wiring ──

    @property
    def diff_plugin(self) -> DiffTrackingPlugin:
        """The diff tracker, kept across runs so its storage is reused."""
        if self._diff_plugin is None:
            self._diff_plugin = DiffTrackingPlugin(self.config.diff, self._storage)
        return self._diff_plugin

    def _validate(self) -> None:
        if not self._source:
            raise ConfigurationError("Source locale is required")
        if not self._targets:
            raise ConfigurationError("Target locale(s) required")
        if self._provider is None and not self._plugins:
            raise ConfigurationError("No provider configured; call with_provider()")
        self.config.validate()

    def build_plugins(self) -> PluginManager:
        manager = PluginManager()
        if self._track_changes:
            manager.register(self.diff_plugin)
        if self._glossary is not None:
            manager.register(GlossaryPlugin(self._glossary))
        if self._chunking:
            manager.register(TokenChunkingPlugin(self.config.chunking))
        if self._provider is not None:
            manager.register(ProviderTranslationPlugin(
                self._provider,
                continue_on_error=self.config.continue_on_provider_error,
            ))
        if self._validation:
            manager.register(ValidationPlugin(self.config.validation))
        for plugin in self._plugins:
            manager.register(plugin)
        return manager

    def build_pipeline(self) -> PipelineEngine:
        pipeline = PipelineEngine()
        self.build_plugins().boot(pipeline)
        return pipeline

    # ── running ──

    def request(self, texts: Mapping[str, str]) -> TranslationRequest:
        self._validate()
        return TranslationRequest.create(
            texts,
            self._source,  # type: ignore[arg-type]
            self._targets,
            metadata=self._metadata,
            options=self._options,
            tenant_id=self._tenant,
            plugin_configs=self._plugin_configs,
        )

    def translate(self, texts: Mapping[str, str], *, raise_on_error: bool = True) -> TranslationResult:
        """Run the pipeline once.

        With ``raise_on_error=False`` a failed run still returns a result; its
        snapshot carries the errors and ``failed`` flag.
        """
        request = self.request(texts)
        pipeline = self.build_pipeline()
        context = RunContext(request, cancel_event=self._cancel_event)

        outputs: list[TranslationOutput] = []
        try:
            outputs = pipeline.run(context)
        except LingopipeError:
            if raise_on_error:
                raise
            logger.warning("Translation run failed: %s", context.errors[-1] if context.errors else "")

        if self._progress is not None:
            for output in outputs:
                self._progress(output)

        return TranslationResult(
            translations=context.translations,
            source_locale=request.source_locale,
            target_locales=request.target_locales,
            snapshot=context.snapshot(),
            outputs=outputs,
            provider=self._provider.name if self._provider is not None else "",
        )
