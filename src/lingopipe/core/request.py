"""Immutable translation request and the per-key output record."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Any

from lingopipe.errors import ConfigurationError


def _freeze(mapping: Mapping[str, Any] | None) -> Mapping[str, Any]:
    return MappingProxyType(dict(mapping or {}))


@dataclass(frozen=True)
class TranslationRequest:
    """One caller invocation: what to translate, from where, to which locales.

    Created once by the caller and never mutated. ``target_locales`` accepts a
    single locale or any iterable of locales; duplicates are dropped while
    keeping the first occurrence order.
    """

    texts: Mapping[str, str]
    source_locale: str
    target_locales: tuple[str, ...]
    metadata: Mapping[str, Any] = field(default_factory=dict)
    options: Mapping[str, Any] = field(default_factory=dict)
    tenant_id: str | None = None
    plugin_configs: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.source_locale:
            raise ConfigurationError("source_locale is required")

        targets = self.target_locales
        if isinstance(targets, str):
            targets = (targets,)
        locales = tuple(dict.fromkeys(t for t in targets if t))
        if not locales:
            raise ConfigurationError("At least one target locale is required")

        object.__setattr__(self, "target_locales", locales)
        object.__setattr__(self, "texts", _freeze(self.texts))
        object.__setattr__(self, "metadata", _freeze(self.metadata))
        object.__setattr__(self, "options", _freeze(self.options))
        object.__setattr__(self, "plugin_configs", _freeze(self.plugin_configs))

    @classmethod
    def create(
        cls,
        texts: Mapping[str, str],
        source_locale: str,
        target_locales: str | Iterable[str],
        **kwargs: Any,
    ) -> TranslationRequest:
        if isinstance(target_locales, str):
            target_locales = (target_locales,)
        return cls(
            texts=texts,
            source_locale=source_locale,
            target_locales=tuple(target_locales),
            **kwargs,
        )

    @property
    def target_locale(self) -> str:
        """The first target locale."""
        return self.target_locales[0]

    def option(self, key: str, default: Any = None) -> Any:
        return self.options.get(key, default)

    def plugin_config(self, plugin_name: str) -> Mapping[str, Any]:
        return self.plugin_configs.get(plugin_name, {})

    def for_locale(self, locale: str) -> TranslationRequest:
        """Return a copy of this request targeting a single locale."""
        return replace(self, target_locales=(locale,))

    def __len__(self) -> int:
        return len(self.texts)


@dataclass(frozen=True)
class TranslationOutput:
    """A single translated entry, as produced by a provider or read from cache."""

    key: str
    value: str
    locale: str
    cached: bool = False
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "locale": self.locale,
            "cached": self.cached,
            "metadata": dict(self.metadata),
        }
