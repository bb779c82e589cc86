"""Glossary support: keep terminology consistent across locales.

Source terms are swapped for opaque placeholders before translation and
replaced with the locale's preferred term afterwards. A term without an entry
for the target locale is restored unchanged, which is how brand names are
kept untranslated.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

try:
    import tomllib  # Python 3.11+
except ModuleNotFoundError:
    import tomli as tomllib  # type: ignore[no-redef]

from lingopipe.errors import ConfigurationError

_PLACEHOLDER = re.compile(r"Gx(\d+)")


def placeholder_for(index: int) -> str:
    return f"Gx{index}"


def _normalize_placeholders(text: str, mapping: Mapping[str, str]) -> str:
    """Repair placeholders a provider mangled with spaces or case changes.

    Canonical form is ``Gx12``. Only placeholder IDs present in ``mapping``
    are recovered.
    """
    result = text
    for placeholder in mapping:
        if placeholder in result:
            continue
        num = placeholder[2:]
        mangled = re.compile(rf"(?<!\w)Gx\s*{num}(?!\d)", re.IGNORECASE)
        result = mangled.sub(placeholder, result)
    return result


@dataclass
class Glossary:
    """Per-locale term table.

    ``terms`` maps a source term to its translation per target locale:

        {"Pipeline": {"ko": "파이프라인", "ja": "パイプライン"}}

    ``keep`` lists terms that must never be translated.
    """

    terms: dict[str, dict[str, str]] = field(default_factory=dict)
    keep: list[str] = field(default_factory=list)
    case_sensitive: bool = False

    def __post_init__(self) -> None:
        for term in self.keep:
            self.terms.setdefault(term, {})

    @property
    def sources(self) -> list[str]:
        return list(self.terms)

    def __len__(self) -> int:
        return len(self.terms)

    def add(self, source: str, translations: Mapping[str, str] | None = None) -> None:
        self.terms.setdefault(source, {}).update(translations or {})

    def merge(self, other: Glossary) -> None:
        """Merge another glossary. Other's entries override on conflict."""
        for source, translations in other.terms.items():
            self.add(source, translations)

    def lookup(self, term: str, locale: str) -> str | None:
        """Preferred translation of ``term`` for ``locale``, or None if unknown."""
        entry = self.terms.get(term)
        if entry is None and not self.case_sensitive:
            lowered = term.lower()
            entry = next((v for k, v in self.terms.items() if k.lower() == lowered), None)
        if entry is None:
            return None
        return _for_locale(entry, locale, default=term if term in self.keep else None)

    # ── loading ──

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Glossary:
        terms: dict[str, dict[str, str]] = {}
        raw_terms = data.get("terms", {})
        if not isinstance(raw_terms, Mapping):
            raise ConfigurationError("Glossary 'terms' must be a table")
        for source, value in raw_terms.items():
            if isinstance(value, str):
                # Same target for every locale
                terms[source] = {"*": value}
            elif isinstance(value, Mapping):
                terms[source] = {str(k): str(v) for k, v in value.items()}
            else:
                raise ConfigurationError(f"Invalid glossary entry for {source!r}")
        keep = data.get("keep", [])
        if not isinstance(keep, list):
            raise ConfigurationError("Glossary 'keep' must be a list")
        return cls(terms=terms, keep=[str(k) for k in keep])

    @classmethod
    def from_toml(cls, path: str | Path) -> Glossary:
        """Load a glossary from a TOML file.

        Expected format:
            keep = ["lingopipe"]

            [terms]
            "Pull request" = { ko = "풀 리퀘스트", ja = "プルリクエスト" }
            Dashboard = "Dashboard"
        """
        path = Path(path)
        try:
            with open(path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise ConfigurationError(f"Cannot load glossary {path}: {e}") from e
        return cls.from_dict(data)

    @classmethod
    def from_multiple_toml(cls, paths: list[Path]) -> Glossary:
        """Load and merge multiple TOML files. Later files override earlier ones."""
        result = cls()
        for p in paths:
            result.merge(cls.from_toml(p))
        return result

    # ── protection ──

    def _sorted_terms(self) -> list[tuple[int, str]]:
        """Terms by source length descending, so multi-word terms match first."""
        indexed = list(enumerate(self.terms))
        indexed.sort(key=lambda t: len(t[1]), reverse=True)
        return indexed

    def _make_pattern(self, source: str) -> re.Pattern[str]:
        escaped = re.escape(source)
        prefix = r"\b" if re.match(r"\w", source) else ""
        suffix = r"\b" if re.search(r"\w$", source) else ""
        flags = 0 if self.case_sensitive else re.IGNORECASE
        return re.compile(prefix + escaped + suffix, flags)

    def protect_with_mapping(self, text: str) -> tuple[str, dict[str, str]]:
        """Replace glossary terms with placeholders.

        Returns the protected text and a placeholder → source term mapping.
        """
        placeholders: dict[str, str] = {}
        protected = text
        for i, source in self._sorted_terms():
            pattern = self._make_pattern(source)
            if pattern.search(protected):
                placeholder = placeholder_for(i)
                placeholders[placeholder] = source
                protected = pattern.sub(placeholder, protected)
        return protected, placeholders

    def restore(self, text: str, placeholders: Mapping[str, str], locale: str) -> str:
        """Replace placeholders with each term's translation for ``locale``."""
        restored = _normalize_placeholders(text, placeholders)
        # Longest IDs first so Gx1 never eats the prefix of Gx12
        for placeholder in sorted(placeholders, key=len, reverse=True):
            source = placeholders[placeholder]
            target = _for_locale(self.terms.get(source, {}), locale, default=source)
            restored = restored.replace(placeholder, target)
        return restored

    @staticmethod
    def has_placeholders(text: str) -> bool:
        return bool(_PLACEHOLDER.search(text))


def _for_locale(entry: Mapping[str, str], locale: str, default: str | None) -> str | None:
    if locale in entry:
        return entry[locale]
    language = locale.replace("-", "_").split("_")[0]
    if language in entry:
        return entry[language]
    return entry.get("*", default)
