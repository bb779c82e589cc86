"""Dummy translation provider for testing: prefixes strings with a [XX] tag."""

from __future__ import annotations

import threading
from collections.abc import Mapping

from lingopipe.providers.base import ProviderResult, TranslationProvider

# Canned translations, keyed by (source, target)
MOCK_TRANSLATIONS: dict[tuple[str, str], dict[str, str]] = {
    ("en", "ko"): {
        "Hello World": "안녕하세요 세계",
        "Hello": "안녕하세요",
        "World": "세계",
        "test": "테스트",
    },
    ("en", "ja"): {
        "Hello World": "こんにちは世界",
        "Hello": "こんにちは",
        "World": "世界",
        "test": "テスト",
    },
}


class DummyProvider(TranslationProvider):
    """Test provider that looks texts up in a table, else prefixes the target tag.

    Example: "Iron Sword" → "[KO] Iron Sword"

    Every call is counted, so tests can assert that cached runs never reach
    the provider. Usage is reported as one token per four characters.
    """

    name = "dummy"

    def __init__(
        self,
        table: Mapping[tuple[str, str], Mapping[str, str]] | None = None,
    ) -> None:
        self.table = {k: dict(v) for k, v in (table or MOCK_TRANSLATIONS).items()}
        self.calls: list[tuple[str, list[str]]] = []
        self._lock = threading.Lock()

    @property
    def call_count(self) -> int:
        return len(self.calls)

    def translate_batch(
        self,
        texts: list[str],
        target_lang: str,
        source_lang: str | None = None,
    ) -> list[str]:
        with self._lock:
            self.calls.append((target_lang, list(texts)))
        known = self.table.get(((source_lang or "").lower(), target_lang.lower()), {})
        tag = f"[{target_lang.upper()}]"
        return [known.get(text, f"{tag} {text}") for text in texts]

    def translate_texts(
        self,
        texts: Mapping[str, str],
        target_lang: str,
        source_lang: str | None = None,
    ) -> ProviderResult:
        result = super().translate_texts(texts, target_lang, source_lang)
        result.input_tokens = sum(len(t) for t in texts.values()) // 4
        result.output_tokens = sum(len(t) for t in result.translations.values()) // 4
        return result
