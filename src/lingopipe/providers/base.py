"""Abstract base class for translation providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field

from lingopipe.errors import ProviderError


@dataclass
class ProviderResult:
    """Translations for one batch, keyed like the input, plus reported usage."""

    translations: dict[str, str] = field(default_factory=dict)
    input_tokens: int = 0
    output_tokens: int = 0


class TranslationProvider(ABC):
    """Interface for translation providers."""

    name: str = "provider"

    @abstractmethod
    def translate_batch(
        self,
        texts: list[str],
        target_lang: str,
        source_lang: str | None = None,
    ) -> list[str]:
        """Translate a batch of texts.

        Args:
            texts: List of strings to translate.
            target_lang: Target locale code (e.g. "ko").
            source_lang: Source locale code, or None for auto-detect.

        Returns:
            List of translated strings, same length as input.
        """
        ...

    def translate(
        self,
        text: str,
        target_lang: str,
        source_lang: str | None = None,
    ) -> str:
        """Translate a single text. Default implementation uses translate_batch."""
        results = self.translate_batch([text], target_lang, source_lang)
        return results[0]

    def translate_texts(
        self,
        texts: Mapping[str, str],
        target_lang: str,
        source_lang: str | None = None,
    ) -> ProviderResult:
        """Translate a key→text map, keeping keys aligned with the results.

        Providers that know their real token usage override this; the default
        reports none.
        """
        keys = list(texts)
        translated = self.translate_batch([texts[k] for k in keys], target_lang, source_lang)
        if len(translated) != len(keys):
            raise ProviderError(
                f"{self.name} returned {len(translated)} results for {len(keys)} texts",
                provider=self.name,
            )
        return ProviderResult(translations=dict(zip(keys, translated)))

    def stream(
        self,
        texts: Mapping[str, str],
        target_lang: str,
        source_lang: str | None = None,
        batch_size: int | None = None,
    ) -> Iterator[ProviderResult]:
        """Yield partial results batch by batch, in input order."""
        keys = list(texts)
        size = batch_size or len(keys) or 1
        for i in range(0, len(keys), size):
            batch = {k: texts[k] for k in keys[i : i + size]}
            yield self.translate_texts(batch, target_lang, source_lang)
