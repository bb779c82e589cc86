"""DeepL API translation provider."""

from __future__ import annotations

import logging
import time

from lingopipe.errors import ProviderError
from lingopipe.providers.base import TranslationProvider

logger = logging.getLogger(__name__)

# DeepL free tier limits
MAX_BATCH_SIZE = 50
RATE_LIMIT_RETRY_SECONDS = 1.0
MAX_RETRIES = 3

# DeepL wants regional variants for some targets
_TARGET_ALIASES = {"EN": "EN-US", "PT": "PT-BR"}


def deepl_target(locale: str) -> str:
    code = locale.replace("_", "-").upper()
    return _TARGET_ALIASES.get(code, code)


def deepl_source(locale: str | None) -> str | None:
    if not locale:
        return None
    # Source languages never carry a region
    return locale.replace("_", "-").split("-")[0].upper()


class DeepLProvider(TranslationProvider):
    """Translation provider using the DeepL API."""

    name = "deepl"

    def __init__(self, api_key: str) -> None:
        try:
            import deepl
        except ImportError:
            raise ImportError(
                "DeepL provider requires the 'deepl' package. "
                "Install it with: pip install lingopipe[deepl]"
            ) from None
        self._deepl = deepl
        self._translator = deepl.Translator(api_key)

    def translate_batch(
        self,
        texts: list[str],
        target_lang: str,
        source_lang: str | None = None,
    ) -> list[str]:
        """Translate texts using DeepL, handling rate limits and batching."""
        if not texts:
            return []

        results: list[str] = []
        for i in range(0, len(texts), MAX_BATCH_SIZE):
            batch = texts[i : i + MAX_BATCH_SIZE]
            results.extend(self._translate_with_retry(batch, target_lang, source_lang))
        return results

    def _translate_with_retry(
        self,
        texts: list[str],
        target_lang: str,
        source_lang: str | None,
    ) -> list[str]:
        """Translate a single batch with retry on rate limit."""
        for attempt in range(MAX_RETRIES):
            try:
                result = self._translator.translate_text(
                    texts,
                    target_lang=deepl_target(target_lang),
                    source_lang=deepl_source(source_lang),
                )
                if isinstance(result, list):
                    return [r.text for r in result]
                return [result.text]

            except self._deepl.QuotaExceededException as e:
                raise ProviderError(f"DeepL quota exceeded: {e}", provider=self.name) from e

            except (self._deepl.DeepLException, ConnectionError, TimeoutError) as e:
                if attempt < MAX_RETRIES - 1:
                    logger.warning("DeepL request failed (attempt %d): %s", attempt + 1, e)
                    time.sleep(RATE_LIMIT_RETRY_SECONDS * (attempt + 1))
                else:
                    raise ProviderError(
                        f"DeepL request failed after {MAX_RETRIES} attempts: {e}",
                        provider=self.name,
                        retryable=True,
                    ) from e

        raise ProviderError("DeepL retry loop exhausted", provider=self.name)
