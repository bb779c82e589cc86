"""Runs the working set through a TranslationProvider, once per target locale."""

from __future__ import annotations

import logging

from lingopipe.core.context import RunContext
from lingopipe.core.pipeline import HandlerResult
from lingopipe.core.plugin import ProviderPlugin
from lingopipe.core.request import TranslationOutput
from lingopipe.errors import ProviderError
from lingopipe.providers.base import TranslationProvider

logger = logging.getLogger(__name__)


class ProviderTranslationPlugin(ProviderPlugin):
    """Terminal handler on the ``translation`` stage.

    Provider failures propagate and fail the run. With ``continue_on_error``
    (or the request option ``continue_on_provider_error``) the error is
    recorded on the context, the failed locale is skipped, and the run
    reports partial success.
    """

    name = "provider_translation"
    priority = 0

    def __init__(
        self,
        provider: TranslationProvider,
        continue_on_error: bool = False,
        batch_size: int | None = None,
    ) -> None:
        super().__init__()
        self.provider = provider
        self.continue_on_error = continue_on_error
        self.batch_size = batch_size

    def provides(self) -> tuple[str, ...]:
        return ("translation.provider",)

    def execute(self, context: RunContext) -> HandlerResult:
        texts = dict(context.texts)
        if not texts:
            return None

        request = context.request
        continue_on_error = request.option("continue_on_provider_error", self.continue_on_error)
        outputs: list[TranslationOutput] = []

        for locale in request.target_locales:
            try:
                outputs.extend(self._translate_locale(context, texts, locale))
            except ProviderError as e:
                if not continue_on_error:
                    raise
                context.add_error(f"{locale}: {e}")
                logger.warning(
                    "Provider %s failed for %s, continuing: %s", self.provider.name, locale, e,
                )
        return outputs

    def _translate_locale(
        self,
        context: RunContext,
        texts: dict[str, str],
        locale: str,
    ) -> list[TranslationOutput]:
        outputs: list[TranslationOutput] = []
        for result in self.provider.stream(
            texts, locale, context.request.source_locale, batch_size=self.batch_size,
        ):
            context.check_cancelled()
            for key, value in result.translations.items():
                context.add_translation(locale, key, value)
                outputs.append(TranslationOutput(
                    key=key,
                    value=value,
                    locale=locale,
                    metadata={"provider": self.provider.name},
                ))
            context.add_token_usage(result.input_tokens, result.output_tokens)
        logger.debug("Translated %d texts to %s with %s", len(outputs), locale, self.provider.name)
        return outputs
