"""Translation providers: the external services that turn source text into target text."""

from lingopipe.providers.base import ProviderResult, TranslationProvider
from lingopipe.providers.dummy import DummyProvider

__all__ = ["DummyProvider", "ProviderResult", "TranslationProvider"]
