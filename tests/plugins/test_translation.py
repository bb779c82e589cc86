"""Tests for the provider translation plugin."""

import pytest

from lingopipe.core import stages as st
from lingopipe.errors import ProviderError
from lingopipe.plugins.translation import ProviderTranslationPlugin
from lingopipe.providers.base import TranslationProvider
from lingopipe.providers.dummy import DummyProvider
from tests.conftest import make_context


class KoreanOnlyProvider(TranslationProvider):
    name = "korean_only"

    def translate_batch(self, texts, target_lang, source_lang=None):
        if target_lang != "ko":
            raise ProviderError(f"unsupported target {target_lang}", provider=self.name)
        return [f"ko:{t}" for t in texts]


class TestProviderTranslationPlugin:
    def test_translates_every_locale(self, pipeline):
        ProviderTranslationPlugin(DummyProvider()).boot(pipeline)
        ctx = make_context({"greet": "Hello"}, targets=("ko", "ja"))
        outputs = pipeline.run(ctx)

        assert ctx.translations == {"ko": {"greet": "안녕하세요"}, "ja": {"greet": "こんにちは"}}
        assert [(o.locale, o.value) for o in outputs] == [("ko", "안녕하세요"), ("ja", "こんにちは")]
        assert outputs[0].metadata["provider"] == "dummy"

    def test_token_usage_recorded(self, pipeline, dummy_provider):
        ProviderTranslationPlugin(dummy_provider).boot(pipeline)
        ctx = make_context({"a": "Hello World!"})
        pipeline.run(ctx)
        assert ctx.token_usage.input == 3
        assert ctx.token_usage.total > 0

    def test_batches(self, pipeline, dummy_provider):
        ProviderTranslationPlugin(dummy_provider, batch_size=2).boot(pipeline)
        pipeline.run(make_context({"a": "A", "b": "B", "c": "C"}))
        assert [len(texts) for _, texts in dummy_provider.calls] == [2, 1]

    def test_empty_working_set(self, pipeline, dummy_provider):
        ProviderTranslationPlugin(dummy_provider).boot(pipeline)
        assert pipeline.run(make_context({})) == []
        assert dummy_provider.call_count == 0

    def test_error_fails_run(self, pipeline):
        ProviderTranslationPlugin(KoreanOnlyProvider()).boot(pipeline)
        ctx = make_context({"a": "A"}, targets=("ko", "fr"))
        with pytest.raises(ProviderError):
            pipeline.run(ctx)
        assert ctx.failed
        assert ctx.errors == ["ProviderError: unsupported target fr"]

    def test_continue_on_error(self, pipeline):
        ProviderTranslationPlugin(KoreanOnlyProvider(), continue_on_error=True).boot(pipeline)
        ctx = make_context({"a": "A"}, targets=("fr", "ko"))
        pipeline.run(ctx)

        assert not ctx.failed
        assert ctx.translations == {"ko": {"a": "ko:A"}}
        assert ctx.errors == ["fr: unsupported target fr"]

    def test_continue_on_error_via_option(self, pipeline):
        ProviderTranslationPlugin(KoreanOnlyProvider()).boot(pipeline)
        ctx = make_context({"a": "A"}, targets=("fr",), options={"continue_on_provider_error": True})
        pipeline.run(ctx)
        assert ctx.errors == ["fr: unsupported target fr"]

    def test_service(self, pipeline, dummy_provider):
        ProviderTranslationPlugin(dummy_provider).boot(pipeline)
        ctx = make_context({"greet": "Hello"})
        outputs = pipeline.call_service("translation.provider", ctx)
        assert outputs[0].value == "안녕"

    def test_registered_as_terminal(self, pipeline, dummy_provider):
        ProviderTranslationPlugin(dummy_provider).boot(pipeline)
        (handler,) = pipeline.handlers_for(st.TRANSLATION)
        assert handler.kind == "terminal"
        assert handler.name == "provider_translation"
