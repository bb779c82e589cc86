"""Tests for plugin base classes and the PluginManager."""

import pytest

from lingopipe.core import stages as st
from lingopipe.core.manager import PluginManager
from lingopipe.core.plugin import MiddlewarePlugin, ObserverPlugin, ProviderPlugin
from lingopipe.core.request import TranslationOutput
from lingopipe.errors import DependencyError
from tests.conftest import make_context


class Recording(MiddlewarePlugin):
    stage = st.PREPARATION

    def __init__(self, name, calls, dependencies=()):
        self.name = name
        self.dependencies = tuple(dependencies)
        super().__init__()
        self.calls = calls

    def boot(self, pipeline):
        self.calls.append(f"boot:{self.name}")
        super().boot(pipeline)

    def handle(self, context, next_):
        if self.should_skip(context):
            return next_(context)
        self.calls.append(f"handle:{self.name}")
        return next_(context)


class EchoProvider(ProviderPlugin):
    name = "echo"

    def provides(self):
        return ("echo.translate",)

    def execute(self, context):
        outputs = []
        for locale in context.request.target_locales:
            for key, text in context.texts.items():
                context.add_translation(locale, key, text)
                outputs.append(TranslationOutput(key, text, locale))
        return outputs


class Counter(ObserverPlugin):
    name = "counter"

    def __init__(self):
        super().__init__()
        self.seen = 0

    def subscriptions(self):
        return {st.TRANSLATION_COMPLETED: self._count}

    def _count(self, context):
        self.seen += 1


class TestPluginBase:
    def test_plugin_requires_name(self):
        class Nameless(EchoProvider):
            name = ""

        with pytest.raises(TypeError):
            Nameless()

    def test_tenant_toggle(self):
        plugin = EchoProvider()
        assert plugin.is_enabled_for("acme")
        plugin.disable_for_tenant("acme")
        assert not plugin.is_enabled_for("acme")
        assert plugin.is_enabled_for(None)
        plugin.enable_for_tenant("acme")
        assert plugin.is_enabled_for("acme")

    def test_should_skip_via_option(self):
        plugin = EchoProvider()
        assert plugin.should_skip(make_context(options={"skip_echo": True}))
        assert not plugin.should_skip(make_context())

    def test_option_reads_plugin_config(self):
        plugin = EchoProvider()
        ctx = make_context(plugin_configs={"echo": {"mode": "loud"}})
        assert plugin.option(ctx, "mode") == "loud"
        assert plugin.option(ctx, "missing", 3) == 3

    def test_provider_registers_service_and_stage(self, pipeline):
        EchoProvider().boot(pipeline)
        assert pipeline.has_service("echo.translate")
        ctx = make_context({"a": "A"})
        outputs = pipeline.run(ctx)
        assert ctx.get_translations("ko") == {"a": "A"}
        assert len(outputs) == 1

    def test_provider_skipped_for_disabled_tenant(self, pipeline):
        plugin = EchoProvider()
        plugin.disable_for_tenant("acme")
        plugin.boot(pipeline)
        ctx = make_context({"a": "A"}, tenant_id="acme")
        assert pipeline.run(ctx) == []
        assert ctx.translations == {}

    def test_observer_receives_events(self, pipeline):
        counter = Counter()
        counter.boot(pipeline)
        pipeline.run(make_context())
        pipeline.run(make_context(options={"disable_counter": True}))
        assert counter.seen == 1

    def test_every_plugin_registers_terminate(self, pipeline):
        EchoProvider().boot(pipeline)
        Counter().boot(pipeline)
        names = [t.name for t in pipeline._terminators]
        assert names == ["echo.terminate", "counter.terminate"]


class TestPluginManager:
    def test_missing_dependency(self):
        manager = PluginManager()
        with pytest.raises(DependencyError):
            manager.register(Recording("b", [], dependencies=["a"]))

    def test_boot_in_dependency_order(self, pipeline):
        calls = []
        manager = PluginManager()
        manager.register(Recording("base", calls))
        manager.register(Recording("mid", calls, dependencies=["base"]))
        manager.register(Recording("top", calls, dependencies=["mid", "base"]))
        manager.boot(pipeline)
        assert calls == ["boot:base", "boot:mid", "boot:top"]

    def test_cycle_detected(self):
        manager = PluginManager()
        a = Recording("a", [])
        b = Recording("b", [], dependencies=["a"])
        manager.register(a)
        manager.register(b)
        a.dependencies = ("b",)
        with pytest.raises(DependencyError, match="Circular"):
            manager.sorted_plugins()

    def test_boot_once(self, pipeline):
        calls = []
        manager = PluginManager()
        manager.register(Recording("a", calls))
        manager.boot(pipeline)
        manager.boot(pipeline)
        assert calls == ["boot:a"]
        assert manager.booted

    def test_replace_warns(self, caplog):
        manager = PluginManager()
        manager.register(Recording("a", []))
        manager.register(Recording("a", []))
        assert len(manager.all()) == 1
        assert "registered twice" in caplog.text

    def test_tenant_controls(self, pipeline):
        calls = []
        manager = PluginManager()
        manager.register(Recording("a", calls))
        manager.disable_for_tenant("acme", "a")
        assert manager.enabled_for("acme") == []
        assert manager.get("a") is not None
        manager.boot(pipeline)
        pipeline.run(make_context(tenant_id="acme"))
        pipeline.run(make_context(tenant_id="other"))
        assert calls == ["boot:a", "handle:a"]

    def test_unknown_plugin_tenant_toggle(self):
        with pytest.raises(DependencyError):
            PluginManager().enable_for_tenant("acme", "ghost")

    def test_reset(self, pipeline):
        manager = PluginManager()
        manager.register(Recording("a", []))
        manager.boot(pipeline)
        manager.reset()
        assert not manager.has("a")
        assert not manager.booted
