"""Glossary plugin: protects terms before translation and restores them after."""

from __future__ import annotations

import logging

from lingopipe.core import stages as st
from lingopipe.core.context import RunContext
from lingopipe.core.pipeline import HandlerResult, Next, PipelineEngine
from lingopipe.core.plugin import MiddlewarePlugin
from lingopipe.plugins.chunking import base_key
from lingopipe.translation.glossary import Glossary

logger = logging.getLogger(__name__)


class GlossaryPlugin(MiddlewarePlugin):
    """Placeholder substitution on ``preparation``, restoration on ``post_process``."""

    name = "glossary"
    stage = st.PREPARATION
    priority = 80

    def __init__(self, glossary: Glossary | None = None) -> None:
        super().__init__()
        self.glossary = glossary or Glossary()

    def boot(self, pipeline: PipelineEngine) -> None:
        super().boot(pipeline)
        pipeline.register_stage(
            st.POST_PROCESS, self.restore, self.priority, name=f"{self.name}.restore",
        )
        pipeline.register_service("glossary_lookup", self.glossary.lookup)

    def handle(self, context: RunContext, next_: Next) -> HandlerResult:
        if self.should_skip(context) or not len(self.glossary):
            return next_(context)

        protected: dict[str, str] = {}
        mappings: dict[str, dict[str, str]] = {}
        for key, text in context.texts.items():
            protected[key], mapping = self.glossary.protect_with_mapping(text)
            if mapping:
                mappings[key] = mapping

        if mappings:
            context.texts = protected
            context.plugin_data(self.name)["mappings"] = mappings
            logger.info("Protected glossary terms in %d text(s)", len(mappings))
        return next_(context)

    def restore(self, context: RunContext, next_: Next) -> HandlerResult:
        data = context.get_plugin_data(self.name) or {}
        mappings: dict[str, dict[str, str]] = data.get("mappings", {})
        if mappings:
            for locale in list(context.translations):
                restored = {}
                for key, value in context.get_translations(locale).items():
                    mapping = mappings.get(key)
                    if mapping is None and key not in context.texts:
                        mapping = mappings.get(base_key(key))
                    restored[key] = self.glossary.restore(value, mapping, locale) if mapping else value
                context.replace_translations(locale, restored)
        return next_(context)
