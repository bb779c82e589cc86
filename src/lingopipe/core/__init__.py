"""Pipeline core: request, run context, stages, engine and plugin contracts."""

from lingopipe.core.context import ContextSnapshot, RunContext, TokenUsage
from lingopipe.core.manager import PluginManager
from lingopipe.core.pipeline import HandlerKind, PipelineEngine, StageHandler
from lingopipe.core.plugin import (
    MiddlewarePlugin,
    ObserverPlugin,
    ProviderPlugin,
    TranslationPlugin,
)
from lingopipe.core.request import TranslationOutput, TranslationRequest

__all__ = [
    "ContextSnapshot",
    "HandlerKind",
    "MiddlewarePlugin",
    "ObserverPlugin",
    "PipelineEngine",
    "PluginManager",
    "ProviderPlugin",
    "RunContext",
    "StageHandler",
    "TokenUsage",
    "TranslationOutput",
    "TranslationPlugin",
    "TranslationRequest",
]
