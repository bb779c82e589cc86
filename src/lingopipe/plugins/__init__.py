"""Built-in plugins."""

from lingopipe.plugins.chunking import TokenChunkingPlugin
from lingopipe.plugins.diff_tracking import DiffState, DiffTrackingPlugin
from lingopipe.plugins.glossary import GlossaryPlugin
from lingopipe.plugins.translation import ProviderTranslationPlugin
from lingopipe.plugins.validation import ValidationPlugin

__all__ = [
    "DiffState",
    "DiffTrackingPlugin",
    "GlossaryPlugin",
    "ProviderTranslationPlugin",
    "TokenChunkingPlugin",
    "ValidationPlugin",
]
