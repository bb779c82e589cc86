"""Plugin registration, tenant toggles and dependency-ordered boot."""

from __future__ import annotations

import logging

from lingopipe.core.pipeline import PipelineEngine
from lingopipe.core.plugin import TranslationPlugin
from lingopipe.errors import DependencyError

logger = logging.getLogger(__name__)


class PluginManager:
    """Keeps the set of plugins for a pipeline and boots them in dependency order."""

    def __init__(self) -> None:
        self._plugins: dict[str, TranslationPlugin] = {}
        self._booted = False

    def register(self, plugin: TranslationPlugin) -> None:
        """Add a plugin. Its dependencies must already be registered."""
        missing = [d for d in plugin.dependencies if d not in self._plugins]
        if missing:
            raise DependencyError(
                f"Plugin '{plugin.name}' requires {', '.join(repr(m) for m in missing)} "
                "which is not registered"
            )
        if plugin.name in self._plugins:
            logger.warning("Plugin '%s' registered twice; replacing", plugin.name)
        self._plugins[plugin.name] = plugin

    def get(self, name: str) -> TranslationPlugin | None:
        return self._plugins.get(name)

    def has(self, name: str) -> bool:
        return name in self._plugins

    def all(self) -> list[TranslationPlugin]:
        return list(self._plugins.values())

    def enable_for_tenant(self, tenant: str, name: str) -> None:
        self._require(name).enable_for_tenant(tenant)

    def disable_for_tenant(self, tenant: str, name: str) -> None:
        self._require(name).disable_for_tenant(tenant)

    def enabled_for(self, tenant: str | None) -> list[TranslationPlugin]:
        return [p for p in self._plugins.values() if p.is_enabled_for(tenant)]

    def _require(self, name: str) -> TranslationPlugin:
        plugin = self._plugins.get(name)
        if plugin is None:
            raise DependencyError(f"Plugin '{name}' is not registered")
        return plugin

    @property
    def booted(self) -> bool:
        return self._booted

    def sorted_plugins(self) -> list[TranslationPlugin]:
        """Topological order: every plugin after the plugins it depends on."""
        ordered: list[TranslationPlugin] = []
        visited: set[str] = set()
        visiting: set[str] = set()

        def visit(name: str) -> None:
            if name in visited:
                return
            if name in visiting:
                raise DependencyError(f"Circular dependency detected for plugin '{name}'")
            visiting.add(name)
            plugin = self._plugins[name]
            for dep in plugin.dependencies:
                if dep in self._plugins:
                    visit(dep)
            visiting.discard(name)
            visited.add(name)
            ordered.append(plugin)

        for name in self._plugins:
            visit(name)
        return ordered

    def boot(self, pipeline: PipelineEngine) -> None:
        if self._booted:
            return
        for plugin in self.sorted_plugins():
            logger.debug("Booting plugin %r", plugin)
            plugin.boot(pipeline)
        self._booted = True

    def reset(self) -> None:
        self._plugins.clear()
        self._booted = False
