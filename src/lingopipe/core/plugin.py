"""Plugin base classes.

Three flavours, all booted into a :class:`PipelineEngine`:

* :class:`MiddlewarePlugin`: one ``handle(context, next)`` on a single stage.
* :class:`ProviderPlugin`: named services plus terminal handlers on ``when()`` stages.
* :class:`ObserverPlugin`: event subscriptions only; never alters control flow.

Every plugin exposes :meth:`TranslationPlugin.terminate`; the default does
nothing, and booting always registers it as a terminator.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, ClassVar

from lingopipe.core import stages as st
from lingopipe.core.context import ContextSnapshot, RunContext

if TYPE_CHECKING:
    from lingopipe.core.pipeline import HandlerResult, Next, PipelineEngine

logger = logging.getLogger(__name__)


class TranslationPlugin(ABC):
    """Common plugin behaviour: identity, priority, tenant toggles, terminate hook."""

    name: ClassVar[str] = ""
    version: ClassVar[str] = "1.0.0"
    priority: int = 0
    dependencies: ClassVar[tuple[str, ...]] = ()

    def __init__(self) -> None:
        self._tenant_status: dict[str, bool] = {}
        if not self.name:
            raise TypeError(f"{type(self).__name__} must define a plugin name")

    # ── tenants ──

    def is_enabled_for(self, tenant: str | None = None) -> bool:
        if tenant is None:
            return True
        return self._tenant_status.get(tenant, True)

    def enable_for_tenant(self, tenant: str) -> None:
        self._tenant_status[tenant] = True

    def disable_for_tenant(self, tenant: str) -> None:
        self._tenant_status[tenant] = False

    def should_skip(self, context: RunContext) -> bool:
        """True if disabled for the request's tenant or via a ``skip_<name>`` option."""
        tenant = context.request.tenant_id
        if tenant and not self.is_enabled_for(tenant):
            return True
        return bool(context.request.option(f"skip_{self.name}", False))

    def option(self, context: RunContext, key: str, default: Any = None) -> Any:
        """Per-request override from ``plugin_configs[name]``, else ``default``."""
        return context.request.plugin_config(self.name).get(key, default)

    # ── lifecycle ──

    @abstractmethod
    def boot(self, pipeline: PipelineEngine) -> None:
        """Register handlers, services, terminators and listeners."""

    def terminate(self, context: RunContext, snapshot: ContextSnapshot) -> None:
        """Runs after all stages, success or failure. No-op by default."""

    def _register_terminate(self, pipeline: PipelineEngine) -> None:
        pipeline.register_terminator(self.terminate, self.priority, name=f"{self.name}.terminate")

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name} v{self.version} priority={self.priority}>"


class MiddlewarePlugin(TranslationPlugin):
    """Wraps the rest of its stage's chain."""

    stage: ClassVar[str] = ""

    def boot(self, pipeline: PipelineEngine) -> None:
        pipeline.register_stage(self.stage, self.handle, self.priority, name=self.name)
        self._register_terminate(pipeline)

    @abstractmethod
    def handle(self, context: RunContext, next_: Next) -> HandlerResult:
        ...

    def pass_through(self, context: RunContext, next_: Next) -> HandlerResult:
        return next_(context)


class ProviderPlugin(TranslationPlugin):
    """Offers named services and runs ``execute`` as a terminal handler on its stages."""

    def when(self) -> tuple[str, ...]:
        return (st.TRANSLATION,)

    @abstractmethod
    def provides(self) -> tuple[str, ...]:
        ...

    @abstractmethod
    def execute(self, context: RunContext) -> HandlerResult:
        ...

    def boot(self, pipeline: PipelineEngine) -> None:
        for service in self.provides():
            pipeline.register_service(service, self.execute)
        for stage in self.when():
            pipeline.register_stage(
                stage, self._stage_handler, self.priority, kind="terminal", name=self.name,
            )
        self._register_terminate(pipeline)

    def _stage_handler(self, context: RunContext) -> HandlerResult:
        if self.should_skip(context):
            return None
        return self.execute(context)


class ObserverPlugin(TranslationPlugin):
    """Reacts to pipeline events; side effects only."""

    @abstractmethod
    def subscriptions(self) -> dict[str, Callable[[RunContext], None]]:
        ...

    def boot(self, pipeline: PipelineEngine) -> None:
        for event, callback in self.subscriptions().items():
            pipeline.subscribe(event, self._guard(callback))
        self._register_terminate(pipeline)

    def _guard(self, callback: Callable[[RunContext], None]) -> Callable[[RunContext], None]:
        def listener(context: RunContext) -> None:
            if context.request.option(f"disable_{self.name}", False):
                return
            tenant = context.request.tenant_id
            if tenant and not self.is_enabled_for(tenant):
                return
            callback(context)
        return listener
