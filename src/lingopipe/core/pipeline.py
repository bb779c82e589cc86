"""Stage-based execution engine.

A run walks the stage list in order. Each stage owns a priority-sorted list of
handlers that are folded into a single continuation chain:

    handler_1(ctx, next=lambda ctx: handler_2(ctx, next=... no-op))

A middleware handler that does not call ``next`` short-circuits the remaining
handlers of its stage; later stages still run unless it also aborts the
context. After the last stage the terminators run unconditionally.
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from lingopipe.core import stages as st
from lingopipe.core.context import ContextSnapshot, RunContext
from lingopipe.core.request import TranslationOutput
from lingopipe.errors import CancelledError, ConfigurationError, ServiceNotFoundError

logger = logging.getLogger(__name__)

HandlerResult = Iterable[TranslationOutput] | None
Next = Callable[[RunContext], HandlerResult]
MiddlewareFunc = Callable[[RunContext, Next], HandlerResult]
TerminalFunc = Callable[[RunContext], HandlerResult]
TerminatorFunc = Callable[[RunContext, ContextSnapshot], None]
Listener = Callable[[RunContext], None]


class HandlerKind(str, Enum):
    middleware = "middleware"
    terminal = "terminal"


@dataclass(frozen=True)
class StageHandler:
    """A unit of work bound to exactly one stage."""

    stage: str
    func: Callable[..., HandlerResult]
    priority: int = 0
    kind: HandlerKind = HandlerKind.middleware
    name: str = ""
    seq: int = 0

    def __call__(self, context: RunContext, next_: Next) -> HandlerResult:
        if self.kind is HandlerKind.middleware:
            return self.func(context, next_)
        own = self.func(context)
        rest = next_(context)
        return _concat(own, rest)


@dataclass(frozen=True)
class _Terminator:
    func: TerminatorFunc
    priority: int
    seq: int
    name: str = ""


def _noop(context: RunContext) -> HandlerResult:
    return None


def _concat(*results: HandlerResult) -> list[TranslationOutput]:
    out: list[TranslationOutput] = []
    for r in results:
        if r is not None:
            out.extend(r)
    return out


def _sort_key(item: StageHandler | _Terminator) -> tuple[int, int]:
    # Descending priority, then registration order
    return (-item.priority, item.seq)


@dataclass
class PipelineEngine:
    """Owns the stage list, handlers, services, terminators and event listeners."""

    _stage_order: list[str] = field(default_factory=lambda: list(st.CORE_STAGES))
    _handlers: dict[str, list[StageHandler]] = field(default_factory=dict)
    _services: dict[str, Callable[..., Any]] = field(default_factory=dict)
    _terminators: list[_Terminator] = field(default_factory=list)
    _listeners: dict[str, list[Listener]] = field(default_factory=dict)
    _chains: dict[str, Next] = field(default_factory=dict, repr=False)
    _seq: Iterable[int] = field(default_factory=itertools.count, repr=False)

    def __post_init__(self) -> None:
        for stage in self._stage_order:
            self._handlers.setdefault(stage, [])

    # ── stages ──

    @property
    def stages(self) -> list[str]:
        return list(self._stage_order)

    def has_stage(self, stage: str) -> bool:
        return stage in self._handlers

    def add_stage(self, name: str, *, after: str | None = None, before: str | None = None) -> None:
        """Insert a custom stage next to an existing anchor stage."""
        if name in self._handlers:
            raise ConfigurationError(f"Stage '{name}' already exists")
        if (after is None) == (before is None):
            raise ConfigurationError("add_stage() needs exactly one of 'after' or 'before'")
        anchor = after if after is not None else before
        if anchor not in self._handlers:
            raise ConfigurationError(f"Unknown anchor stage '{anchor}'")
        index = self._stage_order.index(anchor)  # type: ignore[arg-type]
        if after is not None:
            index += 1
        self._stage_order.insert(index, name)
        self._handlers[name] = []
        logger.debug("Added custom stage %s at position %d", name, index)

    def register_stage(
        self,
        stage: str,
        handler: Callable[..., HandlerResult],
        priority: int = 0,
        *,
        kind: HandlerKind | str = HandlerKind.middleware,
        name: str = "",
    ) -> StageHandler:
        """Attach a handler to a stage. Higher priority runs first; ties keep registration order."""
        if stage not in self._handlers:
            raise ConfigurationError(
                f"Unknown stage '{stage}'. Use add_stage() to register custom stages."
            )
        entry = StageHandler(
            stage=stage,
            func=handler,
            priority=priority,
            kind=HandlerKind(kind),
            name=name or getattr(handler, "__qualname__", repr(handler)),
            seq=next(self._seq),  # type: ignore[call-overload]
        )
        handlers = self._handlers[stage]
        handlers.append(entry)
        handlers.sort(key=_sort_key)
        self._chains.pop(stage, None)
        return entry

    def handlers_for(self, stage: str) -> list[StageHandler]:
        return list(self._handlers.get(stage, []))

    def _chain(self, stage: str) -> Next:
        chain = self._chains.get(stage)
        if chain is None:
            chain = _noop
            for handler in reversed(self._handlers[stage]):
                chain = self._wrap(handler, chain)
            self._chains[stage] = chain
        return chain

    @staticmethod
    def _wrap(handler: StageHandler, next_: Next) -> Next:
        def call(context: RunContext) -> HandlerResult:
            return handler(context, next_)
        return call

    def stages_between(self, after: str, through: str) -> list[str]:
        """Stage names strictly after ``after`` up to and including ``through``."""
        for stage in (after, through):
            if stage not in self._handlers:
                raise ConfigurationError(f"Unknown stage '{stage}'")
        start = self._stage_order.index(after) + 1
        end = self._stage_order.index(through) + 1
        if end < start:
            raise ConfigurationError(f"Stage '{through}' runs before '{after}'")
        return self._stage_order[start:end]

    # ── services ──

    def register_service(self, name: str, handler: Callable[..., Any]) -> None:
        if name in self._services:
            logger.warning("Service '%s' is already registered; overwriting", name)
        self._services[name] = handler

    def has_service(self, name: str) -> bool:
        return name in self._services

    def call_service(self, name: str, *args: Any, **kwargs: Any) -> Any:
        try:
            service = self._services[name]
        except KeyError:
            raise ServiceNotFoundError(f"Service '{name}' not found") from None
        return service(*args, **kwargs)

    @property
    def services(self) -> list[str]:
        return list(self._services)

    # ── terminators ──

    def register_terminator(self, handler: TerminatorFunc, priority: int = 0, *, name: str = "") -> None:
        self._terminators.append(_Terminator(
            func=handler,
            priority=priority,
            seq=next(self._seq),  # type: ignore[call-overload]
            name=name or getattr(handler, "__qualname__", repr(handler)),
        ))
        self._terminators.sort(key=_sort_key)

    def _run_terminators(self, context: RunContext) -> None:
        snapshot = context.snapshot()
        for terminator in self._terminators:
            try:
                terminator.func(context, snapshot)
            except Exception as e:
                logger.exception("Terminator %s failed", terminator.name)
                context.add_error(f"Terminator {terminator.name} failed: {e}")

    # ── events ──

    def subscribe(self, event: str, listener: Listener) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def publish(self, event: str, context: RunContext) -> None:
        for listener in self._listeners.get(event, []):
            try:
                listener(context)
            except Exception:
                logger.exception("Listener for %s failed", event)

    # ── execution ──

    def run_stages(self, context: RunContext, stages: Sequence[str]) -> list[TranslationOutput]:
        """Run the given stages in order on ``context``. Exceptions propagate."""
        outputs: list[TranslationOutput] = []
        for stage in stages:
            if context.aborted:
                logger.info("Run aborted before stage %s: %s", stage, context.abort_reason)
                break
            if stage in context.completed_stages:
                continue
            context.check_cancelled()
            context.current_stage = stage
            self.publish(st.stage_started(stage), context)
            outputs.extend(_concat(self._chain(stage)(context)))
            context.completed_stages.add(stage)
            self.publish(st.stage_completed(stage), context)
        return outputs

    def run(self, context: RunContext) -> list[TranslationOutput]:
        """Execute every stage, then the terminators, and complete the context."""
        self.publish(st.TRANSLATION_STARTED, context)
        try:
            outputs = self.run_stages(context, self.stages)
        except CancelledError as e:
            context.add_error(str(e))
            context.failed = True
            self.publish(st.TRANSLATION_CANCELLED, context)
            self._finish(context)
            raise
        except Exception as e:
            context.add_error(f"{type(e).__name__}: {e}")
            context.failed = True
            self.publish(st.TRANSLATION_FAILED, context)
            self._finish(context)
            raise
        self._finish(context)
        self.publish(st.TRANSLATION_COMPLETED, context)
        return outputs

    def _finish(self, context: RunContext) -> None:
        try:
            self._run_terminators(context)
        finally:
            context.complete()

    def clear(self) -> None:
        """Drop all handlers, services, terminators and listeners (custom stages are kept)."""
        for stage in self._handlers:
            self._handlers[stage] = []
        self._chains.clear()
        self._services.clear()
        self._terminators.clear()
        self._listeners.clear()
