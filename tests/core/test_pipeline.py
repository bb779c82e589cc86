"""Tests for the stage engine: ordering, continuations, services, terminators, events."""

import logging
import threading

import pytest

from lingopipe.core import stages as st
from lingopipe.core.context import RunContext
from lingopipe.core.pipeline import HandlerKind, PipelineEngine
from lingopipe.core.request import TranslationOutput
from lingopipe.errors import CancelledError, ConfigurationError, ServiceNotFoundError
from tests.conftest import make_context, make_request


def recorder(calls, label, *, forward=True):
    def handler(ctx, next_):
        calls.append(label)
        return next_(ctx) if forward else None
    return handler


class TestStages:
    def test_core_order(self, pipeline):
        assert pipeline.stages == list(st.CORE_STAGES)
        assert pipeline.stages[0] == st.PRE_PROCESS
        assert pipeline.stages[-1] == st.OUTPUT

    def test_unknown_stage_rejected(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.register_stage("nope", recorder([], "x"))

    def test_add_stage_after(self, pipeline):
        pipeline.add_stage("review", after=st.TRANSLATION)
        stages = pipeline.stages
        assert stages.index("review") == stages.index(st.TRANSLATION) + 1

    def test_add_stage_before(self, pipeline):
        pipeline.add_stage("sanitize", before=st.PRE_PROCESS)
        assert pipeline.stages[0] == "sanitize"

    def test_add_stage_needs_one_anchor(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.add_stage("x")
        with pytest.raises(ConfigurationError):
            pipeline.add_stage("x", after=st.TRANSLATION, before=st.OUTPUT)

    def test_add_stage_unknown_anchor(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.add_stage("x", after="missing")

    def test_add_existing_stage(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.add_stage(st.TRANSLATION, after=st.CHUNKING)

    def test_stages_between(self, pipeline):
        assert pipeline.stages_between(st.CHUNKING, st.VALIDATION) == [
            st.TRANSLATION, st.CONSENSUS, st.VALIDATION,
        ]

    def test_stages_between_reversed(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.stages_between(st.VALIDATION, st.CHUNKING)

    def test_essential_stages(self):
        assert st.is_essential(st.TRANSLATION)
        assert not st.is_essential(st.CONSENSUS)


class TestHandlerOrdering:
    def test_higher_priority_runs_first(self, pipeline):
        calls = []
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "low"), 50)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "high"), 100)
        pipeline.run(make_context())
        assert calls == ["high", "low"]

    def test_equal_priority_keeps_registration_order(self, pipeline):
        calls = []
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "first"), 10)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "second"), 10)
        pipeline.run(make_context())
        assert calls == ["first", "second"]

    def test_stages_run_in_order(self, pipeline):
        calls = []
        pipeline.register_stage(st.OUTPUT, recorder(calls, "output"))
        pipeline.register_stage(st.PRE_PROCESS, recorder(calls, "pre"))
        pipeline.register_stage(st.VALIDATION, recorder(calls, "validation"))
        pipeline.run(make_context())
        assert calls == ["pre", "validation", "output"]

    def test_middleware_can_wrap_rest_of_stage(self, pipeline):
        calls = []

        def wrapper(ctx, next_):
            calls.append("before")
            result = next_(ctx)
            calls.append("after")
            return result

        pipeline.register_stage(st.TRANSLATION, wrapper, 100)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "inner"), 0)
        pipeline.run(make_context())
        assert calls == ["before", "inner", "after"]

    def test_registration_after_run_is_picked_up(self, pipeline):
        calls = []
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "a"), 10)
        pipeline.run(make_context())
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "b"), 20)
        pipeline.run(make_context())
        assert calls == ["a", "b", "a"]

    def test_handlers_for(self, pipeline):
        pipeline.register_stage(st.TRANSLATION, recorder([], "x"), 5, name="x")
        [entry] = pipeline.handlers_for(st.TRANSLATION)
        assert entry.name == "x"
        assert entry.priority == 5
        assert entry.kind is HandlerKind.middleware


class TestShortCircuitAndAbort:
    def test_short_circuit_skips_rest_of_stage_only(self, pipeline):
        calls = []
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "gate", forward=False), 100)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "skipped"), 0)
        pipeline.register_stage(st.OUTPUT, recorder(calls, "output"))
        pipeline.run(make_context())
        assert calls == ["gate", "output"]

    def test_abort_stops_later_stages(self, pipeline):
        calls = []

        def stopper(ctx, next_):
            ctx.abort("enough")
            return next_(ctx)

        pipeline.register_stage(st.PREPARATION, stopper)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "translation"))
        pipeline.register_terminator(lambda ctx, snap: calls.append("terminator"))

        ctx = make_context()
        pipeline.run(ctx)

        assert calls == ["terminator"]
        assert ctx.aborted
        assert ctx.is_complete


class TestOutputs:
    def test_terminal_outputs_are_collected(self, pipeline):
        def provider(ctx):
            return [TranslationOutput("greet", "안녕", "ko")]

        pipeline.register_stage(st.TRANSLATION, provider, kind="terminal")
        outputs = pipeline.run(make_context())
        assert [o.value for o in outputs] == ["안녕"]

    def test_terminal_handler_continues_chain(self, pipeline):
        calls = []

        def provider(ctx):
            calls.append("terminal")
            return [TranslationOutput("a", "1", "ko")]

        def after(ctx, next_):
            calls.append("after")
            return [TranslationOutput("b", "2", "ko")]

        pipeline.register_stage(st.TRANSLATION, provider, 10, kind="terminal")
        pipeline.register_stage(st.TRANSLATION, after, 0)
        outputs = pipeline.run(make_context())

        assert calls == ["terminal", "after"]
        assert [o.key for o in outputs] == ["a", "b"]


class TestServices:
    def test_register_and_call(self, pipeline):
        pipeline.register_service("double", lambda x: x * 2)
        assert pipeline.has_service("double")
        assert pipeline.call_service("double", 4) == 8
        assert pipeline.services == ["double"]

    def test_missing_service(self, pipeline):
        with pytest.raises(ServiceNotFoundError):
            pipeline.call_service("absent")

    def test_missing_service_is_configuration_error(self, pipeline):
        with pytest.raises(ConfigurationError):
            pipeline.call_service("absent")

    def test_overwrite_warns(self, pipeline, caplog):
        pipeline.register_service("svc", lambda: 1)
        with caplog.at_level(logging.WARNING, logger="lingopipe.core.pipeline"):
            pipeline.register_service("svc", lambda: 2)
        assert "already registered" in caplog.text
        assert pipeline.call_service("svc") == 2


class TestTerminators:
    def test_run_in_priority_order_with_snapshot(self, pipeline):
        calls = []
        pipeline.register_terminator(lambda ctx, snap: calls.append(("low", snap.failed)), 1)
        pipeline.register_terminator(lambda ctx, snap: calls.append(("high", snap.failed)), 9)
        pipeline.run(make_context())
        assert calls == [("high", False), ("low", False)]

    def test_run_on_failure_and_error_reraised(self, pipeline):
        calls = []

        def broken(ctx, next_):
            raise RuntimeError("boom")

        pipeline.register_stage(st.TRANSLATION, broken)
        pipeline.register_terminator(lambda ctx, snap: calls.append(ctx.failed))

        ctx = make_context()
        with pytest.raises(RuntimeError, match="boom"):
            pipeline.run(ctx)

        assert calls == [True]
        assert ctx.failed
        assert ctx.errors == ["RuntimeError: boom"]
        assert ctx.is_complete

    def test_terminator_failure_is_isolated(self, pipeline):
        calls = []

        def bad(ctx, snap):
            raise ValueError("cleanup failed")

        pipeline.register_terminator(bad, 10, name="bad")
        pipeline.register_terminator(lambda ctx, snap: calls.append("ran"), 0)

        ctx = make_context()
        pipeline.run(ctx)

        assert calls == ["ran"]
        assert ctx.errors == ["Terminator bad failed: cleanup failed"]

    def test_terminators_may_mutate_before_complete(self, pipeline):
        def add(ctx, snap):
            ctx.add_translation("ko", "late", "늦게")

        pipeline.register_terminator(add)
        ctx = make_context()
        pipeline.run(ctx)
        assert ctx.get_translations("ko") == {"late": "늦게"}


class TestEvents:
    def test_lifecycle_events(self, pipeline):
        events = []
        for name in (st.TRANSLATION_STARTED, st.TRANSLATION_COMPLETED,
                     st.stage_started(st.TRANSLATION), st.stage_completed(st.TRANSLATION)):
            pipeline.subscribe(name, lambda ctx, name=name: events.append(name))
        pipeline.run(make_context())
        assert events == [
            st.TRANSLATION_STARTED,
            "stage.translation.started",
            "stage.translation.completed",
            st.TRANSLATION_COMPLETED,
        ]

    def test_completed_published_after_context_complete(self, pipeline):
        seen = []
        pipeline.subscribe(st.TRANSLATION_COMPLETED, lambda ctx: seen.append(ctx.is_complete))
        pipeline.run(make_context())
        assert seen == [True]

    def test_failed_event(self, pipeline):
        events = []

        def broken(ctx, next_):
            raise RuntimeError("x")

        pipeline.register_stage(st.TRANSLATION, broken)
        pipeline.subscribe(st.TRANSLATION_FAILED, lambda ctx: events.append("failed"))
        pipeline.subscribe(st.TRANSLATION_COMPLETED, lambda ctx: events.append("completed"))
        with pytest.raises(RuntimeError):
            pipeline.run(make_context())
        assert events == ["failed"]

    def test_listener_errors_do_not_break_run(self, pipeline):
        def bad(ctx):
            raise RuntimeError("listener")

        pipeline.subscribe(st.TRANSLATION_STARTED, bad)
        ctx = make_context()
        pipeline.run(ctx)
        assert ctx.is_complete


class TestCancellation:
    def test_cancel_is_distinguished_outcome(self, pipeline):
        event = threading.Event()
        calls = []

        def cancel(ctx, next_):
            event.set()
            return next_(ctx)

        pipeline.register_stage(st.PREPARATION, cancel)
        pipeline.register_stage(st.TRANSLATION, recorder(calls, "translation"))
        pipeline.register_terminator(lambda ctx, snap: calls.append("terminator"))
        pipeline.subscribe(st.TRANSLATION_CANCELLED, lambda ctx: calls.append("cancelled"))
        pipeline.subscribe(st.TRANSLATION_FAILED, lambda ctx: calls.append("failed"))

        ctx = RunContext(make_request(), cancel_event=event)
        with pytest.raises(CancelledError):
            pipeline.run(ctx)

        assert calls == ["cancelled", "terminator"]
        assert ctx.failed


class TestClear:
    def test_clear_keeps_custom_stages(self):
        engine = PipelineEngine()
        engine.add_stage("review", after=st.TRANSLATION)
        engine.register_stage("review", recorder([], "x"))
        engine.register_service("s", lambda: None)
        engine.clear()
        assert engine.has_stage("review")
        assert engine.handlers_for("review") == []
        assert not engine.has_service("s")
