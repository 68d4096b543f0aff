"""Tests for the dynamic pipeline executor."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

import pytest

from ticketflow.classification.models import (
    Complexity,
    LayerScope,
    PlannedStep,
    TicketClassification,
    TicketType,
)
from ticketflow.errors import CyclicDependencyError
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import PipelineResult, RunState, StepResult
from ticketflow.pipeline.executor import PipelineExecutor
from ticketflow.pipeline.registry import StepRegistry, build_registry
from tests._helpers.expect import (
    expect_equal,
    expect_false,
    expect_in,
    expect_length,
    expect_true,
)
from tests._helpers.fakes import FakeStep, Outcome, RecordingObserver, fake_steps

ANALYSIS_SPEC: list[tuple[str, tuple[str, ...]]] = [
    ("data-analysis", ()),
    ("api-analysis", ("data-analysis",)),
    ("frontend-analysis", ("api-analysis",)),
    ("implement", ()),
]


def _plan(*step_ids: str) -> TicketClassification:
    return TicketClassification(
        type=TicketType.ENHANCEMENT,
        scope=LayerScope.ALL,
        complexity=Complexity.MEDIUM,
        steps=tuple(
            PlannedStep(step_id=step_id, order=index)
            for index, step_id in enumerate(step_ids, start=1)
        ),
        summary="test plan",
    )


def _executor(
    spec: list[tuple[str, tuple[str, ...]]],
    calls: list[str],
    observer: RecordingObserver,
    outcomes: dict[str, Outcome] | None = None,
) -> tuple[PipelineExecutor, StepRegistry]:
    registry = build_registry(fake_steps(spec, calls, outcomes=outcomes))
    return PipelineExecutor(registry, observer=observer), registry


def test_end_to_end_pulls_dependencies_and_skips_the_rest(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """api-analysis pulls in data-analysis; frontend-analysis is the only skipped step."""
    executor, _ = _executor(ANALYSIS_SPEC, call_log, observer)
    context = StepContext(ticket="Add login endpoint")

    result = asyncio.run(executor.execute(_plan("api-analysis", "implement"), context))

    expect_true(result.success, message="pipeline should succeed")
    expect_equal(call_log, ["data-analysis", "api-analysis", "implement"], label="calls")
    expect_equal(
        [r.step_id for r in result.step_results],
        ["data-analysis", "api-analysis", "implement"],
        label="result order",
    )
    expect_equal(result.skipped_steps, ("frontend-analysis",), label="skipped")
    expect_equal(context.skipped_steps, ["frontend-analysis"], label="context skipped")
    expect_true(result.error is None, message="ok result carries no error")


def test_skipped_steps_are_registered_minus_requested(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """Without dependencies the skipped list is every registered step not requested."""
    executor, _ = _executor([("a", ()), ("b", ()), ("c", ())], call_log, observer)
    context = StepContext(ticket="t")

    result = asyncio.run(executor.execute(_plan("c", "a"), context))

    expect_equal(result.skipped_steps, ("b",), label="skipped")
    expect_equal(call_log, ["c", "a"], label="calls follow declared order")


def test_pulled_in_dependency_is_not_reported_as_skipped(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """A pulled-in dependency runs, so it is absent from skipped despite not being requested."""
    executor, registry = _executor(
        [("data-analysis", ()), ("api-analysis", ("data-analysis",)), ("implement", ())],
        call_log,
        observer,
    )
    classification = _plan("api-analysis", "implement")

    result = executor.dry_run(classification)

    registered_minus_requested = [
        step_id
        for step_id in registry.get_all_step_ids()
        if step_id not in {"api-analysis", "implement"}
    ]
    expect_equal(registered_minus_requested, ["data-analysis"], label="naive difference")
    expect_equal(
        result.planned_steps,
        ("data-analysis", "api-analysis", "implement"),
        label="planned",
    )
    expect_equal(result.skipped_steps, (), label="skipped")


def test_skipped_comparison_is_case_insensitive(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """Requested ids in another case still remove their registered step from skipped."""
    executor, _ = _executor([("data-analysis", ()), ("implement", ())], call_log, observer)

    result = executor.dry_run(_plan("IMPLEMENT"))

    expect_equal(result.skipped_steps, ("data-analysis",), label="skipped")


def test_fail_fast_stops_after_failed_step(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """A failing step stops the run; later steps never execute."""
    executor, _ = _executor(
        [("a", ()), ("b", ()), ("c", ())], call_log, observer, outcomes={"b": "fail"}
    )

    result = asyncio.run(executor.execute(_plan("a", "b", "c"), StepContext(ticket="t")))

    expect_false(result.success, message="pipeline should fail")
    expect_equal(call_log, ["a", "b"], label="calls")
    expect_equal([r.success for r in result.step_results], [True, False], label="results")
    expect_equal(result.error, "Step 'b' failed: b said no", label="error")
    expect_in(("failed", "b"), observer.events, label="observer saw failure")
    expect_equal(observer.events[-1], ("finished", "failed"), label="terminal event")


def test_raised_exception_becomes_failed_result(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """An exception inside a step is converted into a failed result and stops the run."""
    executor, _ = _executor(
        [("a", ()), ("b", ()), ("c", ())], call_log, observer, outcomes={"b": "raise"}
    )

    result = asyncio.run(executor.execute(_plan("a", "b", "c"), StepContext(ticket="t")))

    expect_false(result.success, message="pipeline should fail")
    expect_equal(call_log, ["a", "b"], label="calls")
    failed = result.step_results[-1]
    expect_equal(failed.step_id, "b", label="failed step")
    expect_equal(failed.error, "RuntimeError: b exploded", label="fault description")
    expect_in("RuntimeError: b exploded", result.error or "", label="pipeline error")


def test_step_index_is_one_based(call_log: list[str], observer: RecordingObserver) -> None:
    """current_step_index is set before each step runs."""
    steps = fake_steps([("a", ()), ("b", ()), ("c", ())], call_log)
    executor = PipelineExecutor(build_registry(steps), observer=observer)

    asyncio.run(executor.execute(_plan("a", "b", "c"), StepContext(ticket="t")))

    expect_equal([step.seen_indices for step in steps], [[1], [2], [3]], label="indices")
    expect_in(("started", "c", "3/3"), observer.events, label="progress event")


def test_execute_attaches_classification(call_log: list[str], observer: RecordingObserver) -> None:
    """The executor stores the classification on the context it runs against."""
    executor, _ = _executor([("a", ())], call_log, observer)
    context = StepContext(ticket="t")
    classification = _plan("a")

    asyncio.run(executor.execute(classification, context))

    expect_true(context.classification is classification, message="classification attached")


def test_empty_plan_runs_nothing(call_log: list[str], observer: RecordingObserver) -> None:
    """An empty step list is a valid plan that skips every registered step."""
    executor, _ = _executor([("a", ()), ("b", ())], call_log, observer)

    result = asyncio.run(executor.execute(_plan(), StepContext(ticket="t")))

    expect_true(result.success, message="empty plan succeeds")
    expect_length(result.step_results, 0, label="results")
    expect_equal(result.skipped_steps, ("a", "b"), label="skipped")


def test_dry_run_invokes_no_step(call_log: list[str], observer: RecordingObserver) -> None:
    """A dry run plans the order but never executes a step."""
    executor, _ = _executor(ANALYSIS_SPEC, call_log, observer)

    result = executor.dry_run(_plan("frontend-analysis"))

    expect_true(result.success, message="dry run succeeds")
    expect_equal(call_log, [], label="no calls")
    expect_length(result.step_results, 0, label="results")
    expect_equal(
        result.planned_steps,
        ("data-analysis", "api-analysis", "frontend-analysis"),
        label="planned",
    )
    expect_equal(result.skipped_steps, ("implement",), label="skipped")
    expect_equal(observer.events, [("plan", "planned"), ("finished", "planned")], label="events")


def test_dry_run_is_idempotent(call_log: list[str], observer: RecordingObserver) -> None:
    """Repeated dry runs of one classification give identical results."""
    executor, _ = _executor(ANALYSIS_SPEC, call_log, observer)
    classification = _plan("implement", "api-analysis")

    first = executor.dry_run(classification)
    second = executor.dry_run(classification)

    expect_equal(first, second, label="dry run results")


def test_cycle_propagates_from_execute_and_dry_run(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """A cyclic configuration is raised rather than reported as a step failure."""
    executor, _ = _executor([("a", ("b",)), ("b", ("a",))], call_log, observer)

    with pytest.raises(CyclicDependencyError):
        executor.dry_run(_plan("a"))
    with pytest.raises(CyclicDependencyError):
        asyncio.run(executor.execute(_plan("a"), StepContext(ticket="t")))
    expect_equal(call_log, [], label="no calls")


def test_cancel_set_before_start_stops_the_run(
    call_log: list[str],
    observer: RecordingObserver,
) -> None:
    """A pre-set cancellation signal fails the first step without running it."""
    executor, _ = _executor([("a", ()), ("b", ())], call_log, observer)

    async def _run() -> PipelineResult:
        cancel = asyncio.Event()
        cancel.set()
        return await executor.execute(_plan("a", "b"), StepContext(ticket="t"), cancel)

    result = asyncio.run(_run())

    expect_false(result.success, message="cancelled run fails")
    expect_equal(call_log, [], label="no calls")
    expect_equal(result.error, "Step 'a' failed: cancelled before start", label="error")


@dataclass
class _CancellingStep:
    step_id: str = "cancelling"
    display_name: str = "Cancelling"
    affected_layers: LayerScope = LayerScope.NONE
    dependencies: tuple[str, ...] = ()

    async def execute(self, ctx: StepContext, cancel: asyncio.Event | None = None) -> StepResult:
        raise asyncio.CancelledError


def test_cancelled_error_is_not_converted(observer: RecordingObserver) -> None:
    """Task cancellation propagates instead of becoming a failed result."""
    executor = PipelineExecutor(StepRegistry([_CancellingStep()]), observer=observer)

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(executor.execute(_plan("cancelling"), StepContext(ticket="t")))


def test_run_step_runs_one_step(call_log: list[str], observer: RecordingObserver) -> None:
    """run_step executes a single step without pulling in dependencies."""
    executor, _ = _executor(ANALYSIS_SPEC, call_log, observer)

    result = asyncio.run(executor.run_step("API-analysis", StepContext(ticket="t")))

    expect_true(result.success, message="step succeeds")
    expect_equal(call_log, ["api-analysis"], label="calls")
    expect_equal(observer.kinds(), ["started", "succeeded"], label="events")


def test_run_step_unknown_id(call_log: list[str], observer: RecordingObserver) -> None:
    """An unknown step id yields a failed result rather than an exception."""
    executor, _ = _executor(ANALYSIS_SPEC, call_log, observer)

    result = asyncio.run(executor.run_step("nope", StepContext(ticket="t")))

    expect_false(result.success, message="unknown step fails")
    expect_equal(result.error, "Step 'nope' is not registered", label="error")


def test_run_step_converts_faults(call_log: list[str], observer: RecordingObserver) -> None:
    """run_step applies the same fault conversion as a full run."""
    executor = PipelineExecutor(
        build_registry([FakeStep(step_id="boom", outcome="raise", calls=call_log)]),
        observer=observer,
    )

    result = asyncio.run(executor.run_step("boom", StepContext(ticket="t")))

    expect_equal(result.error, "RuntimeError: boom exploded", label="error")
    expect_equal(observer.kinds(), ["started", "failed"], label="events")


def test_observer_sees_every_run_state(call_log: list[str], observer: RecordingObserver) -> None:
    """Dry, successful and failed runs between them report every RunState member."""
    executor, _ = _executor(
        [("a", ()), ("b", ())],
        call_log,
        observer,
        outcomes={"b": "fail"},
    )

    executor.dry_run(_plan("a"))
    asyncio.run(executor.execute(_plan("a"), StepContext(ticket="t")))
    asyncio.run(executor.execute(_plan("b"), StepContext(ticket="t")))

    reported = {event[1] for event in observer.events if event[0] in {"plan", "finished"}}
    expect_equal(reported, {state.value for state in RunState}, label="states")
    expect_equal(
        [state.value for state in RunState],
        ["planned", "executing", "succeeded", "failed"],
        label="members",
    )
