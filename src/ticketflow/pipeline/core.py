"""Shared orchestration primitives for pipeline steps."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Protocol

from ticketflow.classification.models import LayerScope, TicketClassification
from ticketflow.pipeline.context import StepContext

log = logging.getLogger(__name__)


class RunState(StrEnum):
    """Lifecycle of a single pipeline run."""

    PLANNED = "planned"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class StepMetadata:
    """
    Machine-readable metadata for a pipeline step.

    Parameters
    ----------
    step_id
        Unique (case-insensitive) step identifier.
    display_name
        Human-readable label used for reporting.
    affected_layers
        Architectural layers the step touches.
    dependencies
        Identifiers of steps that must complete before this one.
    """

    step_id: str
    display_name: str
    affected_layers: LayerScope
    dependencies: tuple[str, ...]


@dataclass(frozen=True)
class StepResult:
    """Outcome of one step invocation; never mutated after creation."""

    step_id: str
    success: bool
    error: str | None = None
    tasks: tuple[str, ...] = ()

    @classmethod
    def ok(cls, step_id: str, tasks: Sequence[str] = ()) -> StepResult:
        """
        Build a successful result.

        Returns
        -------
        StepResult
            Result flagged as successful, carrying produced task identifiers.
        """
        return cls(step_id=step_id, success=True, tasks=tuple(tasks))

    @classmethod
    def failed(cls, step_id: str, error: str | None) -> StepResult:
        """
        Build a failed result.

        Returns
        -------
        StepResult
            Result flagged as failed with a non-empty error message.
        """
        return cls(step_id=step_id, success=False, error=error or "unknown error")


class PipelineStep(Protocol):
    """
    Contract for pipeline steps.

    Each step must define:
    - step_id: Unique, case-insensitive identifier.
    - display_name: Human-readable label.
    - affected_layers: Layers the step touches (informational).
    - dependencies: Step ids that must run successfully before this step.
    - execute(): Coroutine running the step against the shared context.
    """

    step_id: str
    display_name: str
    affected_layers: LayerScope
    dependencies: Sequence[str]

    async def execute(
        self,
        ctx: StepContext,
        cancel: asyncio.Event | None = None,
    ) -> StepResult:
        """Execute the step using the shared context."""
        ...


def step_metadata(step: PipelineStep) -> StepMetadata:
    """
    Snapshot the descriptive attributes of a step.

    Returns
    -------
    StepMetadata
        Metadata for the step.
    """
    return StepMetadata(
        step_id=step.step_id,
        display_name=step.display_name,
        affected_layers=step.affected_layers,
        dependencies=tuple(step.dependencies),
    )


@dataclass(frozen=True)
class ExecutionPlan:
    """
    Planning output shared by real runs and dry runs.

    Parameters
    ----------
    classification
        Classification the plan was derived from.
    requested
        Step ids named directly by the classification, de-duplicated.
    steps
        Dependency-respecting execution order.
    skipped
        Registered step ids that will not run.
    """

    classification: TicketClassification
    requested: tuple[str, ...]
    steps: tuple[PipelineStep, ...]
    skipped: tuple[str, ...]

    @property
    def step_ids(self) -> tuple[str, ...]:
        """Step ids in execution order."""
        return tuple(step.step_id for step in self.steps)


@dataclass(frozen=True)
class PipelineResult:
    """Aggregated outcome of a pipeline run or dry run."""

    success: bool
    step_results: tuple[StepResult, ...]
    classification: TicketClassification
    skipped_steps: tuple[str, ...] = ()
    planned_steps: tuple[str, ...] = ()
    error: str | None = None

    @classmethod
    def ok(
        cls,
        classification: TicketClassification,
        results: Sequence[StepResult],
        *,
        skipped: Sequence[str] = (),
        planned: Sequence[str] = (),
    ) -> PipelineResult:
        """
        Build a successful pipeline result.

        Returns
        -------
        PipelineResult
            Result with ``success=True``.
        """
        return cls(
            success=True,
            step_results=tuple(results),
            classification=classification,
            skipped_steps=tuple(skipped),
            planned_steps=tuple(planned),
        )

    @classmethod
    def failed(
        cls,
        classification: TicketClassification,
        results: Sequence[StepResult],
        error: str,
        *,
        skipped: Sequence[str] = (),
        planned: Sequence[str] = (),
    ) -> PipelineResult:
        """
        Build a failed pipeline result carrying the partial step results.

        Returns
        -------
        PipelineResult
            Result with ``success=False`` and a non-empty error.
        """
        return cls(
            success=False,
            step_results=tuple(results),
            classification=classification,
            skipped_steps=tuple(skipped),
            planned_steps=tuple(planned),
            error=error,
        )


class PipelineObserver(Protocol):
    """Receives lifecycle events from the executor; rendering lives here."""

    def on_plan_computed(self, plan: ExecutionPlan, state: RunState) -> None:
        """Plan resolved; ``state`` is PLANNED for dry runs, EXECUTING otherwise."""
        ...

    def on_step_started(self, step: PipelineStep, index: int, total: int) -> None:
        """Step ``index`` (1-based) of ``total`` is about to run."""
        ...

    def on_step_succeeded(self, step: PipelineStep, result: StepResult) -> None:
        """Step finished successfully."""
        ...

    def on_step_failed(self, step: PipelineStep, result: StepResult) -> None:
        """Step failed or raised; the run stops after this event."""
        ...

    def on_run_finished(self, result: PipelineResult, state: RunState) -> None:
        """Run reached a terminal state."""
        ...


@dataclass
class LoggingObserver:
    """Default observer that reports pipeline events through ``logging``."""

    logger: logging.Logger = field(default_factory=lambda: log)

    def on_plan_computed(self, plan: ExecutionPlan, state: RunState) -> None:
        """Log the resolved order and skipped steps."""
        self.logger.info(
            "Pipeline plan (%s): %s", state.value, " -> ".join(plan.step_ids) or "(empty)"
        )
        if plan.skipped:
            self.logger.info("Skipped steps: %s", ", ".join(plan.skipped))

    def on_step_started(self, step: PipelineStep, index: int, total: int) -> None:
        """Log step start."""
        self.logger.info("[%d/%d] %s (%s)", index, total, step.display_name, step.step_id)

    def on_step_succeeded(self, step: PipelineStep, result: StepResult) -> None:
        """Log step success."""
        self.logger.info("Step %s succeeded", result.step_id)

    def on_step_failed(self, step: PipelineStep, result: StepResult) -> None:
        """Log step failure."""
        self.logger.error("Step %s failed: %s", result.step_id, result.error)

    def on_run_finished(self, result: PipelineResult, state: RunState) -> None:
        """Log the terminal state."""
        self.logger.info("Pipeline %s (%d step results)", state.value, len(result.step_results))


__all__ = [
    "ExecutionPlan",
    "LoggingObserver",
    "PipelineObserver",
    "PipelineResult",
    "PipelineStep",
    "RunState",
    "StepMetadata",
    "StepResult",
    "step_metadata",
]
