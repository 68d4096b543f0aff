"""Dynamic pipeline executor driven by a ticket classification."""

from __future__ import annotations

import asyncio
import logging

from ticketflow.classification.models import TicketClassification
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import (
    ExecutionPlan,
    LoggingObserver,
    PipelineObserver,
    PipelineResult,
    PipelineStep,
    RunState,
    StepResult,
)
from ticketflow.pipeline.registry import StepRegistry

log = logging.getLogger(__name__)


def _describe_fault(exc: Exception) -> str:
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__


class PipelineExecutor:
    """
    Run the steps selected by a classification in dependency order.

    Steps run strictly one after another; the first failure, whether an
    unsuccessful result or a raised exception, stops the run. Dry runs share
    the planning logic but never invoke a step.
    """

    def __init__(self, registry: StepRegistry, observer: PipelineObserver | None = None) -> None:
        self.registry = registry
        self.observer: PipelineObserver = observer or LoggingObserver()

    def plan(self, classification: TicketClassification) -> ExecutionPlan:
        """
        Resolve the execution order and skipped steps for a classification.

        Returns
        -------
        ExecutionPlan
            Requested ids, ordered steps, and skipped step ids.

        Raises
        ------
        CyclicDependencyError
            If the requested steps reach a dependency cycle.
        """
        requested: list[str] = []
        seen: set[str] = set()
        for step_id in classification.ordered_step_ids():
            if step_id.casefold() not in seen:
                seen.add(step_id.casefold())
                requested.append(step_id)

        steps = self.registry.build_execution_order(requested)
        # A dependency pulled into the order runs, so it is never reported as skipped.
        scheduled = {step.step_id.casefold() for step in steps} | seen
        skipped = [
            step_id
            for step_id in self.registry.get_all_step_ids()
            if step_id.casefold() not in scheduled
        ]
        return ExecutionPlan(
            classification=classification,
            requested=tuple(requested),
            steps=tuple(steps),
            skipped=tuple(skipped),
        )

    def dry_run(self, classification: TicketClassification) -> PipelineResult:
        """
        Compute the plan without invoking any step.

        Returns
        -------
        PipelineResult
            Successful result with no step results, the planned order, and skipped ids.
        """
        plan = self.plan(classification)
        self.observer.on_plan_computed(plan, RunState.PLANNED)
        result = PipelineResult.ok(
            classification,
            [],
            skipped=plan.skipped,
            planned=plan.step_ids,
        )
        self.observer.on_run_finished(result, RunState.PLANNED)
        return result

    async def execute(
        self,
        classification: TicketClassification,
        context: StepContext,
        cancel: asyncio.Event | None = None,
    ) -> PipelineResult:
        """
        Execute the planned steps sequentially against the shared context.

        Parameters
        ----------
        classification
            Plan naming the requested steps.
        context
            Context owned by this run; steps read and mutate it.
        cancel
            Optional cancellation signal handed to every step.

        Returns
        -------
        PipelineResult
            Ok when every step succeeded, otherwise Failed with the partial results.
        """
        plan = self.plan(classification)
        context.classification = classification
        context.skipped_steps.extend(plan.skipped)
        self.observer.on_plan_computed(plan, RunState.EXECUTING)

        results: list[StepResult] = []
        total = len(plan.steps)
        for index, step in enumerate(plan.steps, start=1):
            context.current_step_index = index
            self.observer.on_step_started(step, index, total)
            if cancel is not None and cancel.is_set():
                result = StepResult.failed(step.step_id, "cancelled before start")
            else:
                result = await self._invoke(step, context, cancel)
            results.append(result)

            if not result.success:
                self.observer.on_step_failed(step, result)
                failed = PipelineResult.failed(
                    classification,
                    results,
                    f"Step '{step.step_id}' failed: {result.error}",
                    skipped=plan.skipped,
                    planned=plan.step_ids,
                )
                self.observer.on_run_finished(failed, RunState.FAILED)
                return failed
            self.observer.on_step_succeeded(step, result)

        succeeded = PipelineResult.ok(
            classification,
            results,
            skipped=plan.skipped,
            planned=plan.step_ids,
        )
        self.observer.on_run_finished(succeeded, RunState.SUCCEEDED)
        return succeeded

    async def run_step(
        self,
        step_id: str,
        context: StepContext,
        cancel: asyncio.Event | None = None,
    ) -> StepResult:
        """
        Run one registered step outside of any plan.

        Returns
        -------
        StepResult
            The step's result, or a failed result for unknown ids and raised faults.
        """
        step = self.registry.get(step_id)
        if step is None:
            log.warning("Step '%s' is not registered.", step_id)
            return StepResult.failed(step_id, f"Step '{step_id}' is not registered")
        context.current_step_index = 1
        self.observer.on_step_started(step, 1, 1)
        result = await self._invoke(step, context, cancel)
        if result.success:
            self.observer.on_step_succeeded(step, result)
        else:
            self.observer.on_step_failed(step, result)
        return result

    @staticmethod
    async def _invoke(
        step: PipelineStep,
        context: StepContext,
        cancel: asyncio.Event | None,
    ) -> StepResult:
        try:
            return await step.execute(context, cancel)
        except Exception as exc:
            log.exception("Step '%s' raised an exception", step.step_id)
            return StepResult.failed(step.step_id, _describe_fault(exc))


__all__ = ["PipelineExecutor"]
