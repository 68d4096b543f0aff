"""Implementation steps that act on the collected task list."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ticketflow import prompts
from ticketflow.classification.models import LayerScope
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import StepResult
from ticketflow.steps.base import AssistantStep

log = logging.getLogger(__name__)

MANUAL_VALIDATION_KEY = "manual_validation"


@dataclass
class ImplementStep(AssistantStep):
    """
    Implement every task in one assistant call.

    Data-related tasks trigger a follow-up seeding prompt; a failed seeding
    call is logged and does not fail the step.
    """

    step_id: str = "implement"
    display_name: str = "Implementation"
    affected_layers: LayerScope = LayerScope.ALL
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.implement_all_tasks_prompt(ctx)

    async def execute(self, ctx: StepContext, cancel: asyncio.Event | None = None) -> StepResult:
        """
        Implement all tasks, then seed data for data-related ones.

        Returns
        -------
        StepResult
            Ok carrying the implemented tasks, or the assistant failure.
        """
        if not ctx.tasks:
            log.warning("No tasks to implement.")
            return StepResult.ok(self.step_id)

        log.info("Implementing %d task(s)", len(ctx.tasks))
        result = await self.run_prompt(self.render_prompt(ctx), cancel)
        if not result.success:
            return result

        data_tasks = [task for task in ctx.tasks if prompts.is_data_task(task)]
        if data_tasks:
            log.info("Creating seed data for %d data task(s)", len(data_tasks))
            seeding = await self.runner.run_async(prompts.seeding_prompt(ctx), cancel)
            if not seeding.success:
                log.warning("Seeding failed: %s", seeding.error)

        return StepResult.ok(self.step_id, ctx.tasks)


@dataclass
class FastImplementStep(AssistantStep):
    """Analyze and implement all tasks in a single assistant call."""

    step_id: str = "fast-implement"
    display_name: str = "Fast implementation"
    affected_layers: LayerScope = LayerScope.ALL
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.fast_implement_prompt(ctx)

    async def execute(self, ctx: StepContext, cancel: asyncio.Event | None = None) -> StepResult:
        """
        Implement everything at once and flag frontend work for manual review.

        Returns
        -------
        StepResult
            Ok carrying the implemented tasks, or the assistant failure.
        """
        if not ctx.tasks:
            log.warning("No tasks to implement.")
            return StepResult.ok(self.step_id)

        log.info("Implementing %d task(s) in one pass", len(ctx.tasks))
        result = await self.run_prompt(self.render_prompt(ctx), cancel)
        if not result.success:
            return result

        scope = ctx.classification.scope if ctx.classification is not None else LayerScope.ALL
        if LayerScope.FRONTEND in scope:
            ctx.metadata[MANUAL_VALIDATION_KEY] = True
            log.info("Frontend changes made: start the application and verify them manually.")
        return StepResult.ok(self.step_id, ctx.tasks)


__all__ = ["MANUAL_VALIDATION_KEY", "FastImplementStep", "ImplementStep"]
