"""Common base for steps that hand their work to the assistant."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from ticketflow.assistant.runner import AssistantRunner
from ticketflow.classification.models import LayerScope
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import StepResult

log = logging.getLogger(__name__)


@dataclass
class AssistantStep:
    """
    Step that renders one prompt and runs it through the assistant.

    Subclasses override the identity fields with their own defaults and
    implement :meth:`render_prompt`; steps with a richer flow override
    :meth:`execute` and reuse :meth:`run_prompt`.
    """

    runner: AssistantRunner
    step_id: str = ""
    display_name: str = ""
    affected_layers: LayerScope = LayerScope.NONE
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        """Return the prompt sent to the assistant for this step."""
        raise NotImplementedError

    async def execute(self, ctx: StepContext, cancel: asyncio.Event | None = None) -> StepResult:
        """
        Run the rendered prompt and map the assistant outcome to a step result.

        Returns
        -------
        StepResult
            Ok when the assistant succeeded, failed with its error otherwise.
        """
        return await self.run_prompt(self.render_prompt(ctx), cancel)

    async def run_prompt(self, prompt: str, cancel: asyncio.Event | None = None) -> StepResult:
        """
        Send ``prompt`` to the assistant on behalf of this step.

        Returns
        -------
        StepResult
            Result tagged with this step's id.
        """
        result = await self.runner.run_async(prompt, cancel)
        if not result.success:
            log.error("%s failed: %s", self.display_name, result.error)
            return StepResult.failed(self.step_id, result.error)
        log.debug("%s finished in %.1fs", self.display_name, result.duration_s)
        return StepResult.ok(self.step_id)


__all__ = ["AssistantStep"]
