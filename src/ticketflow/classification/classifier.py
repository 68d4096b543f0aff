"""Ticket classifier backed by the external assistant."""

from __future__ import annotations

import asyncio
import logging

from ticketflow.assistant.runner import AssistantRunner
from ticketflow.classification.models import TicketClassification
from ticketflow.classification.parsing import parse_classification
from ticketflow.errors import ClassificationError
from ticketflow.pipeline.context import StepContext
from ticketflow.prompts import classifier_prompt

log = logging.getLogger(__name__)

FALLBACK_ASSISTANT_FAILED = "Fallback: classification failed"


class TicketClassifier:
    """
    Turn a ticket into a :class:`TicketClassification`.

    Classification never raises for assistant or parsing problems; both fall
    back to :meth:`TicketClassification.fallback`, which plans every analysis
    step.
    """

    def __init__(self, runner: AssistantRunner) -> None:
        self.runner = runner

    async def classify(
        self,
        context: StepContext,
        cancel: asyncio.Event | None = None,
    ) -> TicketClassification:
        """
        Classify the context's ticket and attach the result to the context.

        Parameters
        ----------
        context
            Run context; receives the classification and its task list.
        cancel
            Optional cancellation signal forwarded to the assistant runner.

        Returns
        -------
        TicketClassification
            Parsed classification, or the fallback plan.
        """
        result = await self.runner.run_async(classifier_prompt(context), cancel)
        if not result.success:
            log.warning("Classification failed: %s. Using fallback plan.", result.error)
            classification = TicketClassification.fallback(FALLBACK_ASSISTANT_FAILED)
        else:
            try:
                classification = parse_classification(result.output)
            except ClassificationError as exc:
                log.warning("Could not parse classification: %s. Using fallback plan.", exc)
                classification = TicketClassification.fallback(f"Fallback: {exc}")
            else:
                log.info(
                    "Classified ticket as %s (scope=%s, complexity=%s, %d step(s))",
                    classification.type.value,
                    classification.scope.describe(),
                    classification.complexity.name.lower(),
                    len(classification.steps),
                )
        context.attach_classification(classification)
        return classification


__all__ = ["FALLBACK_ASSISTANT_FAILED", "TicketClassifier"]
