"""Tests for the assistant-backed ticket classifier."""

from __future__ import annotations

import asyncio

from ticketflow.classification.classifier import FALLBACK_ASSISTANT_FAILED, TicketClassifier
from ticketflow.classification.models import FALLBACK_STEP_IDS, LayerScope, TicketType
from ticketflow.pipeline.context import StepContext
from tests._helpers.expect import expect_equal, expect_in, expect_true
from tests._helpers.fakes import ScriptedRunner, failed_result, ok_result

GOOD_OUTPUT = """```json
{"type": "enhancement", "scope": ["Frontend"], "complexity": "trivial",
 "steps": [{"stepId": "frontend-analysis", "order": 1}, {"stepId": "implement", "order": 2}],
 "tasks": ["Change button colour"], "summary": "Button colour"}
```"""


def test_successful_classification_is_attached() -> None:
    """A parsed classification is returned, attached and its tasks adopted."""
    runner = ScriptedRunner([ok_result(GOOD_OUTPUT)])
    context = StepContext(ticket="Change the button colour")

    classification = asyncio.run(TicketClassifier(runner).classify(context))

    expect_equal(classification.type, TicketType.ENHANCEMENT, label="type")
    expect_equal(classification.scope, LayerScope.FRONTEND, label="scope")
    expect_true(context.classification is classification, message="attached to context")
    expect_equal(context.tasks, ["Change button colour"], label="tasks adopted")
    expect_in("Change the button colour", runner.prompts[0], label="prompt carries ticket")


def test_assistant_failure_falls_back() -> None:
    """A failed assistant call produces the fallback plan."""
    runner = ScriptedRunner([failed_result("binary missing")])
    context = StepContext(ticket="anything")

    classification = asyncio.run(TicketClassifier(runner).classify(context))

    expect_equal(classification.summary, FALLBACK_ASSISTANT_FAILED, label="summary")
    expect_equal(tuple(classification.ordered_step_ids()), FALLBACK_STEP_IDS, label="steps")
    expect_true(context.classification is classification, message="fallback attached")


def test_parse_failure_falls_back_with_reason() -> None:
    """Unparsable output produces the fallback plan naming the parse problem."""
    runner = ScriptedRunner([ok_result("I could not decide, sorry.")])
    context = StepContext(ticket="anything")

    classification = asyncio.run(TicketClassifier(runner).classify(context))

    expect_true(classification.summary.startswith("Fallback: "), message="fallback summary")
    expect_equal(tuple(classification.ordered_step_ids()), FALLBACK_STEP_IDS, label="steps")
