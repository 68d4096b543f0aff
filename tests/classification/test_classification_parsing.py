"""Tests for parsing the classifier's JSON envelope."""

from __future__ import annotations

import pytest

from ticketflow.classification.models import Complexity, LayerScope, TicketType
from ticketflow.classification.parsing import (
    NO_SUMMARY,
    parse_classification,
    parse_complexity,
    parse_scope,
    parse_ticket_type,
)
from ticketflow.errors import ClassificationError
from tests._helpers.expect import expect_equal, expect_true

FENCED_OUTPUT = """Here is the classification:

```json
{
  "type": "BugFix",
  "scope": ["Api"],
  "complexity": "Simple",
  "steps": [
    {"stepId": "implement", "order": 2},
    {"stepId": "api-analysis", "order": 1, "required": false, "reason": "endpoint"}
  ],
  "tasks": ["Fix login endpoint"],
  "summary": "Login returns 500"
}
```
"""


def test_parse_fenced_envelope() -> None:
    """A fenced json block is parsed into a full classification."""
    classification = parse_classification(FENCED_OUTPUT)

    expect_equal(classification.type, TicketType.BUG_FIX, label="type")
    expect_equal(classification.scope, LayerScope.API, label="scope")
    expect_equal(classification.complexity, Complexity.SIMPLE, label="complexity")
    expect_equal(
        classification.ordered_step_ids(), ["api-analysis", "implement"], label="step order"
    )
    expect_equal(classification.tasks, ("Fix login endpoint",), label="tasks")
    expect_equal(classification.summary, "Login returns 500", label="summary")
    api_step = classification.steps[1]
    expect_equal(api_step.required, False, label="required flag")
    expect_equal(api_step.reason, "endpoint", label="reason")
    expect_equal(classification.steps[0].required, True, label="required default")


def test_parse_bare_object_inside_prose() -> None:
    """Without a fence, the outermost braces are used."""
    output = 'Sure! {"type": "docs", "steps": []} Hope that helps.'

    classification = parse_classification(output)

    expect_equal(classification.type, TicketType.DOCUMENTATION, label="type")
    expect_equal(classification.scope, LayerScope.ALL, label="missing scope means all")
    expect_equal(classification.complexity, Complexity.MEDIUM, label="default complexity")
    expect_equal(classification.summary, NO_SUMMARY, label="default summary")
    expect_equal(classification.steps, (), label="steps")


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("bug", TicketType.BUG_FIX),
        ("BugFix", TicketType.BUG_FIX),
        ("bug_fix", TicketType.BUG_FIX),
        ("feature", TicketType.NEW_FEATURE),
        ("Refactor", TicketType.REFACTORING),
        ("config", TicketType.CONFIGURATION),
        ("migration", TicketType.DATA_MIGRATION),
        ("something else", TicketType.NEW_FEATURE),
        (None, TicketType.NEW_FEATURE),
    ],
)
def test_lenient_ticket_type(raw: str | None, expected: TicketType) -> None:
    """Ticket types accept common spellings and default to NEW_FEATURE."""
    expect_equal(parse_ticket_type(raw), expected, label=repr(raw))


def test_lenient_scope() -> None:
    """Scope names combine into flags; unknown or empty scopes mean ALL."""
    expect_equal(parse_scope(["UI", "infra"]), LayerScope.FRONTEND | LayerScope.INFRASTRUCTURE)
    expect_equal(parse_scope(["contracts"]), LayerScope.SHARED, label="contracts alias")
    expect_equal(parse_scope([]), LayerScope.ALL, label="empty")
    expect_equal(parse_scope(["mystery"]), LayerScope.ALL, label="unknown")
    expect_equal(parse_scope(None), LayerScope.ALL, label="missing")


def test_lenient_complexity() -> None:
    """Complexity is case-insensitive and defaults to MEDIUM."""
    expect_equal(parse_complexity("EPIC"), Complexity.EPIC, label="epic")
    expect_equal(parse_complexity("huge"), Complexity.MEDIUM, label="unknown")


@pytest.mark.parametrize(
    "output",
    [
        "",
        "no json here",
        "```json\n{not valid}\n```",
        "[1, 2, 3]",
        '{"steps": [{"order": 1}]}',
    ],
)
def test_unparsable_output_raises(output: str) -> None:
    """Empty, malformed or invalid envelopes raise ClassificationError."""
    with pytest.raises(ClassificationError) as excinfo:
        parse_classification(output)

    expect_true(
        excinfo.value.problem_detail.code == "classification.invalid",
        message="classification problem code",
    )
