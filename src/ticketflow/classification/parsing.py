"""
Parse the classifier's JSON envelope into a :class:`TicketClassification`.

Enum-like fields are matched leniently: the assistant may answer with
``"BugFix"``, ``"bug_fix"`` or just ``"bug"``. Unknown values degrade to
sensible defaults instead of failing the whole classification.
"""

from __future__ import annotations

import json
import logging

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ticketflow.assistant.envelope import extract_json_payload
from ticketflow.classification.models import (
    Complexity,
    LayerScope,
    PlannedStep,
    TicketClassification,
    TicketType,
)
from ticketflow.errors import ClassificationError

log = logging.getLogger(__name__)

NO_SUMMARY = "No summary"

_TYPE_ALIASES: dict[str, TicketType] = {
    "newfeature": TicketType.NEW_FEATURE,
    "new_feature": TicketType.NEW_FEATURE,
    "feature": TicketType.NEW_FEATURE,
    "enhancement": TicketType.ENHANCEMENT,
    "bugfix": TicketType.BUG_FIX,
    "bug_fix": TicketType.BUG_FIX,
    "bug": TicketType.BUG_FIX,
    "fix": TicketType.BUG_FIX,
    "refactoring": TicketType.REFACTORING,
    "refactor": TicketType.REFACTORING,
    "documentation": TicketType.DOCUMENTATION,
    "docs": TicketType.DOCUMENTATION,
    "configuration": TicketType.CONFIGURATION,
    "config": TicketType.CONFIGURATION,
    "datamigration": TicketType.DATA_MIGRATION,
    "data_migration": TicketType.DATA_MIGRATION,
    "migration": TicketType.DATA_MIGRATION,
}

_SCOPE_ALIASES: dict[str, LayerScope] = {
    "data": LayerScope.DATA,
    "api": LayerScope.API,
    "frontend": LayerScope.FRONTEND,
    "ui": LayerScope.FRONTEND,
    "shared": LayerScope.SHARED,
    "contracts": LayerScope.SHARED,
    "infrastructure": LayerScope.INFRASTRUCTURE,
    "infra": LayerScope.INFRASTRUCTURE,
}

_COMPLEXITY_ALIASES: dict[str, Complexity] = {
    "trivial": Complexity.TRIVIAL,
    "simple": Complexity.SIMPLE,
    "medium": Complexity.MEDIUM,
    "complex": Complexity.COMPLEX,
    "epic": Complexity.EPIC,
}


class PlannedStepPayload(BaseModel):
    """One ``steps`` entry of the classifier envelope."""

    model_config = ConfigDict(populate_by_name=True)

    step_id: str = Field(alias="stepId", min_length=1)
    order: int = 0
    required: bool = True
    reason: str | None = None


class ClassificationPayload(BaseModel):
    """Raw classifier envelope before enum mapping."""

    type: str | None = None
    scope: list[str] | None = None
    complexity: str | None = None
    steps: list[PlannedStepPayload] = Field(default_factory=list)
    tasks: list[str] | None = None
    summary: str | None = None


def parse_ticket_type(value: str | None) -> TicketType:
    """
    Map a loosely spelled ticket type onto :class:`TicketType`.

    Returns
    -------
    TicketType
        Matching member, ``NEW_FEATURE`` when unknown or missing.
    """
    if not value:
        return TicketType.NEW_FEATURE
    return _TYPE_ALIASES.get(value.strip().lower(), TicketType.NEW_FEATURE)


def parse_scope(values: list[str] | None) -> LayerScope:
    """
    Combine scope names into a :class:`LayerScope` flag set.

    Returns
    -------
    LayerScope
        Union of recognized layers; ``ALL`` when none are recognized.
    """
    scope = LayerScope.NONE
    for value in values or ():
        scope |= _SCOPE_ALIASES.get(value.strip().lower(), LayerScope.NONE)
    return scope if scope != LayerScope.NONE else LayerScope.ALL


def parse_complexity(value: str | None) -> Complexity:
    """
    Map a complexity label onto :class:`Complexity`.

    Returns
    -------
    Complexity
        Matching member, ``MEDIUM`` when unknown or missing.
    """
    if not value:
        return Complexity.MEDIUM
    return _COMPLEXITY_ALIASES.get(value.strip().lower(), Complexity.MEDIUM)


def parse_classification(output: str) -> TicketClassification:
    """
    Build a classification from raw assistant output.

    Parameters
    ----------
    output
        Assistant stdout, possibly wrapping the envelope in prose or a fenced block.

    Returns
    -------
    TicketClassification
        Parsed and normalized classification.

    Raises
    ------
    ClassificationError
        If no valid JSON object can be extracted or it fails validation.
    """
    payload_text = extract_json_payload(output)
    if not payload_text:
        message = "Empty classification output"
        raise ClassificationError.from_message(message)
    try:
        raw = json.loads(payload_text)
    except json.JSONDecodeError as exc:
        message = f"Invalid JSON in classification output: {exc}"
        raise ClassificationError.from_message(message) from exc
    if not isinstance(raw, dict):
        message = f"Classification JSON must be an object, got {type(raw).__name__}"
        raise ClassificationError.from_message(message)
    try:
        payload = ClassificationPayload.model_validate(raw)
    except ValidationError as exc:
        message = f"Classification JSON failed validation: {exc.error_count()} error(s)"
        raise ClassificationError.from_message(message) from exc

    log.debug("Parsed classification envelope with %d step(s)", len(payload.steps))
    return TicketClassification(
        type=parse_ticket_type(payload.type),
        scope=parse_scope(payload.scope),
        complexity=parse_complexity(payload.complexity),
        steps=tuple(
            PlannedStep(
                step_id=step.step_id,
                order=step.order,
                required=step.required,
                reason=step.reason,
            )
            for step in payload.steps
        ),
        summary=payload.summary or NO_SUMMARY,
        tasks=tuple(payload.tasks or ()),
    )


__all__ = [
    "NO_SUMMARY",
    "ClassificationPayload",
    "PlannedStepPayload",
    "parse_classification",
    "parse_complexity",
    "parse_scope",
    "parse_ticket_type",
]
