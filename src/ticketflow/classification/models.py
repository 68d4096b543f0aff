"""Ticket classification contracts shared by the classifier and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, IntFlag, StrEnum


class TicketType(StrEnum):
    """Kind of work a ticket asks for."""

    NEW_FEATURE = "new_feature"
    ENHANCEMENT = "enhancement"
    BUG_FIX = "bug_fix"
    REFACTORING = "refactoring"
    DOCUMENTATION = "documentation"
    CONFIGURATION = "configuration"
    DATA_MIGRATION = "data_migration"


class LayerScope(IntFlag):
    """Architectural layers touched by a ticket or a step."""

    NONE = 0
    DATA = 1
    API = 2
    FRONTEND = 4
    SHARED = 8
    INFRASTRUCTURE = 16
    ALL = DATA | API | FRONTEND | SHARED | INFRASTRUCTURE

    def describe(self) -> str:
        """
        Render the flag set as a stable, human-readable label.

        Returns
        -------
        str
            ``"all"``, ``"none"``, or member names joined with ``|``.
        """
        if self == LayerScope.ALL:
            return "all"
        names = [
            str(member.name).lower()
            for member in (
                LayerScope.DATA,
                LayerScope.API,
                LayerScope.FRONTEND,
                LayerScope.SHARED,
                LayerScope.INFRASTRUCTURE,
            )
            if member in self
        ]
        return "|".join(names) if names else "none"


class Complexity(IntEnum):
    """Estimated ticket size; ordinal so callers can compare levels."""

    TRIVIAL = 0
    SIMPLE = 1
    MEDIUM = 2
    COMPLEX = 3
    EPIC = 4


FALLBACK_STEP_IDS: tuple[str, ...] = (
    "data-analysis",
    "api-analysis",
    "frontend-analysis",
    "project-structure",
    "skill-mapping",
    "implement",
)


@dataclass(frozen=True)
class PlannedStep:
    """
    One entry of a classification's declared plan.

    Parameters
    ----------
    step_id
        Identifier of the requested step (e.g. ``"api-analysis"``).
    order
        Declared position; advisory only, the registry derives the real order.
    required
        Whether the classifier considered the step mandatory.
    reason
        Free-text rationale supplied by the classifier.
    """

    step_id: str
    order: int
    required: bool = True
    reason: str | None = None


@dataclass(frozen=True)
class TicketClassification:
    """
    Structured plan produced for a ticket.

    An empty ``steps`` tuple is valid and means the caller bypasses the normal
    plan, e.g. for ad hoc single-step runs.
    """

    type: TicketType
    scope: LayerScope
    complexity: Complexity
    steps: tuple[PlannedStep, ...]
    summary: str
    tasks: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        """Normalize sequence fields to tuples."""
        object.__setattr__(self, "steps", tuple(self.steps))
        object.__setattr__(self, "tasks", tuple(self.tasks))

    def ordered_step_ids(self) -> list[str]:
        """
        Return the requested step ids sorted by their declared order.

        Ties keep declaration order.

        Returns
        -------
        list[str]
            Step identifiers in declared order.
        """
        return [step.step_id for step in sorted(self.steps, key=lambda step: step.order)]

    def affects_layer(self, layer: LayerScope) -> bool:
        """
        Check whether every flag in ``layer`` is part of the classification scope.

        Returns
        -------
        bool
            True when the scope covers ``layer``.
        """
        return (self.scope & layer) == layer

    @classmethod
    def fallback(cls, summary: str) -> TicketClassification:
        """
        Deterministic plan used when classification fails: every analysis step.

        Returns
        -------
        TicketClassification
            Classification requesting all canonical steps with medium complexity.
        """
        return cls(
            type=TicketType.NEW_FEATURE,
            scope=LayerScope.ALL,
            complexity=Complexity.MEDIUM,
            steps=tuple(
                PlannedStep(step_id=step_id, order=index, reason="Fallback: all steps")
                for index, step_id in enumerate(FALLBACK_STEP_IDS, start=1)
            ),
            summary=summary,
        )

    @classmethod
    def ad_hoc(
        cls,
        summary: str,
        *,
        scope: LayerScope = LayerScope.FRONTEND,
    ) -> TicketClassification:
        """
        Plan-less classification for running a single step directly.

        Returns
        -------
        TicketClassification
            Simple enhancement carrying ``summary`` as its only task and no steps.
        """
        return cls(
            type=TicketType.ENHANCEMENT,
            scope=scope,
            complexity=Complexity.SIMPLE,
            steps=(),
            summary=summary,
            tasks=(summary,),
        )


__all__ = [
    "FALLBACK_STEP_IDS",
    "Complexity",
    "LayerScope",
    "PlannedStep",
    "TicketClassification",
    "TicketType",
]
