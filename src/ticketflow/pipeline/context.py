"""Shared mutable context for a single pipeline run."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from ticketflow.classification.models import TicketClassification

_GITHUB_ISSUE_RE = re.compile(r"github\.com/([^/]+/[^/]+)/issues/(\d+)")


@dataclass
class StepContext:
    """
    Shared context passed by reference to every step of one run.

    Steps read the classification from here and accumulate state (tasks,
    metadata) for later steps. A context belongs to exactly one run.
    """

    ticket: str
    classification: TicketClassification | None = None
    current_step_index: int = 0
    skipped_steps: list[str] = field(default_factory=list)
    tasks: list[str] = field(default_factory=list)
    metadata: dict[str, object] = field(default_factory=dict)
    github_repo: str | None = field(default=None, init=False)
    github_issue_number: int | None = field(default=None, init=False)

    def __post_init__(self) -> None:
        """Parse GitHub issue coordinates from the ticket text."""
        match = _GITHUB_ISSUE_RE.search(self.ticket)
        if match is not None:
            self.github_repo = match.group(1)
            self.github_issue_number = int(match.group(2))

    @property
    def is_github_issue(self) -> bool:
        """True when the ticket references a GitHub issue URL."""
        return self.github_repo is not None and self.github_issue_number is not None

    @property
    def is_classified(self) -> bool:
        """True once a classification has been attached."""
        return self.classification is not None

    def attach_classification(self, classification: TicketClassification) -> None:
        """Attach a classification and adopt its task list when it has one."""
        self.classification = classification
        if classification.tasks:
            self.tasks[:] = classification.tasks


__all__ = ["StepContext"]
