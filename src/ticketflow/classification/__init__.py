"""Ticket classification models and envelope parsing."""

from __future__ import annotations

from ticketflow.classification.models import (
    FALLBACK_STEP_IDS,
    Complexity,
    LayerScope,
    PlannedStep,
    TicketClassification,
    TicketType,
)
from ticketflow.classification.parsing import parse_classification

__all__ = [
    "FALLBACK_STEP_IDS",
    "Complexity",
    "LayerScope",
    "PlannedStep",
    "TicketClassification",
    "TicketType",
    "parse_classification",
]
