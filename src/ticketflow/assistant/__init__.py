"""Access to the external assistant process."""

from __future__ import annotations

from ticketflow.assistant.envelope import extract_json_payload
from ticketflow.assistant.runner import AssistantResult, AssistantRunner

__all__ = ["AssistantResult", "AssistantRunner", "extract_json_payload"]
