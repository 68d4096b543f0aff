"""Configuration models for the assistant runner, visual validation, and the CLI."""

from ticketflow.config.models import AssistantConfig, TicketflowConfig, ValidationConfig

__all__ = ["AssistantConfig", "TicketflowConfig", "ValidationConfig"]
