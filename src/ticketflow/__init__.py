"""Ticket classification and dependency-ordered step pipelines backed by an AI assistant."""

__version__ = "0.1.0"
