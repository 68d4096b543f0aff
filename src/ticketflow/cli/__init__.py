"""Command-line interface for ticketflow."""
