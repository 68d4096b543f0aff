"""Tests for locating JSON inside assistant output."""

from __future__ import annotations

from ticketflow.assistant.envelope import extract_json_payload
from tests._helpers.expect import expect_equal


def test_fenced_block_wins() -> None:
    """A fenced json block is preferred over other braces."""
    output = 'noise {"a": 0}\n```JSON\n{"b": 1}\n```\ntrailing }'

    expect_equal(extract_json_payload(output), '{"b": 1}', label="payload")


def test_outermost_braces() -> None:
    """Without a fence the first-to-last brace span is returned."""
    output = 'Result: {"outer": {"inner": true}} done'

    expect_equal(extract_json_payload(output), '{"outer": {"inner": true}}', label="payload")


def test_raw_text_fallback() -> None:
    """Text without braces is returned stripped."""
    expect_equal(extract_json_payload("  RUNNING \n"), "RUNNING", label="payload")
