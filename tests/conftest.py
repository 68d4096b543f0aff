"""Pytest configuration for the ticketflow test suite."""

from __future__ import annotations

import pytest

from tests._helpers.fakes import RecordingObserver, ScriptedRunner


@pytest.fixture
def call_log() -> list[str]:
    """Shared log that fake steps append their ids to."""
    return []


@pytest.fixture
def observer() -> RecordingObserver:
    """Observer collecting executor events."""
    return RecordingObserver()


@pytest.fixture
def scripted_runner() -> ScriptedRunner:
    """Assistant runner double that succeeds with empty output by default."""
    return ScriptedRunner()
