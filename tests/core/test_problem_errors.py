"""Tests for the problem-detail error taxonomy."""

from __future__ import annotations

import json
import logging

import pytest

from ticketflow.errors import (
    ClassificationError,
    ConfigError,
    CyclicDependencyError,
    PipelineError,
    ProblemError,
    log_problem,
    problem,
)
from tests._helpers.expect import (
    expect_equal,
    expect_false,
    expect_in,
    expect_is_instance,
    expect_true,
)


def test_problem_payload_shape() -> None:
    """problem() builds a typed payload with a correlation id."""
    detail = problem("cli.failure", "CLI command failed", "boom", extras={"command": "smart"})
    payload = detail.to_dict()

    expect_equal(payload["type"], "https://problems.ticketflow.dev/cli.failure", label="type")
    expect_equal(payload["detail"], "boom", label="detail")
    expect_equal(payload["extras"], {"command": "smart"}, label="extras")
    expect_true(payload["instance"], message="correlation id present")
    expect_equal(payload["code"], "cli.failure", label="code")
    expect_false("status" in payload, message="no HTTP status member")


def test_each_problem_gets_its_own_instance_id() -> None:
    """Two problems built from the same inputs are still distinguishable in logs."""
    first = problem("x.y", "Title", "Detail")
    second = problem("x.y", "Title", "Detail")

    expect_false(first.instance == second.instance, message="instance ids differ")


def test_cyclic_dependency_error_hierarchy() -> None:
    """Cycle errors are pipeline problems carrying the cycle path."""
    exc = CyclicDependencyError(["a", "b", "a"])

    expect_is_instance(exc, PipelineError, label="hierarchy")
    expect_is_instance(exc, ProblemError, label="hierarchy")
    expect_equal(exc.cycle, ("a", "b", "a"), label="cycle")
    expect_equal(exc.problem_detail.extras["cycle"], ["a", "b", "a"], label="extras")
    expect_equal(str(exc), "Cyclic dependency detected at step 'a': a -> b -> a", label="message")


def test_from_message_factories() -> None:
    """Classification and config errors expose stable problem codes."""
    expect_equal(
        ClassificationError.from_message("bad").problem_detail.code,
        "classification.invalid",
        label="classification code",
    )
    config_error = ConfigError.from_message("bad", source="cfg.toml")
    expect_equal(config_error.problem_detail.extras, {"source": "cfg.toml"}, label="source")


def test_log_problem_emits_json(caplog: pytest.LogCaptureFixture) -> None:
    """log_problem writes the payload as one JSON error record."""
    logger = logging.getLogger("ticketflow.tests.errors")
    with caplog.at_level(logging.ERROR, logger="ticketflow.tests.errors"):
        log_problem(logger, problem("x.y", "Title", "Detail"))

    record = caplog.records[-1]
    expect_equal(record.levelno, logging.ERROR, label="level")
    expect_in("Detail", json.loads(record.getMessage())["detail"], label="payload detail")
