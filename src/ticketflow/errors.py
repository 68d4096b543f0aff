"""Shared error taxonomy and Problem Details helpers."""

from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4


def _correlation_id() -> str:
    return str(uuid4())


@dataclass(frozen=True)
class ProblemDetail:
    """
    RFC 9457 Problem Details payload without the HTTP status member.

    ``instance`` is a per-occurrence correlation id so a logged problem can be
    matched to the CLI run that produced it.
    """

    type: str
    title: str
    detail: str
    instance: str = field(default_factory=_correlation_id)
    code: str | None = None
    extras: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """
        Serialize to a JSON-friendly dict.

        Returns
        -------
        dict[str, Any]
            Problem detail payload as a plain dictionary.
        """
        payload: dict[str, Any] = {
            "type": self.type,
            "title": self.title,
            "detail": self.detail,
            "instance": self.instance,
        }
        if self.code is not None:
            payload["code"] = self.code
        if self.extras:
            payload["extras"] = self.extras
        return payload


def problem(
    code: str,
    title: str,
    detail: str,
    *,
    extras: dict[str, Any] | None = None,
) -> ProblemDetail:
    """
    Create a ProblemDetail with a ticketflow type URI and fresh correlation id.

    Parameters
    ----------
    code
        Stable problem code (e.g., 'pipeline.cyclic_dependency').
    title
        Human-readable error summary.
    detail
        Detailed description of the error.
    extras
        Optional structured context for diagnostics.

    Returns
    -------
    ProblemDetail
        Structured problem payload.
    """
    return ProblemDetail(
        type=f"https://problems.ticketflow.dev/{code}",
        title=title,
        detail=detail,
        code=code,
        extras=extras or {},
    )


def log_problem(logger: logging.Logger | logging.LoggerAdapter, detail: ProblemDetail) -> None:
    """Emit a Problem Detail as a structured error log."""
    logger.error(json.dumps(detail.to_dict()))


class ProblemError(Exception):
    """Base exception carrying a ProblemDetail payload."""

    def __init__(self, detail: ProblemDetail) -> None:
        super().__init__(detail.detail)
        self.problem_detail = detail


class PipelineError(ProblemError):
    """Pipeline planning or execution failure."""


class CyclicDependencyError(PipelineError):
    """Step dependencies form a cycle; the registry configuration is defective."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        path = " -> ".join(self.cycle)
        super().__init__(
            problem(
                code="pipeline.cyclic_dependency",
                title="Cyclic step dependency",
                detail=f"Cyclic dependency detected at step '{self.cycle[-1]}': {path}",
                extras={"cycle": list(self.cycle)},
            )
        )


class ClassificationError(ProblemError):
    """Assistant output could not be turned into a ticket classification."""

    @classmethod
    def from_message(cls, message: str) -> ClassificationError:
        """
        Build a classification error from a plain message.

        Returns
        -------
        ClassificationError
            Error wrapping a ``classification.invalid`` problem detail.
        """
        return cls(
            problem(
                code="classification.invalid",
                title="Invalid classification payload",
                detail=message,
            )
        )


class ConfigError(ProblemError):
    """Configuration file or environment override is invalid."""

    @classmethod
    def from_message(cls, message: str, *, source: str | None = None) -> ConfigError:
        """
        Build a configuration error from a plain message.

        Returns
        -------
        ConfigError
            Error wrapping a ``config.invalid`` problem detail.
        """
        return cls(
            problem(
                code="config.invalid",
                title="Invalid configuration",
                detail=message,
                extras={"source": source} if source else None,
            )
        )


__all__ = [
    "ClassificationError",
    "ConfigError",
    "CyclicDependencyError",
    "PipelineError",
    "ProblemDetail",
    "ProblemError",
    "log_problem",
    "problem",
]
