"""Step pipeline engine: registry, shared context, and executor."""

from __future__ import annotations

from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import (
    ExecutionPlan,
    LoggingObserver,
    PipelineObserver,
    PipelineResult,
    PipelineStep,
    RunState,
    StepMetadata,
    StepResult,
)
from ticketflow.pipeline.executor import PipelineExecutor
from ticketflow.pipeline.registry import StepRegistry, build_registry

__all__ = [
    "ExecutionPlan",
    "LoggingObserver",
    "PipelineExecutor",
    "PipelineObserver",
    "PipelineResult",
    "PipelineStep",
    "RunState",
    "StepContext",
    "StepMetadata",
    "StepRegistry",
    "StepResult",
    "build_registry",
]
