"""Concrete pipeline steps and the default registry."""

from __future__ import annotations

from ticketflow.assistant.runner import AssistantRunner
from ticketflow.config.models import TicketflowConfig
from ticketflow.pipeline.core import PipelineStep
from ticketflow.pipeline.registry import StepRegistry, build_registry
from ticketflow.steps.analysis import (
    ApiAnalysisStep,
    DataAnalysisStep,
    FrontendAnalysisStep,
    ProjectStructureStep,
    SkillMappingStep,
)
from ticketflow.steps.base import AssistantStep
from ticketflow.steps.implement import FastImplementStep, ImplementStep
from ticketflow.steps.validate import VisualValidateStep


def default_steps(runner: AssistantRunner, config: TicketflowConfig) -> list[PipelineStep]:
    """
    Instantiate every built-in step in registration order.

    Returns
    -------
    list[PipelineStep]
        Analysis, implementation and validation steps sharing ``runner``.
    """
    return [
        DataAnalysisStep(runner),
        ApiAnalysisStep(runner),
        FrontendAnalysisStep(runner),
        ProjectStructureStep(runner),
        SkillMappingStep(runner),
        ImplementStep(runner),
        FastImplementStep(runner),
        VisualValidateStep(runner, validation=config.validation),
    ]


def build_default_registry(
    runner: AssistantRunner,
    config: TicketflowConfig | None = None,
) -> StepRegistry:
    """
    Build the registry holding every built-in step.

    Parameters
    ----------
    runner
        Assistant runner shared by all steps.
    config
        Configuration supplying validation settings; defaults when omitted.

    Returns
    -------
    StepRegistry
        Registry ready to back a :class:`~ticketflow.pipeline.PipelineExecutor`.
    """
    return build_registry(default_steps(runner, config or TicketflowConfig.default()))


__all__ = [
    "ApiAnalysisStep",
    "AssistantStep",
    "DataAnalysisStep",
    "FastImplementStep",
    "FrontendAnalysisStep",
    "ImplementStep",
    "ProjectStructureStep",
    "SkillMappingStep",
    "VisualValidateStep",
    "build_default_registry",
    "default_steps",
]
