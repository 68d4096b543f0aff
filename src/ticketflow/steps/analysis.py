"""Analysis steps: one assistant prompt each, ordered through dependencies."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass

from ticketflow import prompts
from ticketflow.classification.models import LayerScope
from ticketflow.pipeline.context import StepContext
from ticketflow.steps.base import AssistantStep


@dataclass
class DataAnalysisStep(AssistantStep):
    step_id: str = "data-analysis"
    display_name: str = "Data/entity analysis"
    affected_layers: LayerScope = LayerScope.DATA
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.data_analysis_prompt(ctx)


@dataclass
class ApiAnalysisStep(AssistantStep):
    step_id: str = "api-analysis"
    display_name: str = "API/endpoint analysis"
    affected_layers: LayerScope = LayerScope.API
    dependencies: Sequence[str] = ("data-analysis",)

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.api_analysis_prompt(ctx)


@dataclass
class FrontendAnalysisStep(AssistantStep):
    step_id: str = "frontend-analysis"
    display_name: str = "Frontend analysis"
    affected_layers: LayerScope = LayerScope.FRONTEND
    dependencies: Sequence[str] = ("api-analysis",)

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.frontend_analysis_prompt(ctx)


@dataclass
class ProjectStructureStep(AssistantStep):
    step_id: str = "project-structure"
    display_name: str = "Project structure analysis"
    affected_layers: LayerScope = LayerScope.INFRASTRUCTURE
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.project_structure_prompt(ctx)


@dataclass
class SkillMappingStep(AssistantStep):
    step_id: str = "skill-mapping"
    display_name: str = "Skill mapping"
    affected_layers: LayerScope = LayerScope.ALL
    dependencies: Sequence[str] = ()

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.skill_mapping_prompt(ctx)


__all__ = [
    "ApiAnalysisStep",
    "DataAnalysisStep",
    "FrontendAnalysisStep",
    "ProjectStructureStep",
    "SkillMappingStep",
]
