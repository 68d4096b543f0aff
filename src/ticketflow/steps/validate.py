"""Visual validation: start the application, wait for it, and check the UI."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ticketflow import prompts
from ticketflow.assistant.envelope import extract_json_payload
from ticketflow.classification.models import LayerScope
from ticketflow.config.models import ValidationConfig
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import StepResult
from ticketflow.steps.base import AssistantStep

log = logging.getLogger(__name__)

VISUAL_VALIDATION_KEY = "visual_validation"


class ValidationReport(BaseModel):
    """Verdict envelope returned by the visual validation prompt."""

    model_config = ConfigDict(populate_by_name=True)

    status: str = "unknown"
    app_running: bool = Field(False, alias="appRunning")
    screenshot_taken: bool = Field(False, alias="screenshotTaken")
    changes_visible: bool | None = Field(None, alias="changesVisible")
    issues: list[str] = Field(default_factory=list)
    summary: str = ""

    @property
    def passed(self) -> bool:
        """True when the assistant reported ``status == "success"``."""
        return self.status == "success"


def parse_validation_report(output: str) -> ValidationReport:
    """
    Parse the validation envelope, degrading to a failed report.

    Parameters
    ----------
    output
        Raw assistant stdout.

    Returns
    -------
    ValidationReport
        Parsed report, or a ``status="failed"`` report when parsing fails.
    """
    if not output.strip():
        return ValidationReport(
            status="failed",
            issues=["No output received"],
            summary="Validation failed",
        )
    try:
        return ValidationReport.model_validate_json(extract_json_payload(output))
    except ValidationError as exc:
        log.debug("Validation envelope rejected: %s", exc)
        return ValidationReport(
            status="failed",
            issues=["Could not parse validation result"],
            summary=output.strip(),
        )


@dataclass
class VisualValidateStep(AssistantStep):
    """
    Start the application, poll until it is reachable, then validate the UI.

    The parsed report is stored in ``ctx.metadata["visual_validation"]``.
    """

    step_id: str = "visual-validate"
    display_name: str = "Visual validation"
    affected_layers: LayerScope = LayerScope.FRONTEND
    dependencies: Sequence[str] = ()
    validation: ValidationConfig = field(default_factory=ValidationConfig)

    def render_prompt(self, ctx: StepContext) -> str:
        return prompts.visual_validation_prompt(ctx)

    async def execute(self, ctx: StepContext, cancel: asyncio.Event | None = None) -> StepResult:
        """
        Run the start, readiness and validation phases in order.

        Returns
        -------
        StepResult
            Ok only when the report status is ``"success"``.
        """
        command = self.validation.app_start_command
        if not command:
            return StepResult.failed(self.step_id, "No application start command configured")

        log.info("Starting application: %s", command)
        started = await self.runner.run_shell_async(command, cancel)
        if not started.success:
            log.warning("Application could not be started: %s", started.error)
            return StepResult.failed(
                self.step_id, f"Application could not be started: {started.error}"
            )

        if not await self._wait_until_ready(cancel):
            return StepResult.failed(self.step_id, "Application not ready")

        outcome = await self.runner.run_async(self.render_prompt(ctx), cancel)
        if not outcome.success:
            log.error("Visual validation failed: %s", outcome.error)
            return StepResult.failed(self.step_id, outcome.error)

        report = parse_validation_report(outcome.output)
        ctx.metadata[VISUAL_VALIDATION_KEY] = report
        log.info("Visual validation %s: %s", report.status, report.summary)
        for issue in report.issues:
            log.warning("Validation issue: %s", issue)
        if report.passed:
            return StepResult.ok(self.step_id)
        return StepResult.failed(self.step_id, report.summary or f"status {report.status}")

    async def _wait_until_ready(self, cancel: asyncio.Event | None) -> bool:
        attempts = self.validation.poll_attempts
        for attempt in range(1, attempts + 1):
            log.info("Checking application status (attempt %d/%d)", attempt, attempts)
            check = await self.runner.run_async(prompts.readiness_check_prompt(), cancel)
            if check.success and prompts.READY_MARKER in check.output.upper():
                log.info("Application is ready")
                return True
            if cancel is not None and cancel.is_set():
                return False
            if attempt < attempts:
                await asyncio.sleep(self.validation.poll_interval_s)
        log.warning("Application not ready after %d attempt(s)", attempts)
        return False


__all__ = [
    "VISUAL_VALIDATION_KEY",
    "ValidationReport",
    "VisualValidateStep",
    "parse_validation_report",
]
