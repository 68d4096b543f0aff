"""CLI entrypoint for ticket classification and pipeline runs."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TextIO

from ticketflow.assistant.runner import AssistantRunner
from ticketflow.classification.classifier import TicketClassifier
from ticketflow.classification.models import LayerScope, TicketClassification
from ticketflow.config.models import TicketflowConfig
from ticketflow.errors import ProblemError, log_problem, problem
from ticketflow.pipeline.context import StepContext
from ticketflow.pipeline.core import (
    ExecutionPlan,
    PipelineResult,
    PipelineStep,
    RunState,
    StepResult,
)
from ticketflow.pipeline.executor import PipelineExecutor
from ticketflow.pipeline.registry import StepRegistry
from ticketflow.steps import build_default_registry

LOG = logging.getLogger("ticketflow.cli")

CommandHandler = Callable[..., int]

DEFAULT_VALIDATION_DESCRIPTION = "Visually validate the running application"


# ---------------------------------------------------------------------------
# Argument parsing / logging setup
# ---------------------------------------------------------------------------


def _setup_logging(verbosity: int) -> None:
    """
    Configure logging based on -v/--verbose count.

    0 -> WARNING, 1 -> INFO, 2+ -> DEBUG.
    """
    if verbosity <= 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def _add_json_flag(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--json",
        dest="output_json",
        action="store_true",
        help="Output as JSON for machine consumption.",
    )


def _register_run_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    p_smart = subparsers.add_parser(
        "smart",
        help="Classify a ticket and run the steps it needs.",
    )
    p_smart.add_argument("ticket", help="Ticket description or GitHub issue URL.")
    p_smart.add_argument(
        "--dry-run",
        action="store_true",
        help="Show the execution plan without running any step.",
    )
    p_smart.set_defaults(func=_cmd_smart)

    p_classify = subparsers.add_parser(
        "classify",
        help="Classify a ticket and show the resulting plan.",
    )
    p_classify.add_argument("ticket", help="Ticket description or GitHub issue URL.")
    _add_json_flag(p_classify)
    p_classify.set_defaults(func=_cmd_classify)

    p_fast = subparsers.add_parser(
        "fast",
        help="Implement a small frontend change in a single assistant call.",
    )
    p_fast.add_argument("ticket", help="Description of the change.")
    p_fast.set_defaults(func=_cmd_fast)

    p_validate = subparsers.add_parser(
        "validate",
        help="Start the application and validate it visually.",
    )
    p_validate.add_argument(
        "description",
        nargs="?",
        default=DEFAULT_VALIDATION_DESCRIPTION,
        help="What to look for (default: generic visual check).",
    )
    p_validate.set_defaults(func=_cmd_validate)

    p_step = subparsers.add_parser("step", help="Run a single registered step.")
    p_step.add_argument("step_name", help="Step id, e.g. 'api-analysis'.")
    p_step.add_argument("ticket", help="Ticket description or GitHub issue URL.")
    p_step.set_defaults(func=_cmd_step)


def _register_registry_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> None:
    p_list_steps = subparsers.add_parser(
        "list-steps",
        help="List all registered steps with their dependencies.",
    )
    _add_json_flag(p_list_steps)
    p_list_steps.set_defaults(func=_cmd_list_steps)

    p_deps = subparsers.add_parser("deps", help="Show the dependency tree of a step.")
    p_deps.add_argument("step_name", help="Step id to show dependencies for.")
    _add_json_flag(p_deps)
    p_deps.set_defaults(func=_cmd_deps)

    p_check = subparsers.add_parser(
        "check",
        help="Report dependency cycles and unregistered dependencies.",
    )
    p_check.set_defaults(func=_cmd_check)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ticketflow",
        description="Classify tickets and run assistant-driven implementation pipelines",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase verbosity (can be repeated)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional TOML configuration file",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)
    _register_run_commands(subparsers)
    _register_registry_commands(subparsers)
    return parser


def make_parser() -> argparse.ArgumentParser:
    """
    Public helper to construct the CLI parser (for tests/tools).

    Returns
    -------
    argparse.ArgumentParser
        Configured parser with all subcommands registered.
    """
    return _make_parser()


# ---------------------------------------------------------------------------
# Console rendering
# ---------------------------------------------------------------------------


@dataclass
class ConsoleObserver:
    """Pipeline observer that renders progress as plain text."""

    stream: TextIO = field(default_factory=lambda: sys.stdout)

    def _write(self, text: str) -> None:
        self.stream.write(f"{text}\n")

    def on_plan_computed(self, plan: ExecutionPlan, state: RunState) -> None:
        label = "Dry run plan" if state is RunState.PLANNED else "Execution plan"
        self._write(f"{label}: {' -> '.join(plan.step_ids) or '(empty)'}")
        if plan.skipped:
            self._write(f"Skipped: {', '.join(plan.skipped)}")

    def on_step_started(self, step: PipelineStep, index: int, total: int) -> None:
        self._write(f"[{index}/{total}] {step.display_name} ({step.step_id})")

    def on_step_succeeded(self, step: PipelineStep, result: StepResult) -> None:
        self._write("  ok")

    def on_step_failed(self, step: PipelineStep, result: StepResult) -> None:
        self._write(f"  FAILED: {result.error}")

    def on_run_finished(self, result: PipelineResult, state: RunState) -> None:
        self._write(f"Pipeline {state.value}")


def _write_classification(classification: TicketClassification) -> None:
    sys.stdout.write(f"Type: {classification.type.value}\n")
    sys.stdout.write(f"Scope: {classification.scope.describe()}\n")
    sys.stdout.write(f"Complexity: {classification.complexity.name.lower()}\n")
    sys.stdout.write(f"Summary: {classification.summary}\n")
    sys.stdout.write("\n")
    sys.stdout.write(f"Planned steps ({len(classification.steps)}):\n")
    for planned in sorted(classification.steps, key=lambda s: s.order):
        optional = "" if planned.required else " (optional)"
        sys.stdout.write(f"  {planned.order}. {planned.step_id}{optional}\n")
        if planned.reason:
            sys.stdout.write(f"     -> {planned.reason}\n")
    if classification.tasks:
        sys.stdout.write("\n")
        sys.stdout.write(f"Tasks ({len(classification.tasks)}):\n")
        for task in classification.tasks:
            sys.stdout.write(f"  - {task}\n")


def _write_summary(result: PipelineResult, *, dry_run: bool) -> None:
    sys.stdout.write("\n")
    if dry_run:
        sys.stdout.write(f"Dry run: {len(result.planned_steps)} step(s) would run\n")
        for step_id in result.planned_steps:
            sys.stdout.write(f"  - {step_id}\n")
    else:
        status = "SUCCESS" if result.success else "FAILED"
        sys.stdout.write(f"Result: {status}\n")
        sys.stdout.write(f"Executed steps ({len(result.step_results)}):\n")
        for step_result in result.step_results:
            mark = "ok" if step_result.success else "failed"
            sys.stdout.write(f"  - {step_result.step_id}: {mark}\n")
    if result.skipped_steps:
        sys.stdout.write(f"Skipped steps: {', '.join(result.skipped_steps)}\n")
    if result.error:
        sys.stdout.write(f"Error: {result.error}\n")


def _classification_payload(
    classification: TicketClassification,
    plan: PipelineResult,
) -> dict[str, Any]:
    return {
        "type": classification.type.value,
        "scope": classification.scope.describe(),
        "complexity": classification.complexity.name.lower(),
        "summary": classification.summary,
        "steps": [
            {
                "stepId": planned.step_id,
                "order": planned.order,
                "required": planned.required,
                "reason": planned.reason,
            }
            for planned in classification.steps
        ],
        "tasks": list(classification.tasks),
        "planned_steps": list(plan.planned_steps),
        "skipped_steps": list(plan.skipped_steps),
    }


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def _load_config(args: argparse.Namespace) -> TicketflowConfig:
    return TicketflowConfig.load(args.config)


def _build_runner(cfg: TicketflowConfig) -> AssistantRunner:
    return AssistantRunner(cfg.assistant)


def _build_registry(
    args: argparse.Namespace,
) -> tuple[TicketflowConfig, AssistantRunner, StepRegistry]:
    cfg = _load_config(args)
    runner = _build_runner(cfg)
    return cfg, runner, build_default_registry(runner, cfg)


# ---------------------------------------------------------------------------
# Command implementations
# ---------------------------------------------------------------------------


def _cmd_smart(args: argparse.Namespace) -> int:
    """
    Classify the ticket, then execute (or dry-run) the planned steps.

    Returns
    -------
    int
        Exit code (0 on success, 1 if the pipeline failed).
    """
    _, runner, registry = _build_registry(args)
    executor = PipelineExecutor(registry, observer=ConsoleObserver())
    context = StepContext(ticket=args.ticket)

    async def _run() -> PipelineResult:
        classification = await TicketClassifier(runner).classify(context)
        _write_classification(classification)
        sys.stdout.write("\n")
        if args.dry_run:
            return executor.dry_run(classification)
        return await executor.execute(classification, context, asyncio.Event())

    result = asyncio.run(_run())
    _write_summary(result, dry_run=args.dry_run)
    return 0 if result.success else 1


def _cmd_classify(args: argparse.Namespace) -> int:
    """
    Classify a ticket and preview the plan it produces.

    Returns
    -------
    int
        Exit code (0 on success).
    """
    _, runner, registry = _build_registry(args)
    context = StepContext(ticket=args.ticket)
    classification = asyncio.run(TicketClassifier(runner).classify(context))
    plan = PipelineExecutor(registry).dry_run(classification)

    if args.output_json:
        sys.stdout.write(json.dumps(_classification_payload(classification, plan), indent=2))
        sys.stdout.write("\n")
    else:
        _write_classification(classification)
        _write_summary(plan, dry_run=True)
    return 0


def _run_single(registry: StepRegistry, step_id: str, context: StepContext) -> int:
    executor = PipelineExecutor(registry, observer=ConsoleObserver())
    result = asyncio.run(executor.run_step(step_id, context, asyncio.Event()))
    if not result.success:
        sys.stdout.write(f"Error: {result.error}\n")
        return 1
    return 0


def _cmd_fast(args: argparse.Namespace) -> int:
    """
    Run the fast implementation step with an ad hoc frontend classification.

    Returns
    -------
    int
        Exit code (0 on success, 1 on failure).
    """
    _, _, registry = _build_registry(args)
    context = StepContext(ticket=args.ticket)
    context.attach_classification(TicketClassification.ad_hoc(args.ticket))
    return _run_single(registry, "fast-implement", context)


def _cmd_validate(args: argparse.Namespace) -> int:
    """
    Run the visual validation step.

    Returns
    -------
    int
        Exit code (0 on success, 1 on failure).
    """
    _, _, registry = _build_registry(args)
    context = StepContext(ticket=args.description)
    context.attach_classification(TicketClassification.ad_hoc(args.description))
    return _run_single(registry, "visual-validate", context)


def _cmd_step(args: argparse.Namespace) -> int:
    """
    Run one registered step against an ad hoc classification.

    Returns
    -------
    int
        Exit code (0 on success, 1 if the step is unknown or fails).
    """
    _, _, registry = _build_registry(args)
    if args.step_name not in registry:
        sys.stdout.write(f"Unknown step: {args.step_name}\n")
        sys.stdout.write(f"Available steps: {', '.join(sorted(registry.get_all_step_ids()))}\n")
        return 1
    context = StepContext(ticket=args.ticket)
    context.attach_classification(TicketClassification.ad_hoc(args.ticket, scope=LayerScope.ALL))
    return _run_single(registry, args.step_name, context)


def _cmd_list_steps(args: argparse.Namespace) -> int:
    """
    List all registered steps sorted by id.

    Returns
    -------
    int
        Exit code (0 on success).
    """
    _, _, registry = _build_registry(args)
    steps = sorted(registry.list_all(), key=lambda meta: meta.step_id)

    if args.output_json:
        data = [
            {
                "step_id": meta.step_id,
                "display_name": meta.display_name,
                "layers": meta.affected_layers.describe(),
                "deps": list(meta.dependencies),
            }
            for meta in steps
        ]
        sys.stdout.write(json.dumps(data, indent=2))
        sys.stdout.write("\n")
    else:
        for meta in steps:
            deps_str = ", ".join(meta.dependencies) if meta.dependencies else "(none)"
            sys.stdout.write(f"{meta.step_id} [{meta.affected_layers.describe()}]\n")
            sys.stdout.write(f"  {meta.display_name}\n")
            sys.stdout.write(f"  deps: {deps_str}\n")
            sys.stdout.write("\n")
    return 0


def _cmd_deps(args: argparse.Namespace) -> int:
    """
    Show direct and transitive dependencies of a step.

    Returns
    -------
    int
        Exit code (0 on success, 1 if step not found).
    """
    _, _, registry = _build_registry(args)
    if args.step_name not in registry:
        LOG.error("Unknown step: %s", args.step_name)
        return 1

    step = registry[args.step_name]
    expanded = registry.expand_with_deps([step.step_id])
    expanded.discard(step.step_id)
    direct_deps = registry.get_deps(step.step_id)

    if args.output_json:
        data = {
            "step": step.step_id,
            "direct_deps": list(direct_deps),
            "transitive_deps": sorted(expanded),
        }
        sys.stdout.write(json.dumps(data, indent=2))
        sys.stdout.write("\n")
    else:
        sys.stdout.write(f"Step: {step.step_id}\n")
        sys.stdout.write(f"Name: {step.display_name}\n")
        sys.stdout.write(f"Layers: {step.affected_layers.describe()}\n")
        sys.stdout.write("\n")
        sys.stdout.write(f"Direct dependencies ({len(direct_deps)}):\n")
        if direct_deps:
            for dep in direct_deps:
                sys.stdout.write(f"  - {dep}\n")
        else:
            sys.stdout.write("  (none)\n")
        sys.stdout.write("\n")
        sys.stdout.write(f"All transitive dependencies ({len(expanded)}):\n")
        if expanded:
            for dep in sorted(expanded):
                sys.stdout.write(f"  - {dep}\n")
        else:
            sys.stdout.write("  (none)\n")
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    """
    Validate the registry's dependency declarations.

    Returns
    -------
    int
        Exit code (0 when consistent, 1 on cycles or unregistered dependencies).
    """
    _, _, registry = _build_registry(args)
    cycles = registry.find_cycles()
    missing = registry.missing_dependencies()

    for cycle in cycles:
        sys.stdout.write(f"Cycle: {' -> '.join(cycle)}\n")
    for step_id, deps in sorted(missing.items()):
        sys.stdout.write(f"Unregistered dependencies of {step_id}: {', '.join(deps)}\n")
    if cycles or missing:
        return 1
    sys.stdout.write(f"Registry OK ({len(registry)} steps).\n")
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: Iterable[str] | None = None) -> int:
    """
    CLI entrypoint for ticketflow.

    Parameters
    ----------
    argv:
        Optional argument list (defaults to sys.argv).

    Returns
    -------
    int
        Exit code (0 on success).
    """
    parser = _make_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    _setup_logging(args.verbose)

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    try:
        func: CommandHandler = args.func
        return int(func(args))
    except ProblemError as exc:
        log_problem(LOG, exc.problem_detail)
        return 1
    except KeyboardInterrupt:
        LOG.warning("Interrupted")
        return 130
    except Exception as exc:  # noqa: BLE001
        pd = problem(
            code="cli.failure",
            title="CLI command failed",
            detail=str(exc),
            extras={"command": args.command},
        )
        log_problem(LOG, pd)
        return 1


if __name__ == "__main__":
    sys.exit(main())
