"""
Prompt builders for the classifier and every pipeline step.

Each builder takes the run's :class:`StepContext` and returns the full text
streamed to the assistant. Analysis prompts embed the classification so the
assistant sees the plan it is working within.
"""

from __future__ import annotations

from textwrap import dedent

from ticketflow.pipeline.context import StepContext

READY_MARKER = "RUNNING"

DATA_TASK_KEYWORDS: tuple[str, ...] = ("data", "entity", "entities", "schema", "migration")

CLASSIFIER_JSON_TEMPLATE = dedent(
    """\
    ```json
    {
      "type": "NewFeature|Enhancement|BugFix|Refactoring|Documentation|Configuration|DataMigration",
      "scope": ["Data", "Api", "Frontend", "Shared", "Infrastructure"],
      "complexity": "Trivial|Simple|Medium|Complex|Epic",
      "steps": [
        {"stepId": "step-id", "order": 1, "required": true, "reason": "Why this step is needed"}
      ],
      "tasks": ["Task 1 from the ticket", "Task 2 from the ticket"],
      "summary": "Short summary of what the ticket asks for"
    }
    ```"""
)

CLASSIFIER_STEP_CATALOG: tuple[tuple[str, str], ...] = (
    ("data-analysis", "entity or database changes (new entities, migrations)"),
    ("api-analysis", "API endpoint changes (new or modified endpoints)"),
    ("frontend-analysis", "UI changes (pages, views, view models)"),
    ("project-structure", "new projects or top-level folders"),
    ("skill-mapping", "assigning assistant skills to tasks (complex tickets only)"),
    ("implement", "the actual implementation (always the last step)"),
)

VALIDATION_JSON_TEMPLATE = dedent(
    """\
    ```json
    {
      "status": "success|failed|skipped",
      "appRunning": true,
      "screenshotTaken": true,
      "changesVisible": true,
      "issues": ["Problem description"],
      "summary": "One sentence verdict"
    }
    ```"""
)


def shared_context(ctx: StepContext) -> str:
    """
    Return the preamble shared by every prompt.

    Returns
    -------
    str
        Ticket text plus the non-interactive working instructions.
    """
    lines = [f"Ticket: {ctx.ticket}", ""]
    lines.append(
        "You are running non-interactively. Use the available tools (Write, Edit, "
        "Bash, Glob, Grep, Read) to create and modify files directly."
    )
    lines.append("Read the repository's contributor notes for project conventions first.")
    if ctx.is_github_issue:
        lines.extend(
            [
                "",
                "The ticket is a GitHub issue. Load its full content with:",
                f"  gh issue view {ctx.github_issue_number} --repo {ctx.github_repo}",
                f"  gh issue view {ctx.github_issue_number} --repo {ctx.github_repo} --comments",
            ]
        )
    lines.extend(
        [
            "",
            "ACTION REQUIRED: make the requested changes. Do not only describe them.",
        ]
    )
    return "\n".join(lines)


def classified_context(ctx: StepContext) -> str:
    """
    Return the shared context extended with the attached classification.

    Returns
    -------
    str
        Shared context alone when the ticket has not been classified yet.
    """
    base = shared_context(ctx)
    classification = ctx.classification
    if classification is None:
        return base
    planned = " -> ".join(classification.ordered_step_ids()) or "(none)"
    return "\n".join(
        [
            base,
            "",
            "=== CLASSIFICATION ===",
            f"Type: {classification.type.value}",
            f"Scope: {classification.scope.describe()}",
            f"Complexity: {classification.complexity.name.lower()}",
            f"Summary: {classification.summary}",
            "",
            f"Planned steps: {planned}",
        ]
    )


def _numbered(tasks: list[str]) -> str:
    return "\n".join(f"{index}. {task}" for index, task in enumerate(tasks, start=1))


def classifier_prompt(ctx: StepContext) -> str:
    """Prompt asking the assistant to classify the ticket as a JSON envelope."""
    catalog = "\n".join(f"- {step_id}: {purpose}" for step_id, purpose in CLASSIFIER_STEP_CATALOG)
    return "\n".join(
        [
            "Analyze and classify the following ticket.",
            "",
            shared_context(ctx),
            "",
            "TASK: read the whole ticket including subtasks and comments, then decide "
            "which layers are affected.",
            "",
            "Reply ONLY with JSON in this format:",
            "",
            CLASSIFIER_JSON_TEMPLATE,
            "",
            "AVAILABLE STEPS (choose only the relevant ones):",
            catalog,
            "",
            "RULES:",
            "- Choose only steps that are really needed.",
            "- A frontend-only bug does not need data-analysis.",
            "- An API-only fix does not need frontend-analysis.",
            '- "implement" is always the last step.',
            '- Extract every task and subtask of the ticket into "tasks".',
            "",
            "Return only the JSON, with no explanation before or after it.",
        ]
    )


def _analysis_prompt(ctx: StepContext, title: str, questions: list[str], action: str) -> str:
    return "\n".join(
        [
            classified_context(ctx),
            "",
            f"=== STEP: {title} ===",
            "",
            *(f"{index}. {question}" for index, question in enumerate(questions, start=1)),
            "",
            f"ACTION: {action}",
        ]
    )


def data_analysis_prompt(ctx: StepContext) -> str:
    """Prompt for the data/entity analysis step."""
    return _analysis_prompt(
        ctx,
        "DATA ANALYSIS",
        [
            "Which entities must be created?",
            "Which entities must be changed?",
            "Which entities must be removed?",
            "Are migrations required?",
        ],
        "Implement the required entity changes now and add seed data for new entities.",
    )


def api_analysis_prompt(ctx: StepContext) -> str:
    """Prompt for the API/endpoint analysis step."""
    return _analysis_prompt(
        ctx,
        "API ANALYSIS",
        [
            "Which endpoints must be created?",
            "Which endpoints must be changed?",
            "Which endpoints must be removed?",
            "Which handlers or services are affected?",
        ],
        "Implement the required API changes now.",
    )


def frontend_analysis_prompt(ctx: StepContext) -> str:
    """Prompt for the frontend analysis step."""
    return _analysis_prompt(
        ctx,
        "FRONTEND ANALYSIS",
        [
            "Which pages or views must be created?",
            "Which pages or views must be changed?",
            "Which view models are affected?",
            "Which markup or styling changes are needed?",
        ],
        "Implement the required frontend changes now.",
    )


def project_structure_prompt(ctx: StepContext) -> str:
    """Prompt for the project structure step."""
    return _analysis_prompt(
        ctx,
        "PROJECT STRUCTURE",
        [
            "Does the ticket need a new project or package?",
            "Which existing projects are affected?",
            "Do project references need to change?",
        ],
        "Create new projects or packages only if they are needed.",
    )


def skill_mapping_prompt(ctx: StepContext) -> str:
    """Prompt for the skill mapping step."""
    return "\n".join(
        [
            classified_context(ctx),
            "",
            "=== STEP: SKILL MAPPING ===",
            "",
            "Assign the best-suited assistant skill to each task and document the mapping.",
        ]
    )


def implement_all_tasks_prompt(ctx: StepContext) -> str:
    """Prompt implementing every collected task in one pass."""
    return "\n".join(
        [
            classified_context(ctx),
            "",
            "=== IMPLEMENT ALL TASKS ===",
            "",
            "Implement ALL of the following tasks:",
            "",
            _numbered(ctx.tasks),
            "",
            "INSTRUCTIONS:",
            "1. Read the project conventions first.",
            "2. Work through the tasks in order.",
            "3. Use Write/Edit tools for files.",
            "4. Add seed data for new entities.",
            "5. Build the project at the end and fix any errors.",
            "",
            "Implement every task completely.",
        ]
    )


def seeding_prompt(ctx: StepContext) -> str:
    """Follow-up prompt creating seed data after data-related tasks."""
    return "\n".join(
        [
            shared_context(ctx),
            "",
            "ACTION: create a seeder for the data/entity feature that was just implemented.",
            "Follow the project's seeding conventions and add 5-10 realistic records.",
            "You MUST write the files, not only describe them.",
        ]
    )


def fast_implement_prompt(ctx: StepContext) -> str:
    """Prompt performing analysis and implementation in a single assistant call."""
    return "\n".join(
        [
            classified_context(ctx),
            "",
            "=== FAST IMPLEMENTATION ===",
            "",
            "Analyze and implement the following tasks in one pass:",
            "",
            _numbered(ctx.tasks),
            "",
            "Look up the relevant code yourself, make every change, then build the "
            "project and fix any errors.",
        ]
    )


def readiness_check_prompt() -> str:
    """Prompt asking whether the application under test is reachable."""
    return "\n".join(
        [
            "Check whether the application is running and connected.",
            f'Reply with exactly one word: "{READY_MARKER}" if it is, "WAITING" if not.',
        ]
    )


def visual_validation_prompt(ctx: StepContext) -> str:
    """Prompt asking for a screenshot-based check of the ticket's UI changes."""
    return "\n".join(
        [
            classified_context(ctx),
            "",
            "=== VISUAL VALIDATION ===",
            "",
            "1. Take a screenshot of the running application.",
            "2. Navigate to the area affected by the ticket.",
            "3. Check that the requested changes are visible and correct.",
            "",
            "Reply ONLY with JSON in this format:",
            "",
            VALIDATION_JSON_TEMPLATE,
        ]
    )


def is_data_task(task: str) -> bool:
    """
    Report whether a task touches the data layer.

    Returns
    -------
    bool
        True when any data keyword occurs in ``task`` (case-insensitive).
    """
    lowered = task.casefold()
    return any(keyword in lowered for keyword in DATA_TASK_KEYWORDS)


__all__ = [
    "READY_MARKER",
    "api_analysis_prompt",
    "classified_context",
    "classifier_prompt",
    "data_analysis_prompt",
    "fast_implement_prompt",
    "frontend_analysis_prompt",
    "implement_all_tasks_prompt",
    "is_data_task",
    "project_structure_prompt",
    "readiness_check_prompt",
    "seeding_prompt",
    "shared_context",
    "skill_mapping_prompt",
    "visual_validation_prompt",
]
