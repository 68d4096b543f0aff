"""
Configuration models used by the ticketflow CLI and pipeline steps.

These Pydantic models normalize the assistant invocation and the visual
validation settings so steps can rely on consistent values. Settings come
from an optional TOML file with environment overrides applied on top.
"""

from __future__ import annotations

import os
import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from ticketflow.errors import ConfigError

ENV_ASSISTANT_BIN = "TICKETFLOW_ASSISTANT_BIN"
ENV_ASSISTANT_TIMEOUT = "TICKETFLOW_ASSISTANT_TIMEOUT"
ENV_WORKING_DIR = "TICKETFLOW_WORKING_DIR"
ENV_APP_START_COMMAND = "TICKETFLOW_APP_START_COMMAND"


class AssistantConfig(BaseModel):
    """
    External assistant process configuration.

    The prompt is written to the process's stdin; ``args`` are passed verbatim
    after the binary.
    """

    binary: str = Field("claude", description="Assistant executable name or path")
    args: tuple[str, ...] = Field(
        ("-p", "--output-format", "text"),
        description="Arguments passed before the prompt is streamed on stdin",
    )
    timeout_s: float | None = Field(
        default=None,
        gt=0,
        description="Per-call timeout in seconds (None waits indefinitely)",
    )
    working_dir: Path | None = Field(
        default=None,
        description="Working directory for assistant and helper processes",
    )
    env: dict[str, str] = Field(
        default_factory=dict,
        description="Extra environment variables for the assistant process",
    )

    @field_validator("working_dir", mode="before")
    @classmethod
    def _normalize_optional_path(cls, v: Path | str | None) -> Path | None:
        if v is None or v == "":
            return None
        return Path(str(v)).expanduser()

    def resolve_command(self) -> list[str]:
        """
        Return the argument vector used to launch the assistant.

        Returns
        -------
        list[str]
            Binary followed by the configured arguments.
        """
        return [self.binary, *self.args]

    def build_env(self, base_env: Mapping[str, str] | None = None) -> dict[str, str]:
        """
        Construct the environment mapping for an assistant invocation.

        Parameters
        ----------
        base_env
            Baseline environment; defaults to the current process environment.

        Returns
        -------
        dict[str, str]
            Environment variables to supply to the subprocess call.
        """
        env: dict[str, str] = dict(os.environ if base_env is None else base_env)
        env.update(self.env)
        return env


class ValidationConfig(BaseModel):
    """Settings for the visual validation step."""

    app_start_command: str | None = Field(
        default=None,
        description="Shell command that starts the application in the background",
    )
    poll_attempts: int = Field(6, ge=1, description="Readiness checks before giving up")
    poll_interval_s: float = Field(3.0, ge=0, description="Delay between readiness checks")


class TicketflowConfig(BaseModel):
    """
    Top-level configuration used by the CLI.

    Typical construction:

        cfg = TicketflowConfig.load(Path("ticketflow.toml"))
    """

    assistant: AssistantConfig = Field(default_factory=AssistantConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)

    @classmethod
    def default(cls) -> TicketflowConfig:
        """
        Return a configuration populated with built-in defaults.

        Returns
        -------
        TicketflowConfig
            Default configuration.
        """
        return cls.model_validate({})

    @classmethod
    def load(
        cls,
        path: Path | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> TicketflowConfig:
        """
        Load configuration from an optional TOML file plus environment overrides.

        Parameters
        ----------
        path
            Optional TOML file with ``[assistant]`` and ``[validation]`` tables.
        environ
            Environment mapping to read overrides from (defaults to ``os.environ``).

        Returns
        -------
        TicketflowConfig
            Validated configuration.

        Raises
        ------
        ConfigError
            If the file cannot be read or parsed, or validation fails.
        """
        raw: dict[str, Any] = _read_toml(path) if path is not None else {}
        _apply_env_overrides(raw, os.environ if environ is None else environ)
        try:
            return cls.model_validate(raw)
        except ValidationError as exc:
            raise ConfigError.from_message(str(exc), source=str(path) if path else None) from exc


def _read_toml(path: Path) -> dict[str, Any]:
    try:
        text = path.read_text(encoding="utf8")
    except OSError as exc:
        message = f"Cannot read config file {path}: {exc}"
        raise ConfigError.from_message(message, source=str(path)) from exc
    try:
        return tomllib.loads(text)
    except tomllib.TOMLDecodeError as exc:
        message = f"Invalid TOML in {path}: {exc}"
        raise ConfigError.from_message(message, source=str(path)) from exc


def _apply_env_overrides(raw: dict[str, Any], environ: Mapping[str, str]) -> None:
    assistant = raw.setdefault("assistant", {})
    validation = raw.setdefault("validation", {})
    if not isinstance(assistant, dict) or not isinstance(validation, dict):
        return
    if environ.get(ENV_ASSISTANT_BIN):
        assistant["binary"] = environ[ENV_ASSISTANT_BIN]
    if environ.get(ENV_ASSISTANT_TIMEOUT):
        assistant["timeout_s"] = environ[ENV_ASSISTANT_TIMEOUT]
    if environ.get(ENV_WORKING_DIR):
        assistant["working_dir"] = environ[ENV_WORKING_DIR]
    if environ.get(ENV_APP_START_COMMAND):
        validation["app_start_command"] = environ[ENV_APP_START_COMMAND]


__all__ = [
    "ENV_APP_START_COMMAND",
    "ENV_ASSISTANT_BIN",
    "ENV_ASSISTANT_TIMEOUT",
    "ENV_WORKING_DIR",
    "AssistantConfig",
    "TicketflowConfig",
    "ValidationConfig",
]
