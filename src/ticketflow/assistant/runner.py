"""Structured runner for the external assistant process and helper commands."""

from __future__ import annotations

import asyncio
import logging
import time
from asyncio.subprocess import PIPE, Process
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from ticketflow.config.models import AssistantConfig

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class AssistantResult:
    """Structured output from an assistant or helper-command invocation."""

    success: bool
    output: str
    error: str
    returncode: int | None = None
    duration_s: float = 0.0

    @classmethod
    def failure(cls, error: str, *, duration_s: float = 0.0) -> AssistantResult:
        """
        Build a failed result for invocations that never produced an exit code.

        Returns
        -------
        AssistantResult
            Result with ``success=False`` and empty output.
        """
        return cls(success=False, output="", error=error, duration_s=duration_s)


class AssistantRunner:
    """
    Launch the assistant with a prompt on stdin and capture its output.

    Failures (missing binary, non-zero exit, timeout, cancellation) are
    reported as unsuccessful results rather than raised.
    """

    def __init__(self, config: AssistantConfig | None = None) -> None:
        self.config = config or AssistantConfig.model_validate({})

    @property
    def _cwd(self) -> str | None:
        return str(self.config.working_dir) if self.config.working_dir is not None else None

    async def run_async(self, prompt: str, cancel: asyncio.Event | None = None) -> AssistantResult:
        """
        Run the assistant with ``prompt`` and wait for it to finish.

        Parameters
        ----------
        prompt
            Prompt text streamed to the process on stdin.
        cancel
            Optional signal; when set, the process is killed.

        Returns
        -------
        AssistantResult
            Captured stdout/stderr with the success flag.
        """
        cmd = self.config.resolve_command()
        log.debug("Running assistant %s (%d prompt chars)", cmd[0], len(prompt))

        async def _spawn() -> Process:
            return await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self._cwd,
                stdin=PIPE,
                stdout=PIPE,
                stderr=PIPE,
                env=self.config.build_env(),
            )

        return await self._run(_spawn, prompt.encode(), cancel, label=cmd[0])

    async def run_shell_async(
        self,
        command: str,
        cancel: asyncio.Event | None = None,
    ) -> AssistantResult:
        """
        Run a helper shell command (e.g. starting the application under test).

        Returns
        -------
        AssistantResult
            Captured stdout/stderr with the success flag.
        """
        log.debug("Running helper command: %s", command)

        async def _spawn() -> Process:
            return await asyncio.create_subprocess_shell(
                command,
                cwd=self._cwd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=PIPE,
                stderr=PIPE,
                env=self.config.build_env(),
            )

        return await self._run(_spawn, None, cancel, label=command)

    async def _run(
        self,
        spawn: Callable[[], Awaitable[Process]],
        stdin_bytes: bytes | None,
        cancel: asyncio.Event | None,
        *,
        label: str,
    ) -> AssistantResult:
        start_ts = time.perf_counter()
        try:
            proc = await spawn()
        except OSError as exc:
            log.warning("Could not start %s: %s", label, exc)
            return AssistantResult.failure(f"Could not start {label}: {exc}")

        communicate = asyncio.ensure_future(proc.communicate(stdin_bytes))
        waiters: set[asyncio.Future[object]] = {communicate}
        cancel_wait = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        if cancel_wait is not None:
            waiters.add(cancel_wait)
        try:
            done, _ = await asyncio.wait(
                waiters,
                timeout=self.config.timeout_s,
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            _kill(proc)
            communicate.cancel()
            await asyncio.shield(proc.wait())
            raise
        finally:
            if cancel_wait is not None:
                cancel_wait.cancel()

        if communicate not in done:
            _kill(proc)
            await communicate
            duration = time.perf_counter() - start_ts
            if cancel is not None and cancel.is_set():
                reason = f"{label} cancelled"
            else:
                reason = f"{label} timed out after {self.config.timeout_s}s"
            log.warning(reason)
            return AssistantResult(
                success=False,
                output="",
                error=reason,
                returncode=proc.returncode,
                duration_s=duration,
            )

        stdout_b, stderr_b = communicate.result()
        duration = time.perf_counter() - start_ts
        stdout = stdout_b.decode(errors="replace") if stdout_b else ""
        stderr = stderr_b.decode(errors="replace") if stderr_b else ""
        returncode = proc.returncode if proc.returncode is not None else 1
        if returncode != 0:
            error = stderr.strip() or f"{label} exited with code {returncode}"
            return AssistantResult(
                success=False,
                output=stdout,
                error=error,
                returncode=returncode,
                duration_s=duration,
            )
        return AssistantResult(
            success=True,
            output=stdout,
            error="",
            returncode=returncode,
            duration_s=duration,
        )


def _kill(proc: Process) -> None:
    if proc.returncode is None:
        try:
            proc.kill()
        except ProcessLookupError:
            log.debug("Process %s already exited", proc.pid)


__all__ = ["AssistantResult", "AssistantRunner"]
