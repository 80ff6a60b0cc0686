"""Execution of user lifecycle commands (global and per-layer hooks)."""
from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Sequence

from .command_runner import CommandError, CommandRunner
from .console import ConsoleProtocol
from .environment import RuntimeContext
from .errors import HookError, OtterError


DEFAULT_POSIX_SHELL = "/bin/sh"


class HookExecutor:
    def __init__(
        self,
        working_dir: Path,
        runner: CommandRunner,
        console: ConsoleProtocol,
        context: RuntimeContext,
        *,
        shell: str | None = None,
    ) -> None:
        self.working_dir = working_dir
        self._runner = runner
        self._console = console
        self._context = context
        self._shell = shell

    def shell_command(self, command: str) -> List[str]:
        if self._context.is_windows:
            return ["cmd", "/c", command]
        shell = self._shell or self._context.getenv("SHELL") or DEFAULT_POSIX_SHELL
        return [shell, "-c", command]

    def run(self, commands: Sequence[str], phase: str) -> None:
        """Run ``commands`` in order, stopping at the first failure."""

        if not commands:
            return

        self._console.info(f"  Executing {phase} commands:")
        total = len(commands)
        for index, command in enumerate(commands, start=1):
            self._console.info(f"    [{index}/{total}] {command}")
            if not command.strip():
                raise HookError(phase, command, None, "empty command")
            try:
                self._runner.run(self.shell_command(command), cwd=self.working_dir, stream=True)
            except CommandError as exc:
                raise HookError(phase, command, exc.result.returncode) from exc

    @contextmanager
    def cleanup_on_failure(self, cleanup: Sequence[str], phase: str = "cleanup") -> Iterator[None]:
        """Run ``cleanup`` best-effort when the wrapped block raises.

        The original failure is always re-raised.
        """

        try:
            yield
        except OtterError:
            if cleanup:
                self._console.info(f"  Error occurred, running {phase} commands:")
                self.run_best_effort(cleanup, phase)
            raise

    def run_with_cleanup(self, commands: Sequence[str], phase: str, cleanup: Sequence[str]) -> None:
        """Like :meth:`run`, but runs ``cleanup`` best-effort when it fails."""

        with self.cleanup_on_failure(cleanup):
            self.run(commands, phase)

    def run_best_effort(self, commands: Sequence[str], phase: str) -> HookError | None:
        """Run ``commands``; report a failure instead of raising it."""

        try:
            self.run(commands, phase)
        except HookError as exc:
            self._console.warn(f"{phase} commands failed: {exc.message}")
            return exc
        return None
