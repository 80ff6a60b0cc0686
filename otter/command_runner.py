"""Process execution for git operations and lifecycle hooks."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Outcome of one executed process."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


class CommandError(RuntimeError):
    """Raised when a checked process exits with a non-zero status."""

    def __init__(self, result: CommandResult):
        message = f"'{format_command(result.command)}' exited with status {result.returncode}"
        if not result.streamed:
            detail = (result.stderr or result.stdout).strip()
            if detail:
                message = f"{message}: {detail}"
        super().__init__(message)
        self.result = result


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(part) for part in command)


class CommandRunner:
    """Interface shared by the real and the recording runner."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        raise NotImplementedError


class SubprocessCommandRunner(CommandRunner):
    """Runs processes with :mod:`subprocess`, blocking until they exit.

    With ``stream=True`` the child inherits stdout/stderr so its output shows
    up live; nothing is captured in that case.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        merged_env: Dict[str, str] | None = None
        if env is not None:
            merged_env = os.environ.copy()
            merged_env.update(env)

        try:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                capture_output=not stream,
                text=True,
                check=False,
            )
        except OSError as exc:
            result = CommandResult(command=command, returncode=127, stdout="", stderr=str(exc))
            if check:
                raise CommandError(result) from exc
            return result

        result = CommandResult(
            command=command,
            returncode=process.returncode,
            stdout=process.stdout or "",
            stderr=process.stderr or "",
            streamed=stream,
        )
        if check and not result.succeeded:
            raise CommandError(result)
        return result


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    stream: bool


class RecordingCommandRunner(CommandRunner):
    """Records commands instead of executing them.

    ``responses`` maps a command prefix (tuple of leading arguments) to the
    result returned for matching commands; everything else succeeds silently.
    """

    def __init__(self, responses: Mapping[tuple[str, ...], CommandResult] | None = None) -> None:
        self.commands: List[RecordedCommand] = []
        self._responses = dict(responses or {})

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        stream: bool = False,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(command=list(command), cwd=str(cwd) if cwd else None, stream=stream)
        )
        result = self._lookup(command)
        if check and not result.succeeded:
            raise CommandError(result)
        return result

    def _lookup(self, command: Sequence[str]) -> CommandResult:
        parts = tuple(command)
        for prefix, response in self._responses.items():
            if parts[: len(prefix)] == prefix:
                return CommandResult(
                    command=command,
                    returncode=response.returncode,
                    stdout=response.stdout,
                    stderr=response.stderr,
                )
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    def iter_commands(self) -> Iterable[List[str]]:
        return (record.command for record in self.commands)
