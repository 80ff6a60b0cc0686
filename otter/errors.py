"""Exception taxonomy shared by the parser, resolvers, merger and hooks."""
from __future__ import annotations


class OtterError(RuntimeError):
    """Base class for every failure the build reports to its caller.

    ``phase`` and ``layer`` are filled in by the build engine once the error
    crosses a layer boundary; the exception type itself never changes.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message
        self.phase: str | None = None
        self.layer: str | None = None

    def with_context(self, *, phase: str, layer: str | None = None) -> "OtterError":
        if self.phase is None:
            self.phase = phase
        if self.layer is None:
            self.layer = layer
        return self

    def __str__(self) -> str:
        if self.phase is None:
            return self.message
        where = self.phase
        if self.layer:
            where = f"{where} of layer {self.layer}"
        return f"{where}: {self.message}"


class ConfigError(OtterError):
    """Malformed configuration file."""

    def __init__(self, message: str, *, line: int | None = None) -> None:
        self.cause = message
        self.line = line
        if line is not None:
            message = f"error on line {line}: {message}"
        super().__init__(message)


class ConditionError(OtterError):
    """A layer condition that is not of the form ``key=value``."""


class AcquisitionError(OtterError):
    """A layer source could not be cloned, updated or located."""


class MergeError(OtterError):
    """Filesystem failure while merging layer files."""


class HookError(OtterError):
    """A lifecycle command exited with a non-zero status."""

    def __init__(self, phase: str, command: str, returncode: int | None, detail: str | None = None) -> None:
        self.hook_phase = phase
        self.command = command
        self.returncode = returncode
        if detail:
            message = f"failed to execute {phase} command '{command}': {detail}"
        else:
            message = f"failed to execute {phase} command '{command}': exit status {returncode}"
        super().__init__(message)


class WorkspaceError(OtterError):
    """The project directory has not been initialised."""


__all__ = [
    "AcquisitionError",
    "ConditionError",
    "ConfigError",
    "HookError",
    "MergeError",
    "OtterError",
    "WorkspaceError",
]
