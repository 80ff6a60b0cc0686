"""Leveled console output used for build progress."""
from __future__ import annotations

from typing import Protocol, TextIO, runtime_checkable
import sys


@runtime_checkable
class ConsoleProtocol(Protocol):
    """Minimal console interface required by the build components."""

    def info(self, message: str) -> None:
        ...

    def warn(self, message: str) -> None:
        ...

    def error(self, message: str) -> None:
        ...

    def debug(self, message: str) -> None:
        ...


class Console(ConsoleProtocol):
    """Simple console output handler with configurable level.

    Levels: none < error < info < debug
    """

    LEVELS = {
        "none": 0,
        "error": 1,
        "info": 2,
        "debug": 3,
    }

    def __init__(
        self,
        level: str = "info",
        *,
        stdout: TextIO | None = None,
        stderr: TextIO | None = None,
    ) -> None:
        if level not in self.LEVELS:
            raise ValueError(f"Unknown console level '{level}'. Expected one of: {', '.join(self.LEVELS)}")
        self.level_name = level
        self.level = self.LEVELS[level]
        self._stdout = stdout
        self._stderr = stderr

    def info(self, message: str) -> None:
        if self.level >= self.LEVELS["info"]:
            print(f"[INFO] {message}", file=self._stdout or sys.stdout)

    def warn(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[WARN] {message}", file=self._stderr or sys.stderr)

    def error(self, message: str) -> None:
        if self.level >= self.LEVELS["error"]:
            print(f"[ERROR] {message}", file=self._stderr or sys.stderr)

    def debug(self, message: str) -> None:
        if self.level >= self.LEVELS["debug"]:
            print(f"[DEBUG] {message}", file=self._stdout or sys.stdout)


class RecordingConsole(ConsoleProtocol):
    """Collects messages instead of printing them."""

    def __init__(self) -> None:
        self.messages: list[tuple[str, str]] = []

    def info(self, message: str) -> None:
        self.messages.append(("info", message))

    def warn(self, message: str) -> None:
        self.messages.append(("warn", message))

    def error(self, message: str) -> None:
        self.messages.append(("error", message))

    def debug(self, message: str) -> None:
        self.messages.append(("debug", message))

    def lines(self, level: str | None = None) -> list[str]:
        return [text for kind, text in self.messages if level is None or kind == level]
