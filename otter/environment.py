"""Runtime context consulted by variable substitution and layer conditions."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping
import os
import platform


_ARCH_ALIASES: Dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "x64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv8l": "arm64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "armv7l": "arm",
    "armv6l": "arm",
}


def normalize_architecture(machine: str) -> str:
    machine = machine.lower()
    return _ARCH_ALIASES.get(machine, machine)


@dataclass(slots=True)
class RuntimeContext:
    """Explicit snapshot of the ambient inputs a build depends on."""

    os_name: str
    architecture: str
    cwd: Path
    environ: Mapping[str, str] = field(default_factory=dict)
    machine: str = ""

    @classmethod
    def from_process(cls, cwd: Path | None = None) -> "RuntimeContext":
        machine = platform.machine().lower()
        return cls(
            os_name=platform.system().lower(),
            architecture=normalize_architecture(machine),
            cwd=(cwd or Path.cwd()).resolve(),
            environ=dict(os.environ),
            machine=machine,
        )

    def getenv(self, name: str) -> str:
        return self.environ.get(name, "") or ""

    def first_env(self, *names: str) -> str:
        """Return the first non-empty value among ``names``."""
        for name in names:
            value = self.getenv(name)
            if value:
                return value
        return ""

    @property
    def is_windows(self) -> bool:
        return self.os_name == "windows"
