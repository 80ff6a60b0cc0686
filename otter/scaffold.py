"""``otter init``: prepare a project directory for layered builds."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from .console import ConsoleProtocol
from .errors import WorkspaceError
from .ignore import IGNORE_FILE_NAME


OTTER_DIR_NAME = ".otter"
CACHE_DIR_NAME = "cache"

DEFAULT_IGNORE = """\
# Otter ignore file - specify files and patterns to ignore when merging layers
.git/
.otter/
node_modules/
*.log
*.tmp
.DS_Store
"""

SAMPLE_OTTERFILE = """\
# Otterfile - define layers to pull from git repositories or local directories
# Syntax: LAYER <source> [TARGET <path>] [IF <key>=<value>] [TEMPLATE <k=v> ...]
#               [BEFORE ["cmd", ...]] [AFTER ["cmd", ...]]
# Example:
# VAR ORG=otter-layers
# LAYER git@github.com:${ORG}/go-cobra-cli.git
# LAYER git@github.com:${ORG}/cursor-go-rules.git TARGET .cursor/rules IF editor=cursor
# LAYER ./layers/app-config TARGET app TEMPLATE project=demo
# ON_AFTER_BUILD: ["echo 'Environment ready'"]
"""


@dataclass(slots=True)
class InitResult:
    otter_dir: Path
    cache_dir: Path
    created_files: List[Path] = field(default_factory=list)


def otter_directory(project_root: Path) -> Path:
    return project_root / OTTER_DIR_NAME


def cache_directory(project_root: Path) -> Path:
    return otter_directory(project_root) / CACHE_DIR_NAME


def initialize_project(project_root: Path, console: ConsoleProtocol) -> InitResult:
    otter_dir = otter_directory(project_root)
    cache_dir = cache_directory(project_root)
    try:
        cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise WorkspaceError(f"failed to create {cache_dir}: {exc}") from exc

    result = InitResult(otter_dir=otter_dir, cache_dir=cache_dir)
    for name, content, label in (
        (IGNORE_FILE_NAME, DEFAULT_IGNORE, f"{IGNORE_FILE_NAME} file"),
        ("Otterfile", SAMPLE_OTTERFILE, "sample Otterfile"),
    ):
        path = project_root / name
        if path.exists():
            continue
        try:
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise WorkspaceError(f"failed to create {label}: {exc}") from exc
        console.info(f"Created {label}")
        result.created_files.append(path)

    console.info(f"Otter initialized successfully in {project_root}")
    console.info("Created directories:")
    console.info(f"  {otter_dir}")
    console.info(f"  {cache_dir}")
    return result


def ensure_initialized(project_root: Path) -> Path:
    """Return the cache directory, failing when ``init`` has not been run."""

    if not otter_directory(project_root).is_dir():
        raise WorkspaceError(f"{OTTER_DIR_NAME} directory not found. Please run 'otter init' first")
    cache_dir = cache_directory(project_root)
    if not cache_dir.is_dir():
        raise WorkspaceError(f"cache directory {cache_dir} not found. Please run 'otter init' first")
    return cache_dir
