"""Ignore patterns applied while merging layer files."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Sequence

from .errors import MergeError


IGNORE_FILE_NAME = ".otterignore"

# Appended to every ignore set; user patterns can add to these but never remove them.
CRITICAL_PATTERNS: tuple[str, ...] = (
    ".git",
    ".git/",
    ".otter",
    ".otter/",
    IGNORE_FILE_NAME,
    ".gitignore",
)


def _match_wildcard(pattern: str, path: str) -> bool:
    if pattern == "*":
        return True
    if pattern.startswith("*."):
        return path.endswith(pattern[1:])
    return False


def match_pattern(pattern: str, path: str) -> bool:
    """Return True when ``path`` (relative, ``/``-separated) matches ``pattern``."""

    if pattern == path:
        return True

    if pattern.endswith("/"):
        directory = pattern[:-1]
        return path == directory or path.startswith(directory + "/")

    if "*" in pattern:
        return _match_wildcard(pattern, path)

    if "/" not in pattern and path.rsplit("/", 1)[-1] == pattern:
        return True

    return path.startswith(pattern)


def parse_ignore_lines(lines: Iterable[str]) -> List[str]:
    patterns: List[str] = []
    for raw in lines:
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        patterns.append(line)
    return patterns


def load_ignore_file(path: Path) -> List[str]:
    """Read patterns from ``path``; a missing file means no patterns."""

    if not path.exists():
        return []
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MergeError(f"failed to read ignore file {path}: {exc}") from exc
    return parse_ignore_lines(text.splitlines())


@dataclass(slots=True)
class IgnoreSet:
    project_patterns: Sequence[str] = field(default_factory=tuple)
    layer_patterns: Sequence[str] = field(default_factory=tuple)

    @property
    def patterns(self) -> List[str]:
        return [*self.project_patterns, *self.layer_patterns, *CRITICAL_PATTERNS]

    def is_ignored(self, relative_path: str) -> bool:
        return any(match_pattern(pattern, relative_path) for pattern in self.patterns)
