"""Acquisition of layer sources: cached git clones or local directories.

Reads (HEAD commit) go through pygit2; writes (clone, pull) go through the
git CLI so the user's git configuration, credentials and hooks apply.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import unquote, urlparse
import hashlib
import re

import pygit2

from .command_runner import CommandError, CommandRunner, SubprocessCommandRunner
from .console import ConsoleProtocol
from .environment import RuntimeContext
from .errors import AcquisitionError


LOCAL_REVISION = "local-dir"

_LOCAL_PREFIXES = ("./", "../", "/", "file://")
_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")
_UP_TO_DATE_MARKERS = ("already up to date", "already up-to-date")


@dataclass(slots=True)
class ResolvedLayer:
    source: str
    path: Path
    revision: str
    is_local: bool

    @property
    def short_revision(self) -> str:
        return self.revision if self.revision == LOCAL_REVISION else self.revision[:8]


def is_local_source(source: str) -> bool:
    return source.startswith(_LOCAL_PREFIXES) or bool(_DRIVE_PATTERN.match(source))


def repository_directory_name(source: str) -> str:
    """Readable, collision-resistant cache directory name for ``source``."""

    name = source[:-4] if source.endswith(".git") else source
    if "/" in name:
        name = name.rsplit("/", 1)[-1]
    if ":" in name:
        name = name.rsplit(":", 1)[-1]
        if "/" in name:
            name = name.rsplit("/", 1)[-1]
    digest = hashlib.sha256(source.encode("utf-8")).hexdigest()[:8]
    return f"{name}-{digest}"


class GitRepository:
    """Thin wrapper around one working copy."""

    def __init__(self, path: Path, runner: Optional[CommandRunner] = None) -> None:
        self.path = Path(path)
        self._runner = runner or SubprocessCommandRunner()
        self._repo: Optional[pygit2.Repository] = None

    @property
    def exists(self) -> bool:
        return (self.path / ".git").exists()

    @property
    def repo(self) -> pygit2.Repository:
        if self._repo is None:
            try:
                self._repo = pygit2.Repository(str(self.path))
            except pygit2.GitError as exc:
                raise AcquisitionError(f"failed to open repository at {self.path}: {exc}") from exc
        return self._repo

    def get_head_commit(self) -> str:
        try:
            return str(self.repo.head.target)
        except pygit2.GitError as exc:
            raise AcquisitionError(f"failed to get HEAD reference in {self.path}: {exc}") from exc

    def clone(self, url: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._runner.run(["git", "clone", url, str(self.path)], stream=True)

    def pull(self, remote: str = "origin") -> bool:
        """Fast-forward from ``remote``; returns False when already up to date."""
        result = self._runner.run(["git", "pull", "--ff-only", remote], cwd=self.path)
        output = f"{result.stdout}\n{result.stderr}".lower()
        return not any(marker in output for marker in _UP_TO_DATE_MARKERS)


class LayerSourceResolver:
    def __init__(
        self,
        cache_dir: Path,
        runner: CommandRunner,
        console: ConsoleProtocol,
        context: RuntimeContext,
    ) -> None:
        self._cache_dir = cache_dir
        self._runner = runner
        self._console = console
        self._context = context

    def resolve(self, source: str) -> ResolvedLayer:
        if is_local_source(source):
            path = self._resolve_local(source)
            return ResolvedLayer(source=source, path=path, revision=self.get_revision(path), is_local=True)
        path = self._resolve_remote(source)
        return ResolvedLayer(source=source, path=path, revision=self.get_revision(path), is_local=False)

    def cache_path(self, source: str) -> Path:
        return self._cache_dir / repository_directory_name(source)

    def _resolve_local(self, source: str) -> Path:
        if source.startswith("file://"):
            parsed = urlparse(source)
            local = unquote(parsed.path)
            if parsed.netloc and parsed.netloc != "localhost":
                local = f"/{parsed.netloc}{local}"
            path = Path(local)
        else:
            path = Path(source)

        if not path.is_absolute():
            path = (self._context.cwd / path).resolve()

        if not path.exists():
            raise AcquisitionError(f"local layer directory does not exist: {path}")
        if not path.is_dir():
            raise AcquisitionError(f"local layer path is not a directory: {path}")

        self._console.info(f"Using local layer: {path}")
        return path

    def _resolve_remote(self, source: str) -> Path:
        repository = GitRepository(self.cache_path(source), runner=self._runner)
        cached = repository.exists
        try:
            if cached:
                self._console.info(f"Updating layer: {source}")
                if not repository.pull():
                    self._console.info("  Already up-to-date")
            else:
                self._console.info(f"Cloning layer: {source}")
                repository.clone(source)
        except CommandError as exc:
            action = "update" if cached else "clone"
            raise AcquisitionError(f"failed to {action} repository {source}: {exc}") from exc
        except OSError as exc:
            raise AcquisitionError(f"failed to prepare cache for {source}: {exc}") from exc
        return repository.path

    def get_revision(self, path: Path) -> str:
        """HEAD commit for git checkouts, ``local-dir`` for plain directories.

        A checkout whose HEAD cannot be read (no commits yet) also reports
        ``local-dir``; only a missing path is an error.
        """

        if not path.exists():
            raise AcquisitionError(f"layer path does not exist: {path}")
        repository = GitRepository(path, runner=self._runner)
        if not repository.exists:
            return LOCAL_REVISION
        try:
            return repository.get_head_commit()
        except AcquisitionError as exc:
            self._console.debug(f"No commit available for {path}: {exc.message}")
            return LOCAL_REVISION
