"""Merging of a resolved layer's files into the project tree.

A layer is first copied into a staging directory; the target tree is only
touched once every file of the layer has been staged successfully.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Sequence
import os
import shutil
import tempfile

from .console import ConsoleProtocol
from .errors import MergeError
from .ignore import IGNORE_FILE_NAME, IgnoreSet, load_ignore_file
from .template import contains_template_markup, render_template


STAGING_PREFIX = "stage-"


@dataclass(slots=True)
class MergeReport:
    created: List[str] = field(default_factory=list)
    overwritten: List[str] = field(default_factory=list)
    ignored: List[str] = field(default_factory=list)
    rendered: List[str] = field(default_factory=list)

    @property
    def written(self) -> int:
        return len(self.created) + len(self.overwritten)


@dataclass(slots=True)
class _StagedEntry:
    relative: str
    is_dir: bool


def resolve_target(project_root: Path, target: str) -> Path:
    """Resolve a layer ``TARGET`` against ``project_root``.

    Targets that resolve outside the project root are rejected.
    """

    root = project_root.resolve()
    if not target or target == ".":
        return root
    path = (root / target).resolve()
    if path != root and root not in path.parents:
        raise MergeError(f"target '{target}' escapes the project root {root}")
    return path


class FileMerger:
    def __init__(
        self,
        console: ConsoleProtocol,
        project_patterns: Sequence[str] = (),
        *,
        staging_root: Path | None = None,
    ) -> None:
        self._console = console
        self.project_patterns = list(project_patterns)
        self._staging_root = staging_root

    @classmethod
    def for_project(
        cls,
        project_root: Path,
        console: ConsoleProtocol,
        *,
        staging_root: Path | None = None,
    ) -> "FileMerger":
        patterns = load_ignore_file(project_root / IGNORE_FILE_NAME)
        return cls(console, patterns, staging_root=staging_root)

    def ignore_set_for(self, layer_path: Path) -> IgnoreSet:
        return IgnoreSet(
            project_patterns=tuple(self.project_patterns),
            layer_patterns=tuple(load_ignore_file(layer_path / IGNORE_FILE_NAME)),
        )

    def merge_layer(
        self,
        layer_path: Path,
        target_dir: Path,
        project_root: Path,
        template_vars: Mapping[str, str] | None = None,
    ) -> MergeReport:
        ignore_set = self.ignore_set_for(layer_path)
        report = MergeReport()
        staging_parent = self._staging_root or project_root / ".otter"
        if not staging_parent.is_dir():
            staging_parent = None  # type: ignore[assignment]

        try:
            with tempfile.TemporaryDirectory(prefix=STAGING_PREFIX, dir=staging_parent) as staging:
                staging_dir = Path(staging)
                entries = self._stage(layer_path, staging_dir, target_dir, ignore_set, template_vars or {}, report)
                target_dir.mkdir(parents=True, exist_ok=True)
                self._commit(staging_dir, entries, target_dir, report)
        except OSError as exc:
            raise MergeError(f"failed to copy layer files from {layer_path}: {exc}") from exc
        return report

    def _stage(
        self,
        layer_path: Path,
        staging_dir: Path,
        target_dir: Path,
        ignore_set: IgnoreSet,
        template_vars: Mapping[str, str],
        report: MergeReport,
    ) -> List[_StagedEntry]:
        entries: List[_StagedEntry] = []

        def on_error(exc: OSError) -> None:
            raise exc

        for current, dirnames, filenames in os.walk(layer_path, onerror=on_error):
            current_path = Path(current)
            base = current_path.relative_to(layer_path)

            kept_dirs: List[str] = []
            for name in sorted(dirnames):
                relative = (base / name).as_posix()
                if ignore_set.is_ignored(relative):
                    self._ignore(relative, report)
                    continue
                if (current_path / name).is_symlink():
                    raise MergeError(f"cannot merge symlinked directory {relative}")
                (staging_dir / relative).mkdir(parents=True, exist_ok=True)
                entries.append(_StagedEntry(relative=relative, is_dir=True))
                kept_dirs.append(name)
            dirnames[:] = kept_dirs

            for name in sorted(filenames):
                relative = (base / name).as_posix()
                if ignore_set.is_ignored(relative):
                    self._ignore(relative, report)
                    continue
                self._stage_file(
                    current_path / name,
                    staging_dir / relative,
                    target_dir / relative,
                    template_vars,
                    report,
                )
                entries.append(_StagedEntry(relative=relative, is_dir=False))
        return entries

    def _ignore(self, relative: str, report: MergeReport) -> None:
        self._console.info(f"  Ignoring: {relative}")
        report.ignored.append(relative)

    def _stage_file(
        self,
        source: Path,
        staged: Path,
        destination: Path,
        template_vars: Mapping[str, str],
        report: MergeReport,
    ) -> None:
        staged.parent.mkdir(parents=True, exist_ok=True)
        content = source.read_bytes()
        if template_vars:
            rendered = self._render(content, template_vars)
            if rendered is not None:
                content = rendered
                self._console.info(f"  Template processed: {destination}")
                report.rendered.append(str(destination))
        staged.write_bytes(content)
        shutil.copymode(source, staged)

    @staticmethod
    def _render(content: bytes, template_vars: Mapping[str, str]) -> bytes | None:
        try:
            text = content.decode("utf-8")
        except UnicodeDecodeError:
            return None
        if not contains_template_markup(text):
            return None
        return render_template(text, template_vars).encode("utf-8")

    def _commit(
        self,
        staging_dir: Path,
        entries: Sequence[_StagedEntry],
        target_dir: Path,
        report: MergeReport,
    ) -> None:
        for entry in entries:
            destination = target_dir / entry.relative
            if entry.is_dir:
                if destination.exists() and not destination.is_dir():
                    raise MergeError(f"cannot create directory {destination}: a file is in the way")
                destination.mkdir(parents=True, exist_ok=True)
                continue

            if destination.is_dir() and not destination.is_symlink():
                raise MergeError(f"cannot overwrite directory {destination} with a file")
            if destination.exists() or destination.is_symlink():
                self._console.info(f"  Overwriting: {destination}")
                report.overwritten.append(str(destination))
            else:
                self._console.info(f"  Creating: {destination}")
                report.created.append(str(destination))
            destination.parent.mkdir(parents=True, exist_ok=True)
            if destination.is_symlink():
                destination.unlink()
            shutil.move(str(staging_dir / entry.relative), str(destination))
