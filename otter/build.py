"""Build orchestration: parse, filter, then acquire and merge each layer."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterator, List, Sequence

from .command_runner import CommandRunner
from .conditions import filter_applicable_layers
from .console import ConsoleProtocol
from .environment import RuntimeContext
from .errors import OtterError, WorkspaceError
from .git_manager import LayerSourceResolver, ResolvedLayer
from .hooks import HookExecutor
from .merge import FileMerger, MergeReport, resolve_target
from .otterfile import DEFAULT_CONFIG_FILES, BuildPlan, LayerSpec, find_otterfile, parse_otterfile
from .scaffold import ensure_initialized


class BuildPhase(str, Enum):
    PARSING = "parsing"
    BEFORE_BUILD = "ON_BEFORE_BUILD"
    FILTERING = "filtering"
    LAYER_BEFORE = "before"
    ACQUIRE = "acquire"
    MERGE = "merge"
    LAYER_AFTER = "after"
    AFTER_BUILD = "ON_AFTER_BUILD"
    ERROR_HANDLING = "ON_ERROR"


@dataclass(slots=True)
class BuildOptions:
    project_root: Path
    config_file: Path | str | None = None
    cache_dir: Path | None = None
    config_files: Sequence[str] = DEFAULT_CONFIG_FILES
    shell: str | None = None


@dataclass(slots=True)
class LayerOutcome:
    spec: LayerSpec
    resolved: ResolvedLayer
    target: Path
    report: MergeReport


@dataclass(slots=True)
class BuildResult:
    config_file: Path
    total_layers: int
    layers: List[LayerOutcome] = field(default_factory=list)

    @property
    def applied_layers(self) -> int:
        return len(self.layers)


@contextmanager
def _phase(phase: BuildPhase, layer: str | None = None) -> Iterator[None]:
    try:
        yield
    except OtterError as exc:
        exc.with_context(phase=phase.value, layer=layer)
        raise


class BuildEngine:
    def __init__(
        self,
        *,
        console: ConsoleProtocol,
        command_runner: CommandRunner,
        context: RuntimeContext,
    ) -> None:
        self._console = console
        self._runner = command_runner
        self._context = context

    def load_plan(self, root: Path, options: BuildOptions) -> tuple[Path, BuildPlan]:
        config_path = find_otterfile(root, options.config_file, options.config_files)
        self._console.info(f"Using configuration file: {config_path}")
        with _phase(BuildPhase.PARSING):
            plan = parse_otterfile(config_path, self._context)
        return config_path, plan

    def run(self, options: BuildOptions) -> BuildResult:
        root = options.project_root.resolve()
        if options.cache_dir is not None:
            cache_dir = options.cache_dir
            if not cache_dir.is_dir():
                raise WorkspaceError(f"cache directory {cache_dir} not found. Please run 'otter init' first")
        else:
            cache_dir = ensure_initialized(root)

        config_path, plan = self.load_plan(root, options)
        hooks = HookExecutor(root, self._runner, self._console, self._context, shell=options.shell)

        with hooks.cleanup_on_failure(plan.on_error, BuildPhase.ERROR_HANDLING.value), self._report_failure():
            return self._execute(plan, root=root, cache_dir=cache_dir, hooks=hooks, config_path=config_path)

    @contextmanager
    def _report_failure(self) -> Iterator[None]:
        try:
            yield
        except OtterError as exc:
            self._console.error(f"Build failed: {exc}")
            raise

    def _execute(
        self,
        plan: BuildPlan,
        *,
        root: Path,
        cache_dir: Path,
        hooks: HookExecutor,
        config_path: Path,
    ) -> BuildResult:
        result = BuildResult(config_file=config_path, total_layers=len(plan.layers))

        with _phase(BuildPhase.BEFORE_BUILD):
            hooks.run(plan.on_before_build, BuildPhase.BEFORE_BUILD.value)

        with _phase(BuildPhase.FILTERING):
            applicable = filter_applicable_layers(plan.layers, self._context)

        if not plan.layers:
            self._console.info("No layers defined in configuration file.")
        elif not applicable:
            self._console.info("No layers are applicable for current environment.")
        elif len(applicable) < len(plan.layers):
            self._console.info(
                f"Found {len(plan.layers)} layer(s), applying {len(applicable)} layer(s) based on conditions:"
            )
        else:
            self._console.info(f"Found {len(applicable)} layer(s) to process:")

        if applicable:
            resolver = LayerSourceResolver(cache_dir, self._runner, self._console, self._context)
            with _phase(BuildPhase.MERGE):
                merger = FileMerger.for_project(root, self._console, staging_root=cache_dir.parent)
            for index, layer in enumerate(applicable, start=1):
                self._console.info(f"[{index}/{len(applicable)}] Processing layer: {layer.source}")
                result.layers.append(self._apply_layer(layer, root=root, hooks=hooks, resolver=resolver, merger=merger))

        with _phase(BuildPhase.AFTER_BUILD):
            hooks.run(plan.on_after_build, BuildPhase.AFTER_BUILD.value)

        self._console.info(f"Build completed successfully! Applied {result.applied_layers} layer(s).")
        return result

    def _apply_layer(
        self,
        layer: LayerSpec,
        *,
        root: Path,
        hooks: HookExecutor,
        resolver: LayerSourceResolver,
        merger: FileMerger,
    ) -> LayerOutcome:
        if layer.condition:
            self._console.info(f"  Condition: {layer.condition}")

        with _phase(BuildPhase.LAYER_BEFORE, layer.source):
            hooks.run(layer.before, BuildPhase.LAYER_BEFORE.value)

        with _phase(BuildPhase.ACQUIRE, layer.source):
            resolved = resolver.resolve(layer.source)

        with _phase(BuildPhase.MERGE, layer.source):
            target = resolve_target(root, layer.target)
            self._console.info(f"  Target directory: {target}")
            report = merger.merge_layer(resolved.path, target, root, layer.template_vars)

        with _phase(BuildPhase.LAYER_AFTER, layer.source):
            hooks.run(layer.after, BuildPhase.LAYER_AFTER.value)

        self._console.info(f"  Layer commit: {resolved.short_revision}")
        self._console.info("  ✓ Layer applied successfully")
        return LayerOutcome(spec=layer, resolved=resolved, target=target, report=report)
