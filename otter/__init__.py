"""Layered project bootstrapping driven by an Otterfile."""

from .build import BuildEngine, BuildOptions, BuildPhase, BuildResult, LayerOutcome
from .command_runner import (
    CommandError,
    CommandResult,
    CommandRunner,
    RecordingCommandRunner,
    SubprocessCommandRunner,
)
from .conditions import Condition, evaluate_condition, filter_applicable_layers, parse_condition
from .console import Console, RecordingConsole
from .environment import RuntimeContext
from .errors import (
    AcquisitionError,
    ConditionError,
    ConfigError,
    HookError,
    MergeError,
    OtterError,
    WorkspaceError,
)
from .git_manager import LOCAL_REVISION, LayerSourceResolver, ResolvedLayer, is_local_source, repository_directory_name
from .hooks import HookExecutor
from .ignore import CRITICAL_PATTERNS, IGNORE_FILE_NAME, IgnoreSet, match_pattern
from .merge import FileMerger, MergeReport, resolve_target
from .otterfile import BuildPlan, LayerSpec, find_otterfile, parse_otterfile, parse_otterfile_text
from .scaffold import initialize_project
from .variables import substitute_variables

__version__ = "0.3.0"

__all__ = [
    "AcquisitionError",
    "BuildEngine",
    "BuildOptions",
    "BuildPhase",
    "BuildPlan",
    "BuildResult",
    "CRITICAL_PATTERNS",
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "Condition",
    "ConditionError",
    "ConfigError",
    "Console",
    "FileMerger",
    "HookError",
    "HookExecutor",
    "IGNORE_FILE_NAME",
    "IgnoreSet",
    "LOCAL_REVISION",
    "LayerOutcome",
    "LayerSourceResolver",
    "LayerSpec",
    "MergeError",
    "MergeReport",
    "OtterError",
    "RecordingCommandRunner",
    "RecordingConsole",
    "ResolvedLayer",
    "RuntimeContext",
    "SubprocessCommandRunner",
    "WorkspaceError",
    "evaluate_condition",
    "filter_applicable_layers",
    "find_otterfile",
    "initialize_project",
    "is_local_source",
    "match_pattern",
    "parse_condition",
    "parse_otterfile",
    "parse_otterfile_text",
    "repository_directory_name",
    "resolve_target",
    "substitute_variables",
]
