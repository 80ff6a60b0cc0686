"""Command line interface for otter."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable
import sys

from .build import BuildEngine, BuildOptions
from .command_runner import SubprocessCommandRunner
from .config_loader import OtterSettings
from .console import Console
from .environment import RuntimeContext
from .errors import OtterError
from .scaffold import initialize_project


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(
        prog="otter",
        description="Set up development environments by layering files from git repositories or local directories",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument("--verbose", "-v", action="store_true", help="Enable debug output")
    verbosity.add_argument("--quiet", "-q", action="store_true", help="Only print errors")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Initialize the current directory for otter")

    build_parser = subparsers.add_parser("build", help="Build the development environment by applying layers")
    build_parser.add_argument(
        "-f",
        "--file",
        dest="file",
        help="Otterfile/Envfile to use (default: auto-detect)",
    )

    return parser.parse_args(list(argv))


def _console_level(args: Namespace, settings: OtterSettings) -> str:
    if args.verbose:
        return "debug"
    if args.quiet:
        return "error"
    return settings.log_level


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    try:
        if args.command == "init":
            return _handle_init(args, workspace)
        if args.command == "build":
            return _handle_build(args, workspace)
    except OtterError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    raise ValueError(f"Unknown command: {args.command}")


def _handle_init(args: Namespace, workspace: Path) -> int:
    console = Console("error" if args.quiet else "info")
    initialize_project(workspace, console)
    return 0


def _handle_build(args: Namespace, workspace: Path) -> int:
    settings = OtterSettings.load(workspace)
    console = Console(_console_level(args, settings))
    if settings.path is not None:
        console.debug(f"Loaded settings from {settings.path}")

    engine = BuildEngine(
        console=console,
        command_runner=SubprocessCommandRunner(),
        context=RuntimeContext.from_process(workspace),
    )
    engine.run(
        BuildOptions(
            project_root=workspace,
            config_file=args.file,
            config_files=settings.config_files,
            shell=settings.shell,
        )
    )
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
