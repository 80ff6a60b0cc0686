"""Parser for Otterfile/Envfile build configuration.

The format is line oriented::

    VAR <NAME>=<value>
    LAYER <source> [TARGET <path>] [IF <key>=<value>] [TEMPLATE <k=v> ...] [BEFORE [...]] [AFTER [...]]
    ON_BEFORE_BUILD: [<cmd>, ...]
    ON_AFTER_BUILD: [<cmd>, ...]
    ON_ERROR: [<cmd>, ...]

``#`` starts a comment line and a trailing ``\\`` joins a line with the next.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Sequence
import json

from .environment import RuntimeContext
from .errors import ConfigError
from .variables import substitute_variables


DEFAULT_CONFIG_FILES: tuple[str, ...] = ("Otterfile", "Envfile")

_CONTINUATION = "\\"
_COMMENT = "#"


@dataclass(slots=True)
class LayerSpec:
    source: str
    target: str = "."
    condition: str | None = None
    template_vars: Dict[str, str] = field(default_factory=dict)
    before: List[str] = field(default_factory=list)
    after: List[str] = field(default_factory=list)


@dataclass(slots=True)
class BuildPlan:
    variables: Dict[str, str] = field(default_factory=dict)
    layers: List[LayerSpec] = field(default_factory=list)
    on_before_build: List[str] = field(default_factory=list)
    on_after_build: List[str] = field(default_factory=list)
    on_error: List[str] = field(default_factory=list)


class _StatementError(ValueError):
    """Raised inside a statement parser; gets the line number attached later."""


# --- LAYER argument tokens ---


class Keyword(str, Enum):
    TARGET = "TARGET"
    IF = "IF"
    TEMPLATE = "TEMPLATE"
    BEFORE = "BEFORE"
    AFTER = "AFTER"


@dataclass(frozen=True, slots=True)
class Token:
    text: str
    keyword: Keyword | None = None

    @property
    def is_keyword(self) -> bool:
        return self.keyword is not None


def tokenize_layer_arguments(words: Iterable[str]) -> List[Token]:
    tokens: List[Token] = []
    for word in words:
        try:
            keyword: Keyword | None = Keyword(word.upper())
        except ValueError:
            keyword = None
        tokens.append(Token(text=word, keyword=keyword))
    return tokens


class _TokenCursor:
    def __init__(self, tokens: Sequence[Token]) -> None:
        self._tokens = tokens
        self._index = 0

    def at_end(self) -> bool:
        return self._index >= len(self._tokens)

    def peek(self) -> Token | None:
        return None if self.at_end() else self._tokens[self._index]

    def next(self) -> Token:
        token = self._tokens[self._index]
        self._index += 1
        return token

    def take_argument(self, keyword: Keyword, what: str) -> str:
        if self.at_end():
            raise _StatementError(f"{keyword.value} requires {what}")
        return self.next().text

    def take_assignments(self) -> Iterator[tuple[str, str]]:
        while not self.at_end():
            token = self.peek()
            assert token is not None
            if "=" not in token.text:
                return
            self.next()
            key, _, value = token.text.partition("=")
            yield key.strip(), value.strip()

    def take_json_array(self, keyword: Keyword) -> List[str]:
        if self.at_end():
            raise _StatementError(f"{keyword.value} requires a command array")
        if not self.peek().text.startswith("["):  # type: ignore[union-attr]
            raise _StatementError(f"{keyword.value} commands must be in JSON array format")
        parts: List[str] = []
        while not self.at_end():
            text = self.next().text
            parts.append(text)
            if text.endswith("]"):
                return _decode_command_array(" ".join(parts), what=f"{keyword.value} commands")
        raise _StatementError(f"{keyword.value} command array not properly closed")


def _decode_command_array(text: str, *, what: str) -> List[str]:
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _StatementError(f"failed to parse {what} as JSON array: {exc.msg}") from exc
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise _StatementError(f"{what} must be a JSON array of strings")
    return value


# --- statements ---


class _PlanBuilder:
    def __init__(self, context: RuntimeContext) -> None:
        self.context = context
        self.plan = BuildPlan()

    def substitute(self, text: str) -> str:
        return substitute_variables(text, self.plan.variables, self.context)

    def statement(self, line: str) -> None:
        words = line.split()
        if not words:
            return
        command = words[0].upper()
        args = words[1:]
        if command == "VAR":
            self._var(args)
        elif command == "LAYER":
            self._layer(args)
        elif command == "ON_BEFORE_BUILD:":
            self.plan.on_before_build = self._global_hook(args)
        elif command == "ON_AFTER_BUILD:":
            self.plan.on_after_build = self._global_hook(args)
        elif command == "ON_ERROR:":
            self.plan.on_error = self._global_hook(args)
        else:
            raise _StatementError(f"unknown command: {command}")

    def _var(self, args: List[str]) -> None:
        if not args:
            raise _StatementError("VAR command requires a variable definition")
        definition = " ".join(args)
        name, sep, value = definition.partition("=")
        if not sep:
            raise _StatementError(f"VAR command must be in format 'KEY=VALUE', got: {definition}")
        name = name.strip()
        if not name:
            raise _StatementError("variable name cannot be empty")
        self.plan.variables[name] = self.substitute(value.strip())

    def _global_hook(self, args: List[str]) -> List[str]:
        if not args:
            raise _StatementError("hook command requires command array")
        return _decode_command_array(" ".join(args), what="hook commands")

    def _layer(self, args: List[str]) -> None:
        if not args:
            raise _StatementError("LAYER command requires a repository URL")

        layer = LayerSpec(source=args[0])
        cursor = _TokenCursor(tokenize_layer_arguments(args[1:]))
        while not cursor.at_end():
            token = cursor.next()
            if token.keyword is Keyword.TARGET:
                layer.target = cursor.take_argument(Keyword.TARGET, "a path argument")
            elif token.keyword is Keyword.IF:
                layer.condition = cursor.take_argument(Keyword.IF, "a condition argument")
            elif token.keyword is Keyword.TEMPLATE:
                if cursor.at_end():
                    raise _StatementError("TEMPLATE requires template variable assignments")
                layer.template_vars.update(cursor.take_assignments())
            elif token.keyword is Keyword.BEFORE:
                layer.before = cursor.take_json_array(Keyword.BEFORE)
            elif token.keyword is Keyword.AFTER:
                layer.after = cursor.take_json_array(Keyword.AFTER)
            else:
                raise _StatementError(f"unknown LAYER argument: {token.text}")

        layer.source = self.substitute(layer.source)
        layer.target = self.substitute(layer.target)
        layer.template_vars = {key: self.substitute(value) for key, value in layer.template_vars.items()}
        self.plan.layers.append(layer)


def iter_logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield ``(line_number, statement)`` pairs with continuations joined.

    The reported number is the first physical line of the statement.
    """

    pending: List[str] = []
    start = 0
    line_number = 0
    for line_number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not pending and (not line or line.startswith(_COMMENT)):
            continue
        if line.endswith(_CONTINUATION):
            if not pending:
                start = line_number
            pending.append(line[: -len(_CONTINUATION)].strip())
            continue
        if pending:
            pending.append(line)
            yield start, " ".join(pending)
            pending = []
        else:
            yield line_number, line
    if pending:
        raise ConfigError("unterminated line continuation", line=start)


def parse_otterfile_text(text: str, context: RuntimeContext) -> BuildPlan:
    builder = _PlanBuilder(context)
    for line_number, statement in iter_logical_lines(text):
        try:
            builder.statement(statement)
        except _StatementError as exc:
            raise ConfigError(str(exc), line=line_number) from exc
    return builder.plan


def parse_otterfile(path: Path, context: RuntimeContext) -> BuildPlan:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"failed to open {path}: {exc}") from exc
    return parse_otterfile_text(text, context)


def find_otterfile(
    directory: Path,
    override: Path | str | None = None,
    candidates: Sequence[str] = DEFAULT_CONFIG_FILES,
) -> Path:
    """Locate the configuration file, honouring an explicit ``override``."""

    if override:
        path = Path(override)
        return path if path.is_absolute() else directory / path
    for candidate in candidates:
        path = directory / candidate
        if path.is_file():
            return path
    names = " or ".join(candidates) or "<none>"
    raise ConfigError(f"no {names} found in {directory}")
