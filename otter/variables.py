"""``${NAME}`` substitution for configuration values."""
from __future__ import annotations

from typing import Mapping
import re

from .environment import RuntimeContext


_VARIABLE_PATTERN = re.compile(r"\$\{([^}]+)\}")

ENV_PREFIX = "OTTER_"


def lookup_variable(name: str, variables: Mapping[str, str], context: RuntimeContext) -> str | None:
    """Resolve ``name`` against the configuration, then ``OTTER_<NAME>``, then ``NAME``.

    Empty environment values are treated as unset. Returns ``None`` when no
    tier provides a value.
    """

    if name in variables:
        return variables[name]
    value = context.first_env(ENV_PREFIX + name.upper(), name)
    return value or None


def substitute_variables(text: str, variables: Mapping[str, str], context: RuntimeContext) -> str:
    """Replace every resolvable ``${NAME}`` in ``text``; leave the rest verbatim."""

    if "${" not in text:
        return text

    def replacement(match: re.Match[str]) -> str:
        value = lookup_variable(match.group(1), variables, context)
        return match.group(0) if value is None else value

    return _VARIABLE_PATTERN.sub(replacement, text)
