"""Placeholder rendering for layer files copied with ``TEMPLATE`` variables."""
from __future__ import annotations

from typing import Mapping
import re


# ``{{ name }}`` and the dotted ``{{ .name }}`` form are equivalent.
_PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*\.?([A-Za-z_][\w-]*)\s*\}\}")

OPEN_DELIMITER = "{{"
CLOSE_DELIMITER = "}}"


def contains_template_markup(content: str) -> bool:
    return OPEN_DELIMITER in content and CLOSE_DELIMITER in content


def render_template(content: str, variables: Mapping[str, str]) -> str:
    """Substitute known placeholders; unknown ones stay as literal text."""

    if not contains_template_markup(content):
        return content

    def replacement(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in variables:
            return str(variables[name])
        return match.group(0)

    return _PLACEHOLDER_PATTERN.sub(replacement, content)
