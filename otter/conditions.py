"""Evaluation of ``IF key=value`` layer conditions."""
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List

from .environment import RuntimeContext
from .errors import ConditionError

if TYPE_CHECKING:
    from .otterfile import LayerSpec


DEFAULT_ENVIRONMENT = "development"

# Checked in order inside the working directory when no editor is configured.
_EDITOR_MARKERS = (
    (".vscode", "vscode"),
    (".cursor", "cursor"),
)


@dataclass(frozen=True, slots=True)
class Condition:
    key: str
    value: str


def parse_condition(text: str) -> Condition:
    if not text:
        raise ConditionError("condition cannot be empty")
    key, sep, value = text.partition("=")
    if not sep:
        raise ConditionError(f"condition must be in format 'key=value', got: {text}")
    return Condition(key=key.strip(), value=value.strip())


def current_environment(context: RuntimeContext) -> str:
    return context.first_env("OTTER_ENV", "ENV", "NODE_ENV") or DEFAULT_ENVIRONMENT


def current_editor(context: RuntimeContext) -> str:
    editor = context.first_env("OTTER_EDITOR", "EDITOR")
    if editor:
        return editor
    for marker, name in _EDITOR_MARKERS:
        if (context.cwd / marker).exists():
            return name
    return ""


def evaluate_condition(condition: Condition | None, context: RuntimeContext) -> bool:
    if condition is None:
        return True

    key = condition.key
    if key == "os":
        return condition.value == context.os_name
    if key == "arch":
        return condition.value in {context.architecture, context.machine} - {""}
    if key in {"env", "environment"}:
        return condition.value == current_environment(context)
    if key == "editor":
        return condition.value == current_editor(context)
    return condition.value == context.getenv("OTTER_" + key.upper())


def should_apply(layer: "LayerSpec", context: RuntimeContext) -> bool:
    """Whether ``layer`` applies in ``context``; no condition means always."""

    if not layer.condition:
        return True
    try:
        condition = parse_condition(layer.condition)
    except ConditionError as exc:
        raise ConditionError(f"failed to parse condition '{layer.condition}': {exc.message}") from exc
    return evaluate_condition(condition, context)


def filter_applicable_layers(layers: Iterable["LayerSpec"], context: RuntimeContext) -> List["LayerSpec"]:
    applicable: List["LayerSpec"] = []
    for layer in layers:
        try:
            if should_apply(layer, context):
                applicable.append(layer)
        except ConditionError as exc:
            raise ConditionError(
                f"error evaluating condition for layer {layer.source}: {exc.message}"
            ) from exc
    return applicable
