"""Optional tool settings stored under ``.otter/config.<ext>``."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Sequence
import json
import tomllib

import yaml

from .errors import ConfigError
from .otterfile import DEFAULT_CONFIG_FILES


ConfigLoader = Callable[[Any], Any]

SETTINGS_STEM = "config"

FILE_LOADERS: Dict[str, ConfigLoader] = {
    ".toml": lambda stream: tomllib.load(stream),
    ".json": lambda stream: json.load(stream),
    ".yaml": lambda stream: yaml.safe_load(stream),
    ".yml": lambda stream: yaml.safe_load(stream),
}
"""Mapping of file suffixes to loader callables."""

_LOG_LEVELS = ("none", "error", "info", "debug")


def load_config_file(path: Path) -> Mapping[str, Any]:
    """Load and decode a configuration mapping from ``path``."""

    suffix = path.suffix.lower()
    loader = FILE_LOADERS.get(suffix)
    if loader is None:
        supported = ", ".join(sorted(FILE_LOADERS))
        raise ConfigError(f"Unsupported settings file extension: {suffix}. Supported: {supported}")

    mode = "rb" if suffix == ".toml" else "r"
    kwargs: Dict[str, Any] = {}
    if mode == "r":
        kwargs["encoding"] = "utf-8"

    try:
        with path.open(mode, **kwargs) as handle:
            data = loader(handle)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load settings file '{path}': {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ConfigError(f"Settings file '{path}' must contain a mapping at the root")
    return data


def find_settings_file(otter_dir: Path) -> Path | None:
    """Return the single ``config.<ext>`` file in ``otter_dir``, if any."""

    if not otter_dir.is_dir():
        return None
    found: List[Path] = []
    for suffix in FILE_LOADERS:
        candidate = otter_dir / f"{SETTINGS_STEM}{suffix}"
        if candidate.is_file():
            found.append(candidate)
    if len(found) > 1:
        names = "', '".join(path.name for path in found)
        raise ConfigError(
            f"Multiple settings files found: '{names}'. Only one format per configuration entry is allowed."
        )
    return found[0] if found else None


def normalize_string_list(value: Any, *, field_name: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        text = value.strip()
        return [text] if text else []
    if isinstance(value, Sequence):
        items: List[str] = []
        for item in value:
            if not isinstance(item, str):
                raise ConfigError(f"{field_name} entries must be strings")
            text = item.strip()
            if text:
                items.append(text)
        return items
    raise ConfigError(f"{field_name} must be a string or sequence of strings")


@dataclass(slots=True)
class OtterSettings:
    log_level: str = "info"
    shell: str | None = None
    config_files: List[str] = field(default_factory=lambda: list(DEFAULT_CONFIG_FILES))
    path: Path | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, path: Path | None = None) -> "OtterSettings":
        section = data.get("otter", data)
        if not isinstance(section, Mapping):
            raise ConfigError("[otter] section must be a table")

        log_level = str(section.get("log_level", "info")).lower()
        if log_level not in _LOG_LEVELS:
            raise ConfigError(f"otter.log_level must be one of: {', '.join(_LOG_LEVELS)}")

        shell = section.get("shell")
        if shell is not None and not isinstance(shell, str):
            raise ConfigError("otter.shell must be a string")

        config_files = normalize_string_list(section.get("config_files"), field_name="otter.config_files")
        return cls(
            log_level=log_level,
            shell=shell or None,
            config_files=config_files or list(DEFAULT_CONFIG_FILES),
            path=path,
        )

    @classmethod
    def load(cls, project_root: Path) -> "OtterSettings":
        path = find_settings_file(project_root / ".otter")
        if path is None:
            return cls()
        return cls.from_mapping(load_config_file(path), path=path)
