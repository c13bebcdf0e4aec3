"""YAML configuration for the modkit command line."""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError

__all__ = ["DEFAULT_CONFIG", "DEFAULT_CONFIG_NAME", "ModkitConfig", "load_config"]

DEFAULT_CONFIG_NAME = "modkit.yaml"

DEFAULT_CONFIG: Dict[str, Any] = {
    "logging": {"level": "WARNING"},
    "extensions": {"insert_prop": False},
    "output": {"directory": "build"},
    "compose": {"environment": None},
}


def _section(data: Mapping[str, Any], key: str) -> Mapping[str, Any]:
    value = data.get(key)
    return value if isinstance(value, Mapping) else {}


@dataclass(slots=True)
class ModkitConfig:
    """Settings resolved from ``modkit.yaml`` merged over the defaults."""

    log_level: str = "WARNING"
    insert_prop: bool = False
    output_directory: Path = Path("build")
    environment: Optional[str] = None
    source: Optional[Path] = None

    @property
    def log_level_value(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        return level if isinstance(level, int) else logging.WARNING

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: Optional[Path] = None) -> ModkitConfig:
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for key, value in data.items():
            if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
                merged[key].update(value)
            else:
                merged[key] = value

        level = _section(merged, "logging").get("level")
        insert_prop = _section(merged, "extensions").get("insert_prop")
        directory = _section(merged, "output").get("directory")
        environment = _section(merged, "compose").get("environment")

        output_directory = Path(directory) if isinstance(directory, str) and directory.strip() else Path("build")
        if source is not None and not output_directory.is_absolute():
            output_directory = source.parent / output_directory

        return cls(
            log_level=level.strip() if isinstance(level, str) and level.strip() else "WARNING",
            insert_prop=bool(insert_prop),
            output_directory=output_directory,
            environment=environment.strip() if isinstance(environment, str) and environment.strip() else None,
            source=source,
        )


def load_config(config_path: Optional[Path] = None) -> ModkitConfig:
    """Load ``config_path`` (or ``modkit.yaml`` when present) into settings.

    An explicitly requested file must exist; the implicit default may be absent.
    """
    explicit = config_path is not None
    path = Path(config_path) if explicit else Path(DEFAULT_CONFIG_NAME)
    if not path.exists():
        if explicit:
            raise ConfigError(f"Config file not found: {path}")
        return ModkitConfig()

    try:
        with path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
    except (OSError, yaml.YAMLError) as error:
        raise ConfigError(f"Failed to parse config: {error}") from error

    if not isinstance(data, dict):
        raise ConfigError("Configuration must be a mapping at the top level.")

    return ModkitConfig.from_mapping(data, source=path)
