"""Workspace configuration support for datamask."""

from __future__ import annotations

import json
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from datamask.errors import ConfigError
from datamask.resolver import SHADOW_POLICIES

CONFIG_FILE_NAMES = ("datamask.toml", ".datamaskrc")


@dataclass
class EvaluationSettings:
    """How expressions resolve names and which pronouns they use."""

    data_pronoun: str = "_data"
    env_pronoun: str = "_env"
    on_shadow: str = "ignore"
    vectorize: bool = True

    def validate(self) -> "EvaluationSettings":
        for label, value in (("data_pronoun", self.data_pronoun), ("env_pronoun", self.env_pronoun)):
            if not isinstance(value, str) or not value.isidentifier():
                raise ConfigError(f"{label} must be a valid identifier, got {value!r}")
        if self.data_pronoun == self.env_pronoun:
            raise ConfigError("data_pronoun and env_pronoun must differ")
        if not isinstance(self.vectorize, bool):
            raise ConfigError(f"vectorize must be true or false, got {self.vectorize!r}")
        if self.on_shadow not in SHADOW_POLICIES:
            raise ConfigError(
                f"on_shadow must be one of {', '.join(SHADOW_POLICIES)}, got {self.on_shadow!r}",
                hint="Set [evaluation] on_shadow in datamask.toml or DATAMASK_ON_SHADOW",
            )
        return self


@dataclass
class DatamaskConfig:
    """Resolved workspace configuration."""

    root: Path
    evaluation: EvaluationSettings = field(default_factory=EvaluationSettings)
    scope: Dict[str, Any] = field(default_factory=dict)
    source: Optional[Path] = None
    raw: Dict[str, Any] = field(default_factory=dict)


def _read_json_config(path: Path) -> Dict[str, Any]:
    content = path.read_text(encoding="utf-8")
    return json.loads(content)


def _read_toml_config(path: Path) -> Dict[str, Any]:
    with path.open("rb") as handle:
        return tomllib.load(handle)


def _parse_evaluation(data: Dict[str, Any]) -> EvaluationSettings:
    section = data.get("evaluation") or {}
    if not isinstance(section, dict):
        raise ConfigError("[evaluation] must be a table")
    defaults = EvaluationSettings()
    on_shadow = os.getenv("DATAMASK_ON_SHADOW") or section.get("on_shadow") or defaults.on_shadow
    return EvaluationSettings(
        data_pronoun=str(section.get("data_pronoun") or defaults.data_pronoun),
        env_pronoun=str(section.get("env_pronoun") or defaults.env_pronoun),
        on_shadow=str(on_shadow).lower(),
        vectorize=section.get("vectorize", defaults.vectorize),
    ).validate()


def locate_config_file(root: Path, explicit: Optional[Path] = None) -> Optional[Path]:
    if explicit is not None:
        return explicit if explicit.exists() else None
    for candidate in CONFIG_FILE_NAMES:
        path = root / candidate
        if path.exists():
            return path
    return None


def load_config(root: Path, explicit: Optional[Path] = None) -> DatamaskConfig:
    root = root.resolve()
    if explicit is not None and not explicit.exists():
        raise ConfigError(f"Config file not found: {explicit}")
    config_path = locate_config_file(root, explicit)
    data: Dict[str, Any] = {}
    if config_path is not None:
        try:
            if config_path.suffix == ".toml":
                data = _read_toml_config(config_path)
            else:
                data = _read_json_config(config_path)
        except (tomllib.TOMLDecodeError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Invalid config file {config_path}: {exc}") from exc

    scope_section = data.get("scope") or {}
    if not isinstance(scope_section, dict):
        raise ConfigError("[scope] must be a table")

    return DatamaskConfig(
        root=root,
        evaluation=_parse_evaluation(data),
        scope=dict(scope_section),
        source=config_path,
        raw=data,
    )


__all__ = [
    "CONFIG_FILE_NAMES",
    "EvaluationSettings",
    "DatamaskConfig",
    "locate_config_file",
    "load_config",
]
