"""Dataset and scope loading for the CLI and scripts."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional

import pandas as pd

from datamask.errors import ConfigError, DatasetLoadError

_SUFFIX_FORMATS = {
    ".csv": "csv",
    ".json": "json",
    ".parquet": "parquet",
    ".pq": "parquet",
}


def load_dataset(path: Path, fmt: Optional[str] = None) -> "pd.DataFrame":
    resolved = Path(path).expanduser()
    fmt = (fmt or _SUFFIX_FORMATS.get(resolved.suffix.lower()) or "csv").lower()
    if not resolved.exists():
        raise DatasetLoadError(f"Dataset file '{resolved}' was not found.")
    try:
        if fmt == "csv":
            return pd.read_csv(resolved)
        if fmt == "json":
            return pd.DataFrame(json.loads(resolved.read_text(encoding="utf-8")))
        if fmt == "parquet":
            return pd.read_parquet(resolved)
    except (OSError, ValueError) as exc:
        raise DatasetLoadError(f"Failed to read dataset '{resolved}': {exc}") from exc
    raise DatasetLoadError(f"Unsupported dataset format '{fmt}'.")


def parse_scope_assignments(entries: Optional[Iterable[str]]) -> Dict[str, Any]:
    """Parse ``KEY=VALUE`` strings; values are JSON when they parse as JSON."""
    values: Dict[str, Any] = {}
    for entry in entries or []:
        if not entry:
            continue
        if "=" not in entry:
            raise ConfigError(f"Scope value '{entry}' must be KEY=VALUE")
        key, raw = entry.split("=", 1)
        key = key.strip()
        if not key.isidentifier():
            raise ConfigError(f"Scope key '{key}' is not a valid identifier")
        try:
            values[key] = json.loads(raw)
        except json.JSONDecodeError:
            values[key] = raw
    return values


def load_scope(
    inline_json: Optional[str] = None,
    file_path: Optional[str] = None,
    assignments: Optional[Iterable[str]] = None,
    defaults: Optional[Mapping[str, Any]] = None,
) -> Dict[str, Any]:
    if inline_json and file_path:
        raise ConfigError(
            "Specify either --scope-json or --scope-file, not both",
            hint="Use --scope-json for inline JSON or --scope-file for a file path",
        )
    data: Optional[str] = inline_json
    if file_path:
        path = Path(file_path).expanduser()
        if not path.exists():
            raise ConfigError(f"Scope file not found: {file_path}")
        data = path.read_text(encoding="utf-8")

    merged: Dict[str, Any] = dict(defaults or {})
    if data:
        try:
            parsed = json.loads(data)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON for scope: {exc}") from exc
        if not isinstance(parsed, dict):
            raise ConfigError("Scope JSON must be an object")
        merged.update(parsed)
    merged.update(parse_scope_assignments(assignments))
    return merged


__all__ = ["load_dataset", "parse_scope_assignments", "load_scope"]
