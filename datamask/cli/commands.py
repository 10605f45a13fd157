"""Subcommand implementations for the datamask CLI."""

from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Any, Dict, Tuple

import numpy as np
import pandas as pd

from datamask.config import DatamaskConfig
from datamask.errors import ConfigError
from datamask.expressions import evaluate_masked_expression
from datamask.frames import MaskedFrame
from datamask.linter import lint_expression
from datamask.loaders import load_dataset, load_scope
from datamask.namespaces import DatasetNamespace, Namespace, ScopeNamespace
from datamask.resolver import NameResolver


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, pd.DataFrame):
        return value.to_dict(orient="records")
    if isinstance(value, (pd.Series, np.ndarray)):
        return value.tolist()
    if isinstance(value, np.generic):
        return value.item()
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    return str(value)


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=_to_jsonable)


def _load_namespaces(args: argparse.Namespace, config: DatamaskConfig) -> Tuple["pd.DataFrame", DatasetNamespace, ScopeNamespace]:
    df = load_dataset(Path(args.data), args.format)
    name = Path(args.data).stem
    if args.row is not None:
        if not 0 <= args.row < len(df):
            raise ConfigError(f"Row {args.row} is out of range for a dataset with {len(df)} rows")
        dataset = DatasetNamespace.from_row(df.iloc[args.row].to_dict(), name=name)
    else:
        dataset = DatasetNamespace.from_frame(df, name=name)
    scope = ScopeNamespace(
        load_scope(args.scope_json, args.scope_file, args.scope, defaults=config.scope)
    )
    return df, dataset, scope


def cmd_resolve(args: argparse.Namespace, config: DatamaskConfig) -> int:
    _, dataset, scope = _load_namespaces(args, config)
    settings = config.evaluation
    resolver = NameResolver(
        dataset,
        scope,
        on_shadow=settings.on_shadow,
        data_pronoun=settings.data_pronoun,
        env_pronoun=settings.env_pronoun,
    )
    tag = Namespace.parse(args.namespace)
    if args.indirect:
        value = resolver.resolve_indirect(args.name, tag or Namespace.SCOPE)
    else:
        value = resolver.resolve(args.name, tag)
    print(_dump(value))
    return 0


def cmd_eval(args: argparse.Namespace, config: DatamaskConfig) -> int:
    _, dataset, scope = _load_namespaces(args, config)
    settings = config.evaluation
    value = evaluate_masked_expression(
        args.expression,
        dataset,
        scope,
        on_shadow=settings.on_shadow,
        data_pronoun=settings.data_pronoun,
        env_pronoun=settings.env_pronoun,
    )
    print(_dump(value))
    return 0


def cmd_filter(args: argparse.Namespace, config: DatamaskConfig) -> int:
    df, _, scope = _load_namespaces(args, config)
    frame = MaskedFrame(df, scope, name=Path(args.data).stem, settings=config.evaluation)
    result = frame.filter(args.expression)
    if args.output:
        result.to_frame().to_csv(args.output, index=False)
        print(f"Wrote {len(result)} rows to {args.output}")
    else:
        print(_dump(result.to_rows()))
    return 0


def cmd_lint(args: argparse.Namespace, config: DatamaskConfig) -> int:
    _, dataset, scope = _load_namespaces(args, config)
    settings = config.evaluation
    result = lint_expression(
        args.expression,
        dataset,
        scope,
        data_pronoun=settings.data_pronoun,
        env_pronoun=settings.env_pronoun,
    )
    payload: Dict[str, Any] = {
        "findings": [finding.to_payload() for finding in result.findings],
        "errors": list(result.errors),
    }
    print(_dump(payload))
    return 0 if result.success() else 1


__all__ = ["cmd_resolve", "cmd_eval", "cmd_filter", "cmd_lint"]
