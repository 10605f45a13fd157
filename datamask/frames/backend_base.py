"""Shared evaluation context and abstract base class for frame backends."""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

import pandas as pd

from datamask.config import EvaluationSettings
from datamask.expressions import MaskedExpressionEvaluator
from datamask.namespaces import DatasetNamespace, ScopeNamespace
from datamask.resolver import NameResolver


class _BackendFallback(Exception):
    """Raised internally when a backend requests a downgrade path."""


@dataclass
class FrameEvaluationContext:
    """Everything a backend needs to evaluate expressions except the data."""

    scope: ScopeNamespace
    settings: EvaluationSettings = field(default_factory=EvaluationSettings)
    frame_name: Optional[str] = None
    extra_callables: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    shadow_warnings: Set[str] = field(default_factory=set)

    def evaluator(self, dataset: DatasetNamespace) -> MaskedExpressionEvaluator:
        resolver = NameResolver(
            dataset,
            self.scope,
            on_shadow=self.settings.on_shadow,
            data_pronoun=self.settings.data_pronoun,
            env_pronoun=self.settings.env_pronoun,
            warned=self.shadow_warnings,
        )
        return MaskedExpressionEvaluator(
            resolver,
            data_pronoun=self.settings.data_pronoun,
            env_pronoun=self.settings.env_pronoun,
            extra_callables=self.extra_callables,
        )

    def evaluate(self, tree: ast.AST, dataset: Mapping[str, Any]) -> Any:
        if not isinstance(dataset, DatasetNamespace):
            dataset = DatasetNamespace(dataset, name=self.frame_name)
        return self.evaluator(dataset).evaluate(tree)


def _runtime_truthy(value: Any) -> bool:
    if value is None or value is pd.NA:
        return False
    try:
        return bool(value)
    except (TypeError, ValueError):
        return False


class _FrameBackendBase:
    """Base class for frame execution backends (pandas, python)."""

    def __init__(self, *, context: FrameEvaluationContext) -> None:
        self._context = context

    def columns(self) -> List[str]:
        """Get list of column names."""
        raise NotImplementedError()

    def filter(self, predicate: ast.AST) -> "_FrameBackendBase":
        """Keep rows where the predicate is truthy."""
        raise NotImplementedError()

    def mutate(self, name: str, expression: ast.AST) -> "_FrameBackendBase":
        """Add or replace a computed column."""
        raise NotImplementedError()

    def select(self, columns: Sequence[str]) -> "_FrameBackendBase":
        """Project columns."""
        raise NotImplementedError()

    def order_by(self, specs: Sequence[Dict[str, Any]]) -> "_FrameBackendBase":
        """Order rows by columns."""
        raise NotImplementedError()

    def summarise(
        self,
        aggregations: Sequence[Dict[str, Any]],
        group_by: Sequence[str],
    ) -> "_FrameBackendBase":
        """Aggregate rows with grouping."""
        raise NotImplementedError()

    def to_frame(self) -> "pd.DataFrame":
        raise NotImplementedError()

    def fallback(self) -> "_FrameBackendBase":
        """Fallback to a simpler backend."""
        raise _BackendFallback("No fallback available")


__all__ = ["_BackendFallback", "_FrameBackendBase", "FrameEvaluationContext", "_runtime_truthy"]
