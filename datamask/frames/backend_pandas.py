"""Vectorised pandas backend: the dataset namespace holds whole columns."""

from __future__ import annotations

import ast
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd

from datamask.errors import EvaluationError
from datamask.expressions import contains_calls
from datamask.namespaces import DatasetNamespace

from .backend_base import FrameEvaluationContext, _BackendFallback, _FrameBackendBase
from .backend_python import _PythonFrameBackend


class _PandasFrameBackend(_FrameBackendBase):
    def __init__(self, df: "pd.DataFrame", *, context: FrameEvaluationContext) -> None:
        super().__init__(context=context)
        self._df = df

    def _derive(self, df: "pd.DataFrame") -> "_PandasFrameBackend":
        return _PandasFrameBackend(df, context=self._context)

    def _evaluate_columns(self, tree: ast.AST) -> Any:
        if contains_calls(tree):
            raise _BackendFallback("Function calls are evaluated row by row")
        dataset = DatasetNamespace.from_frame(self._df, name=self._context.frame_name)
        try:
            return self._context.evaluate(tree, dataset)
        except (EvaluationError, TypeError, ValueError) as exc:
            raise _BackendFallback(f"Vectorised evaluation failed: {exc}") from exc

    def _as_column(self, value: Any) -> Any:
        if isinstance(value, pd.Series):
            if not value.index.equals(self._df.index):
                raise _BackendFallback("Expression changed the row index")
            return value
        if isinstance(value, np.ndarray):
            if value.ndim != 1 or len(value) != len(self._df):
                raise _BackendFallback("Expression did not produce one value per row")
            return pd.Series(value, index=self._df.index)
        return value

    def columns(self) -> List[str]:
        return [str(column) for column in self._df.columns]

    def filter(self, predicate: ast.AST) -> "_FrameBackendBase":
        result = self._as_column(self._evaluate_columns(predicate))
        if isinstance(result, pd.Series):
            mask = result.fillna(False).astype(bool)
            return self._derive(self._df[mask])
        if isinstance(result, (bool, np.bool_)) or result is None:
            return self._derive(self._df if result else self._df.iloc[0:0])
        raise _BackendFallback("Predicate is not boolean")

    def mutate(self, name: str, expression: ast.AST) -> "_FrameBackendBase":
        result = self._as_column(self._evaluate_columns(expression))
        if isinstance(result, (list, tuple, dict, set)):
            raise _BackendFallback("Container results are assigned row by row")
        return self._derive(self._df.assign(**{name: result}))

    def select(self, columns: Sequence[str]) -> "_FrameBackendBase":
        return self._derive(self._df.loc[:, list(columns)])

    def order_by(self, specs: Sequence[Dict[str, Any]]) -> "_FrameBackendBase":
        ordered = self._df.sort_values(
            by=[spec["name"] for spec in specs],
            ascending=[not spec["descending"] for spec in specs],
            kind="mergesort",
            na_position="last",
        )
        return self._derive(ordered)

    def summarise(
        self,
        aggregations: Sequence[Dict[str, Any]],
        group_by: Sequence[str],
    ) -> "_FrameBackendBase":
        raise _BackendFallback("Pandas summarise delegates to python backend")

    def to_frame(self) -> "pd.DataFrame":
        return self._df.reset_index(drop=True)

    def fallback(self) -> "_FrameBackendBase":
        return _PythonFrameBackend.from_frame(self._df, context=self._context)


__all__ = ["_PandasFrameBackend"]
