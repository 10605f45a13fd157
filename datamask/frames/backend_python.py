"""Row-wise frame backend: the dataset namespace is one record at a time."""

from __future__ import annotations

import ast
import json
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

import pandas as pd

from datamask.errors import FrameOperationError
from datamask.namespaces import DatasetNamespace

from .backend_base import FrameEvaluationContext, _FrameBackendBase, _runtime_truthy


class _PythonFrameBackend(_FrameBackendBase):
    def __init__(
        self,
        rows: Sequence[Dict[str, Any]],
        columns: Sequence[str],
        *,
        context: FrameEvaluationContext,
    ) -> None:
        super().__init__(context=context)
        self._rows = [dict(row) for row in rows]
        self._columns = list(columns)

    @classmethod
    def from_frame(cls, df: "pd.DataFrame", *, context: FrameEvaluationContext) -> "_PythonFrameBackend":
        return cls(df.to_dict(orient="records"), [str(column) for column in df.columns], context=context)

    def _derive(self, rows: Sequence[Dict[str, Any]], columns: Optional[Sequence[str]] = None) -> "_PythonFrameBackend":
        return _PythonFrameBackend(rows, self._columns if columns is None else columns, context=self._context)

    def _evaluate_row(self, tree: ast.AST, row: Dict[str, Any]) -> Any:
        return self._context.evaluate(tree, DatasetNamespace.from_row(row, name=self._context.frame_name))

    def columns(self) -> List[str]:
        return list(self._columns)

    def filter(self, predicate: ast.AST) -> "_FrameBackendBase":
        filtered = [row for row in self._rows if _runtime_truthy(self._evaluate_row(predicate, row))]
        return self._derive(filtered)

    def mutate(self, name: str, expression: ast.AST) -> "_FrameBackendBase":
        rows: List[Dict[str, Any]] = []
        for row in self._rows:
            updated = dict(row)
            updated[name] = self._evaluate_row(expression, row)
            rows.append(updated)
        columns = self._columns if name in self._columns else self._columns + [name]
        return self._derive(rows, columns)

    def select(self, columns: Sequence[str]) -> "_FrameBackendBase":
        projected = [{column: row.get(column) for column in columns} for row in self._rows]
        return self._derive(projected, columns)

    def order_by(self, specs: Sequence[Dict[str, Any]]) -> "_FrameBackendBase":
        rows = [dict(row) for row in self._rows]
        for spec in reversed(specs):
            rows.sort(
                key=lambda item, column=spec["name"]: self._python_sort_key(item, column),
                reverse=spec["descending"],
            )
        return self._derive(rows)

    def summarise(
        self,
        aggregations: Sequence[Dict[str, Any]],
        group_by: Sequence[str],
    ) -> "_FrameBackendBase":
        groups: Dict[Tuple[Any, ...], List[Dict[str, Any]]] = {}
        if group_by:
            for row in self._rows:
                key = tuple(row.get(column) for column in group_by)
                groups.setdefault(key, []).append(row)
        else:
            groups[tuple()] = list(self._rows)
        results: List[Dict[str, Any]] = []
        for key, items in groups.items():
            base: Dict[str, Any] = {}
            for idx, column in enumerate(group_by):
                base[column] = key[idx]
            for aggregation in aggregations:
                base[aggregation["name"]] = self._aggregate(aggregation, items)
            results.append(base)
        columns = list(group_by) + [aggregation["name"] for aggregation in aggregations]
        return self._derive(results, columns)

    def _aggregate(self, aggregation: Dict[str, Any], items: Sequence[Dict[str, Any]]) -> Any:
        func = aggregation["function"]
        expr = aggregation.get("expression")
        values = [self._evaluate_row(expr, row) for row in items] if expr is not None else []
        if func == "count":
            if expr is None:
                return len(items)
            return sum(1 for value in values if _runtime_truthy(value))
        numeric: List[float] = []
        for value in values:
            try:
                number = float(value)
            except (TypeError, ValueError):
                continue
            if not math.isnan(number):
                numeric.append(number)
        if func == "sum":
            return sum(numeric)
        if func in {"avg", "mean"}:
            return sum(numeric) / len(numeric) if numeric else None
        if func == "min":
            return min(numeric) if numeric else None
        if func == "max":
            return max(numeric) if numeric else None
        if func in {"nunique", "distinct"}:
            return self._count_unique(values)
        if func in {"std", "stddev"}:
            return self._compute_stddev(numeric)
        raise FrameOperationError(f"Unsupported aggregation '{func}'")

    def to_frame(self) -> "pd.DataFrame":
        return pd.DataFrame(self._rows, columns=self._columns)

    def _python_sort_key(self, row: Dict[str, Any], column: str) -> Tuple[int, Any]:
        value = row.get(column)
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return (1, "")
        if isinstance(value, (int, float)):
            return (0, float(value))
        if isinstance(value, str):
            return (0, value.lower())
        try:
            return (0, float(value))
        except (TypeError, ValueError):
            return (0, str(value))

    def _count_unique(self, values: Sequence[Any]) -> int:
        seen: set[Any] = set()
        serialized: set[str] = set()
        for value in values:
            if value is None:
                continue
            try:
                seen.add(value)
            except TypeError:
                serialized.add(json.dumps(value, sort_keys=True, default=str))
        return len(seen) + len(serialized)

    def _compute_stddev(self, values: Sequence[float]) -> Optional[float]:
        count = len(values)
        if count == 0:
            return None
        if count == 1:
            return 0.0
        mean = sum(values) / count
        variance = sum((value - mean) ** 2 for value in values) / (count - 1)
        return math.sqrt(variance)


__all__ = ["_PythonFrameBackend"]
