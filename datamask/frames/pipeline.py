"""Dataframe verbs evaluated with the frame as the dataset namespace."""

from __future__ import annotations

import ast
import logging
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from datamask.config import EvaluationSettings
from datamask.errors import ExpressionError, FrameOperationError, NameNotFoundError
from datamask.expressions import compile_expression
from datamask.namespaces import DatasetNamespace, Namespace, ScopeNamespace
from datamask.resolver import lookup_column

from .backend_base import FrameEvaluationContext, _BackendFallback, _FrameBackendBase
from .backend_pandas import _PandasFrameBackend
from .backend_python import _PythonFrameBackend
from .normalizers import _normalize_order_columns, _parse_aggregation

logger = logging.getLogger(__name__)

ColumnReference = Union[str, Dict[str, Any]]


class MaskedFrame:
    """A pandas DataFrame paired with the scope its expressions may use.

    Every verb returns a new frame; neither the wrapped DataFrame nor the
    scope is modified.

    >>> frame = MaskedFrame(df, {"min_carat": 1.0})        # doctest: +SKIP
    >>> frame.filter("carat > _env.min_carat").to_rows()    # doctest: +SKIP
    """

    def __init__(
        self,
        df: "pd.DataFrame",
        scope: Optional[Mapping[str, Any]] = None,
        *,
        name: Optional[str] = None,
        settings: Optional[EvaluationSettings] = None,
        extra_callables: Optional[Mapping[str, Callable[..., Any]]] = None,
        group_by: Sequence[str] = (),
    ) -> None:
        if not isinstance(scope, ScopeNamespace):
            scope = ScopeNamespace(scope or {})
        self._df = df
        self._context = FrameEvaluationContext(
            scope=scope,
            settings=settings or EvaluationSettings(),
            frame_name=name,
            extra_callables=dict(extra_callables or {}),
        )
        self._group_by: Tuple[str, ...] = tuple(group_by)

    @property
    def columns(self) -> List[str]:
        return [str(column) for column in self._df.columns]

    @property
    def groups(self) -> Tuple[str, ...]:
        return self._group_by

    @property
    def scope(self) -> ScopeNamespace:
        return self._context.scope

    def __len__(self) -> int:
        return len(self._df)

    def __repr__(self) -> str:
        label = self._context.frame_name or "frame"
        return f"MaskedFrame({label!r}, rows={len(self._df)}, columns={self.columns})"

    def _derive(
        self,
        df: "pd.DataFrame",
        *,
        group_by: Optional[Sequence[str]] = None,
        scope: Optional[ScopeNamespace] = None,
    ) -> "MaskedFrame":
        return MaskedFrame(
            df,
            scope if scope is not None else self._context.scope,
            name=self._context.frame_name,
            settings=self._context.settings,
            extra_callables=self._context.extra_callables,
            group_by=self._group_by if group_by is None else group_by,
        )

    def _create_backend(self) -> _FrameBackendBase:
        if self._context.settings.vectorize:
            return _PandasFrameBackend(self._df, context=self._context)
        return _PythonFrameBackend.from_frame(self._df, context=self._context)

    def _execute(self, operator: Callable[[_FrameBackendBase], _FrameBackendBase]) -> "pd.DataFrame":
        backend = self._create_backend()
        while True:
            try:
                return operator(backend).to_frame()
            except _BackendFallback as exc:
                logger.debug("Falling back from %s: %s", type(backend).__name__, exc)
                try:
                    backend = backend.fallback()
                except _BackendFallback as final:
                    raise FrameOperationError(str(final)) from final

    def _resolve_column(self, entry: str) -> str:
        """Turn a column reference into a column name of this frame.

        Accepts a literal column name, ``_data.name``, ``_data["name"]`` or
        ``_data[expr]`` where ``expr`` usually reads a scope variable.
        """
        if entry in self.columns:
            return entry
        tree = compile_expression(entry)
        body = tree.body
        pronoun = self._context.settings.data_pronoun
        dataset = DatasetNamespace.from_frame(self._df, name=self._context.frame_name)
        if isinstance(body, ast.Name):
            raise NameNotFoundError(entry, (Namespace.DATASET,))
        if isinstance(body, ast.Attribute) and isinstance(body.value, ast.Name) and body.value.id == pronoun:
            key: Any = body.attr
        elif isinstance(body, ast.Subscript) and isinstance(body.value, ast.Name) and body.value.id == pronoun:
            key = self._context.evaluate(ast.Expression(body=body.slice), dataset)
        else:
            raise ExpressionError(
                f"Column reference {entry!r} must be a column name or a {pronoun} lookup",
                hint=f"Write {pronoun}[{self._context.settings.env_pronoun}.var] to pick a column by variable",
            )
        lookup_column(key, dataset)
        return key

    def filter(self, expression: str) -> "MaskedFrame":
        tree = compile_expression(expression)
        return self._derive(self._execute(lambda backend: backend.filter(tree)))

    def mutate(self, **expressions: str) -> "MaskedFrame":
        frame = self
        for name, expression in expressions.items():
            tree = compile_expression(expression)
            frame = frame._derive(frame._execute(lambda backend, name=name, tree=tree: backend.mutate(name, tree)))
        return frame

    def select(self, *columns: str) -> "MaskedFrame":
        resolved = [self._resolve_column(column) for column in columns]
        kept_groups = [column for column in self._group_by if column in resolved]
        return self._derive(self._execute(lambda backend: backend.select(resolved)), group_by=kept_groups)

    def arrange(self, *columns: ColumnReference, descending: bool = False) -> "MaskedFrame":
        specs = _normalize_order_columns(columns, descending)
        for spec in specs:
            spec["name"] = self._resolve_column(spec["name"])
        if not specs:
            return self
        return self._derive(self._execute(lambda backend: backend.order_by(specs)))

    def group_by(self, *columns: str) -> "MaskedFrame":
        return self._derive(self._df, group_by=[self._resolve_column(column) for column in columns])

    def ungroup(self) -> "MaskedFrame":
        return self._derive(self._df, group_by=())

    def summarise(self, **aggregations: str) -> "MaskedFrame":
        specs = [_parse_aggregation(name, text) for name, text in aggregations.items()]
        group_by = list(self._group_by)
        result = self._execute(lambda backend: backend.summarise(specs, group_by))
        return self._derive(result, group_by=())

    def with_scope(self, **values: Any) -> "MaskedFrame":
        return self._derive(self._df, scope=self._context.scope.child(**values))

    def evaluate(self, expression: str) -> Any:
        """Evaluate ``expression`` once with whole columns in the dataset namespace."""
        dataset = DatasetNamespace.from_frame(self._df, name=self._context.frame_name)
        return self._context.evaluate(compile_expression(expression), dataset)

    def to_frame(self) -> "pd.DataFrame":
        return self._df.copy()

    def to_rows(self) -> List[Dict[str, Any]]:
        return self._df.to_dict(orient="records")


__all__ = ["MaskedFrame"]
