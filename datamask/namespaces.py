"""The two namespaces an expression is evaluated against."""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Union

import pandas as pd


class Namespace(Enum):
    """Selector used to force a lookup into exactly one namespace."""

    DATASET = "dataset"
    SCOPE = "scope"

    @classmethod
    def parse(cls, value: Union["Namespace", str, None]) -> Optional["Namespace"]:
        if value is None or isinstance(value, Namespace):
            return value
        text = str(value).strip().lower()
        if text in {"dataset", "data"}:
            return cls.DATASET
        if text in {"scope", "env"}:
            return cls.SCOPE
        raise ValueError(f"Unknown namespace '{value}'")


class _ReadOnlyNamespace(Mapping[str, Any]):
    def __init__(self, values: Mapping[str, Any]) -> None:
        self._values: Mapping[str, Any] = MappingProxyType(dict(values))

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and key in self._values

    def __repr__(self) -> str:
        return f"{type(self).__name__}({dict(self._values)!r})"


class DatasetNamespace(_ReadOnlyNamespace):
    """Column name to column value (one row) or column vector (whole table)."""

    def __init__(self, columns: Mapping[str, Any], *, name: Optional[str] = None) -> None:
        super().__init__(columns)
        self.name = name

    @property
    def columns(self) -> List[str]:
        return list(self._values.keys())

    @classmethod
    def from_frame(cls, df: "pd.DataFrame", *, name: Optional[str] = None) -> "DatasetNamespace":
        return cls({str(column): df[column] for column in df.columns}, name=name)

    @classmethod
    def from_row(cls, row: Mapping[str, Any], *, name: Optional[str] = None) -> "DatasetNamespace":
        return cls(row, name=name)

    @classmethod
    def from_rows(cls, rows: Sequence[Mapping[str, Any]], *, name: Optional[str] = None) -> "DatasetNamespace":
        ordered: List[str] = []
        for row in rows:
            for key in row.keys():
                if key not in ordered:
                    ordered.append(key)
        columns: Dict[str, List[Any]] = {column: [row.get(column) for row in rows] for column in ordered}
        return cls(columns, name=name)


class ScopeNamespace(_ReadOnlyNamespace):
    """Explicitly enumerated program values visible to an expression.

    Nothing is captured from the caller's frame; a value is in scope only if
    it was passed in.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, **extra: Any) -> None:
        merged: Dict[str, Any] = dict(values or {})
        merged.update(extra)
        super().__init__(merged)

    def child(self, **values: Any) -> "ScopeNamespace":
        return ScopeNamespace(self._values, **values)


__all__ = ["Namespace", "DatasetNamespace", "ScopeNamespace"]
