"""Column reference and aggregation normalization utilities."""

from __future__ import annotations

import ast
from typing import Any, Dict, List, Optional, Sequence

from datamask.errors import FrameOperationError
from datamask.expressions import compile_expression

AGGREGATION_FUNCTIONS = frozenset({"sum", "mean", "avg", "min", "max", "count", "nunique", "distinct", "std", "stddev"})


def _parse_aggregation(name: str, text: str) -> Dict[str, Any]:
    """Parse ``"func(expression)"`` into an aggregation spec."""
    tree = compile_expression(text)
    call = tree.body
    if not isinstance(call, ast.Call) or not isinstance(call.func, ast.Name):
        raise FrameOperationError(
            f"Aggregation '{name}' must look like func(expression), got {text!r}",
            hint="Example: summarise(avg_price=\"mean(price)\")",
        )
    function = call.func.id.lower()
    if function not in AGGREGATION_FUNCTIONS:
        raise FrameOperationError(f"Unsupported aggregation '{function}'")
    if call.keywords or len(call.args) > 1:
        raise FrameOperationError(f"Aggregation '{name}' takes at most one positional argument")
    expression: Optional[ast.AST] = None
    if call.args:
        expression = ast.Expression(body=call.args[0])
    elif function != "count":
        raise FrameOperationError(f"Aggregation '{function}' requires an expression")
    return {
        "name": name,
        "function": function,
        "expression": expression,
        "expression_source": ast.unparse(call.args[0]) if call.args else None,
    }


def _normalize_order_columns(columns: Sequence[Any], default_descending: bool) -> List[Dict[str, Any]]:
    order_specs: List[Dict[str, Any]] = []
    for column in columns:
        name: Optional[str] = None
        descending_value: Optional[bool] = None
        if isinstance(column, dict):
            name = column.get("name") or column.get("column")
            if "descending" in column:
                descending_value = bool(column.get("descending"))
            elif "desc" in column:
                descending_value = bool(column.get("desc"))
        else:
            name = str(column)
        if not name:
            continue
        if descending_value is None:
            descending_value = bool(default_descending)
        order_specs.append({"name": name, "descending": descending_value})
    return order_specs


__all__ = ["AGGREGATION_FUNCTIONS", "_parse_aggregation", "_normalize_order_columns"]
