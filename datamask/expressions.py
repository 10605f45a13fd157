"""Sandboxed expression evaluation over a dataset and a scope namespace.

Bare names go through :class:`~datamask.resolver.NameResolver`, so a dataset
column wins over a scope value of the same name. Two pronouns make the
namespace explicit::

    carat > _env.min_carat          # threshold always comes from scope
    _data[_env.var] > 0             # column chosen by a scope variable
    _data.input == 3                # the column, even if scope has ``input``

Operands may be scalars (row-wise evaluation) or pandas Series / numpy arrays
(vectorised evaluation); boolean operators combine vectors element-wise.
"""

from __future__ import annotations

import ast
import inspect
import math
import operator
from contextlib import contextmanager
from dataclasses import dataclass
from types import SimpleNamespace
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional, Set, Union

import numpy as np
import pandas as pd

from datamask.errors import DatamaskError, EvaluationError, ExpressionError
from datamask.namespaces import Namespace
from datamask.resolver import NameResolver

__all__ = [
    "DEFAULT_DATA_PRONOUN",
    "DEFAULT_ENV_PRONOUN",
    "NameReference",
    "MaskedExpressionEvaluator",
    "compile_expression",
    "collect_references",
    "contains_calls",
    "evaluate_masked_expression",
]

DEFAULT_DATA_PRONOUN = "_data"
DEFAULT_ENV_PRONOUN = "_env"

_SAFE_DICT_METHODS: Set[str] = {"get", "items", "values", "keys"}
_SAFE_STR_METHODS: Set[str] = {
    "lower",
    "upper",
    "title",
    "strip",
    "lstrip",
    "rstrip",
    "startswith",
    "endswith",
    "capitalize",
    "casefold",
    "replace",
    "split",
    "join",
}
_SAFE_LIST_METHODS: Set[str] = {"count", "index"}
_DEFAULT_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    "len": len,
    "min": min,
    "max": max,
    "sum": sum,
    "abs": abs,
    "round": round,
    "int": int,
    "float": float,
    "str": str,
    "bool": bool,
}
_NAME_CONSTANTS: Dict[str, Any] = {"True": True, "False": False, "None": None}

_BINARY_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}
_COMPARE_OPERATORS: Dict[type, Callable[[Any, Any], Any]] = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.Is: operator.is_,
    ast.IsNot: operator.is_not,
}
_SPEC_BINARY_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "+": operator.add,
    "-": operator.sub,
    "*": operator.mul,
    "/": operator.truediv,
    "%": operator.mod,
    "==": operator.eq,
    "=": operator.eq,
    "!=": operator.ne,
    "<>": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _is_vector(value: Any) -> bool:
    return isinstance(value, (pd.Series, np.ndarray))


def _logical_not(value: Any) -> Any:
    if _is_vector(value):
        return ~value.astype(bool)
    return not value


def _membership(left: Any, right: Any) -> Any:
    if _is_vector(right):
        # A column on the right is tested value by value, never by index label.
        items = list(right)
        if _is_vector(left):
            hits = [needle in item for needle, item in zip(left, items)]
        else:
            hits = [left in item for item in items]
        for candidate in (right, left):
            if isinstance(candidate, pd.Series):
                return pd.Series(hits, index=candidate.index, dtype=bool)
        return np.array(hits, dtype=bool)
    if isinstance(left, pd.Series):
        return left.isin(list(right))
    if isinstance(left, np.ndarray):
        return np.isin(left, list(right))
    return left in right


@contextmanager
def _evaluation_errors() -> Iterator[None]:
    """Report failures of operators and calls on the data as ``EvaluationError``."""
    try:
        yield
    except DatamaskError:
        raise
    except (TypeError, ValueError, ArithmeticError, LookupError, AttributeError) as exc:
        raise EvaluationError(f"Could not evaluate expression: {exc}") from exc


def compile_expression(expression: str) -> ast.Expression:
    if not isinstance(expression, str) or not expression.strip():
        raise ExpressionError("Expression must be a non-empty string")
    try:
        return ast.parse(expression.strip(), mode="eval")
    except SyntaxError as exc:
        raise ExpressionError(f"Invalid expression {expression!r}: {exc.msg}") from exc


class MaskedExpressionEvaluator(ast.NodeVisitor):
    """Evaluate a restricted subset of Python expressions against two namespaces."""

    def __init__(
        self,
        resolver: NameResolver,
        *,
        data_pronoun: str = DEFAULT_DATA_PRONOUN,
        env_pronoun: str = DEFAULT_ENV_PRONOUN,
        extra_callables: Optional[Mapping[str, Callable[..., Any]]] = None,
    ) -> None:
        self._resolver = resolver
        self._pronouns: Dict[str, Namespace] = {
            data_pronoun: Namespace.DATASET,
            env_pronoun: Namespace.SCOPE,
        }
        self._functions: Dict[str, Callable[..., Any]] = dict(_DEFAULT_FUNCTIONS)
        if extra_callables:
            self._functions.update(extra_callables)
        self._safe_callables = set(self._functions.values())

    def lookup_function(self, name: str) -> Optional[Callable[..., Any]]:
        return self._functions.get(name)

    def evaluate(self, expression: Union[str, ast.AST]) -> Any:
        tree = compile_expression(expression) if isinstance(expression, str) else expression
        with _evaluation_errors():
            return self.visit(tree)

    def visit(self, node: ast.AST) -> Any:  # type: ignore[override]
        method = getattr(self, f"visit_{type(node).__name__}", None)
        if method is None:
            raise ExpressionError(f"Unsupported expression element '{type(node).__name__}'")
        return method(node)  # type: ignore[misc]

    def visit_Expression(self, node: ast.Expression) -> Any:
        return self.visit(node.body)

    def visit_Constant(self, node: ast.Constant) -> Any:
        return node.value

    def visit_Name(self, node: ast.Name) -> Any:
        identifier = node.id
        if identifier in _NAME_CONSTANTS:
            return _NAME_CONSTANTS[identifier]
        if identifier.startswith("__"):
            raise ExpressionError(f"Name '{identifier}' is not permitted")
        if identifier in self._pronouns:
            raise ExpressionError(
                f"'{identifier}' must be followed by an attribute or subscript",
                hint=f"Write {identifier}.name or {identifier}[\"name\"]",
            )
        return self._resolver.resolve(identifier)

    def _pronoun_of(self, node: ast.AST) -> Optional[Namespace]:
        if isinstance(node, ast.Name):
            return self._pronouns.get(node.id)
        return None

    def visit_BoolOp(self, node: ast.BoolOp) -> Any:
        is_and = isinstance(node.op, ast.And)
        result = self.visit(node.values[0])
        for value_node in node.values[1:]:
            if _is_vector(result):
                other = self.visit(value_node)
                result = (result & other) if is_and else (result | other)
            elif is_and and not result:
                return result
            elif not is_and and result:
                return result
            else:
                result = self.visit(value_node)
        return result

    def visit_UnaryOp(self, node: ast.UnaryOp) -> Any:
        operand = self.visit(node.operand)
        if isinstance(node.op, ast.UAdd):
            return +operand
        if isinstance(node.op, ast.USub):
            return -operand
        if isinstance(node.op, ast.Not):
            return _logical_not(operand)
        raise ExpressionError("Unsupported unary operator")

    def visit_BinOp(self, node: ast.BinOp) -> Any:
        func = _BINARY_OPERATORS.get(type(node.op))
        if func is None:
            raise ExpressionError("Unsupported binary operator")
        return func(self.visit(node.left), self.visit(node.right))

    def visit_Compare(self, node: ast.Compare) -> Any:
        left = self.visit(node.left)
        result: Any = True
        for comparator, op in zip(node.comparators, node.ops):
            right = self.visit(comparator)
            if isinstance(op, ast.In):
                outcome = _membership(left, right)
            elif isinstance(op, ast.NotIn):
                outcome = _logical_not(_membership(left, right))
            else:
                func = _COMPARE_OPERATORS.get(type(op))
                if func is None:
                    raise ExpressionError("Unsupported comparison operator")
                outcome = func(left, right)
            if _is_vector(outcome) or _is_vector(result):
                result = outcome if result is True else (result & outcome)
            else:
                result = outcome
                if not outcome:
                    return False
            left = right
        return result

    def visit_Call(self, node: ast.Call) -> Any:
        func = self._resolve_callable(node.func)
        args = []
        for arg in node.args:
            if isinstance(arg, ast.Starred):
                raise ExpressionError("Argument unpacking is not permitted")
            args.append(self.visit(arg))
        kwargs: Dict[str, Any] = {}
        for kw in node.keywords:
            if kw.arg is None:
                raise ExpressionError("Argument unpacking is not permitted")
            kwargs[kw.arg] = self.visit(kw.value)
        return func(*args, **kwargs)

    def _resolve_callable(self, node: ast.AST) -> Callable[..., Any]:
        if isinstance(node, ast.Name):
            func = self._functions.get(node.id)
            if func is None:
                raise ExpressionError(f"Call to unsupported function '{node.id}'")
            return func
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id == "math":
            if node.attr.startswith("_") or not hasattr(math, node.attr):
                raise ExpressionError(f"Unknown math function '{node.attr}'")
            return getattr(math, node.attr)
        func = self.visit(node)
        if not self._is_safe_callable(func):
            raise ExpressionError("Call to unsupported function")
        return func

    def _is_safe_callable(self, func: Any) -> bool:
        if func in self._safe_callables:
            return True
        owner = getattr(func, "__self__", None)
        name = getattr(func, "__name__", "")
        if isinstance(owner, dict) and name in _SAFE_DICT_METHODS:
            return True
        if isinstance(owner, str) and name in _SAFE_STR_METHODS:
            return True
        if isinstance(owner, list) and name in _SAFE_LIST_METHODS:
            return True
        return False

    def visit_Attribute(self, node: ast.Attribute) -> Any:
        attr = node.attr
        if attr.startswith("__"):
            raise ExpressionError(f"Attribute '{attr}' is not permitted")
        namespace = self._pronoun_of(node.value)
        if namespace is not None:
            return self._resolver.resolve(attr, namespace)
        value = self.visit(node.value)
        if isinstance(value, dict):
            if attr in value:
                return value[attr]
            if attr in _SAFE_DICT_METHODS:
                return getattr(value, attr)
        if isinstance(value, str) and attr in _SAFE_STR_METHODS:
            return getattr(value, attr)
        if isinstance(value, list) and attr in _SAFE_LIST_METHODS:
            return getattr(value, attr)
        if isinstance(value, SimpleNamespace) and hasattr(value, attr):
            resolved = getattr(value, attr)
            if inspect.ismethod(resolved) and not self._is_safe_callable(resolved):
                raise ExpressionError("Call to unsupported method")
            return resolved
        raise ExpressionError(f"Access to attribute '{attr}' is not permitted")

    def visit_Subscript(self, node: ast.Subscript) -> Any:
        namespace = self._pronoun_of(node.value)
        if namespace is not None:
            if isinstance(node.slice, ast.Slice):
                raise ExpressionError("Pronouns cannot be sliced")
            key = self.visit(node.slice)
            if namespace is Namespace.DATASET:
                return self._resolver.lookup_column(key)
            if not isinstance(key, str):
                raise ExpressionError(f"Scope keys must be strings, got {type(key).__name__}")
            return self._resolver.resolve(key, Namespace.SCOPE)
        value = self.visit(node.value)
        slice_node = node.slice
        if isinstance(slice_node, ast.Slice):
            lower = self.visit(slice_node.lower) if slice_node.lower is not None else None
            upper = self.visit(slice_node.upper) if slice_node.upper is not None else None
            step = self.visit(slice_node.step) if slice_node.step is not None else None
            return value[slice(lower, upper, step)]
        return value[self.visit(slice_node)]

    def visit_List(self, node: ast.List) -> Any:
        return [self.visit(element) for element in node.elts]

    def visit_Tuple(self, node: ast.Tuple) -> Any:
        return tuple(self.visit(element) for element in node.elts)

    def visit_Set(self, node: ast.Set) -> Any:
        return {self.visit(element) for element in node.elts}

    def visit_Dict(self, node: ast.Dict) -> Any:
        if any(key is None for key in node.keys):
            raise ExpressionError("Dict unpacking is not permitted")
        return {self.visit(key): self.visit(value) for key, value in zip(node.keys, node.values)}

    def visit_IfExp(self, node: ast.IfExp) -> Any:
        test = self.visit(node.test)
        if _is_vector(test):
            chosen = np.where(test, self.visit(node.body), self.visit(node.orelse))
            if isinstance(test, pd.Series):
                return pd.Series(chosen, index=test.index)
            return chosen
        return self.visit(node.body) if test else self.visit(node.orelse)

    def generic_visit(self, node: ast.AST) -> Any:  # pragma: no cover - visit() dispatches first
        raise ExpressionError(f"Unsupported expression element '{type(node).__name__}'")


class _ExpressionSpecEvaluator:
    """Evaluate structured expression dictionaries."""

    def __init__(self, evaluator: MaskedExpressionEvaluator, resolver: NameResolver) -> None:
        self._evaluator = evaluator
        self._resolver = resolver

    def evaluate(self, spec: Any) -> Any:
        if isinstance(spec, list):
            return [self.evaluate(item) for item in spec]
        if not isinstance(spec, dict):
            return spec
        spec_type = spec.get("type")
        if spec_type == "literal":
            return spec.get("value")
        if spec_type == "name":
            name = spec.get("name")
            if not name:
                raise ExpressionError("Name reference is missing identifier")
            return self._resolver.resolve(name, spec.get("namespace"))
        if spec_type == "indirect":
            variable = spec.get("variable")
            if not variable:
                raise ExpressionError("Indirect reference is missing its variable")
            return self._resolver.resolve_indirect(variable, spec.get("namespace") or Namespace.SCOPE)
        if spec_type == "binary":
            return self._evaluate_binary(spec)
        if spec_type == "unary":
            op = (spec.get("op") or "").lower()
            operand = self.evaluate(spec.get("operand"))
            if op in {"not", "!"}:
                return _logical_not(operand)
            if op == "-":
                return -operand
            if op == "+":
                return +operand
            raise ExpressionError(f"Unsupported unary operator '{op}'")
        if spec_type == "call":
            function = self._evaluator.lookup_function(str(spec.get("function") or ""))
            if function is None:
                raise ExpressionError(f"Call to unsupported function '{spec.get('function')}'")
            return function(*[self.evaluate(arg) for arg in spec.get("arguments", [])])
        if spec_type == "list":
            return [self.evaluate(item) for item in spec.get("values", [])]
        raise ExpressionError(f"Unsupported expression node '{spec_type}'")

    def _evaluate_binary(self, spec: Dict[str, Any]) -> Any:
        op = (spec.get("op") or "").lower()
        left = self.evaluate(spec.get("left"))
        if op in {"and", "&&"}:
            if _is_vector(left):
                return left & self.evaluate(spec.get("right"))
            return self.evaluate(spec.get("right")) if left else left
        if op in {"or", "||"}:
            if _is_vector(left):
                return left | self.evaluate(spec.get("right"))
            return left if left else self.evaluate(spec.get("right"))
        right = self.evaluate(spec.get("right"))
        if op == "in":
            return _membership(left, right)
        if op in {"not in", "notin"}:
            return _logical_not(_membership(left, right))
        func = _SPEC_BINARY_OPERATORS.get(op)
        if func is None:
            raise ExpressionError(f"Unsupported binary operator '{op}'")
        return func(left, right)


def evaluate_masked_expression(
    expression: Any,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
    *,
    on_shadow: str = "ignore",
    data_pronoun: str = DEFAULT_DATA_PRONOUN,
    env_pronoun: str = DEFAULT_ENV_PRONOUN,
    extra_callables: Optional[Mapping[str, Callable[..., Any]]] = None,
) -> Any:
    """Evaluate a string or structured expression against two namespaces."""

    resolver = NameResolver(
        dataset,
        scope,
        on_shadow=on_shadow,
        data_pronoun=data_pronoun,
        env_pronoun=env_pronoun,
    )
    evaluator = MaskedExpressionEvaluator(
        resolver,
        data_pronoun=data_pronoun,
        env_pronoun=env_pronoun,
        extra_callables=extra_callables,
    )
    if isinstance(expression, (dict, list)):
        with _evaluation_errors():
            return _ExpressionSpecEvaluator(evaluator, resolver).evaluate(expression)
    if isinstance(expression, (str, ast.AST)):
        return evaluator.evaluate(expression)
    raise ExpressionError("Unsupported expression representation")


@dataclass(frozen=True)
class NameReference:
    """A name an expression will look up, as written."""

    identifier: str
    tag: Optional[Namespace] = None
    indirect: bool = False


def collect_references(
    expression: Union[str, ast.AST],
    *,
    data_pronoun: str = DEFAULT_DATA_PRONOUN,
    env_pronoun: str = DEFAULT_ENV_PRONOUN,
    functions: Iterable[str] = (),
) -> List[NameReference]:
    """List every namespace lookup in ``expression`` in source order.

    An indirect reference carries the source of its key expression as
    ``identifier``; the names inside that key are reported separately.
    """

    tree = compile_expression(expression) if isinstance(expression, str) else expression
    pronouns = {data_pronoun: Namespace.DATASET, env_pronoun: Namespace.SCOPE}
    callables = set(_DEFAULT_FUNCTIONS) | set(functions)
    references: List[NameReference] = []

    def walk(node: ast.AST) -> None:
        if isinstance(node, ast.Name):
            if node.id not in _NAME_CONSTANTS and node.id not in pronouns:
                references.append(NameReference(node.id))
            return
        if isinstance(node, ast.Attribute) and isinstance(node.value, ast.Name) and node.value.id in pronouns:
            references.append(NameReference(node.attr, pronouns[node.value.id]))
            return
        if isinstance(node, ast.Subscript) and isinstance(node.value, ast.Name) and node.value.id in pronouns:
            tag = pronouns[node.value.id]
            key = node.slice
            if isinstance(key, ast.Constant) and isinstance(key.value, str):
                references.append(NameReference(key.value, tag))
                return
            references.append(NameReference(ast.unparse(key), tag, indirect=True))
            walk(key)
            return
        if isinstance(node, ast.Call):
            func = node.func
            if isinstance(func, ast.Name) and func.id in callables:
                pass
            elif isinstance(func, ast.Attribute) and isinstance(func.value, ast.Name) and func.value.id == "math":
                pass
            else:
                walk(func)
            for arg in node.args:
                walk(arg)
            for kw in node.keywords:
                walk(kw.value)
            return
        for child in ast.iter_child_nodes(node):
            walk(child)

    walk(tree)
    return references


def contains_calls(expression: Union[str, ast.AST]) -> bool:
    tree = compile_expression(expression) if isinstance(expression, str) else expression
    return any(isinstance(node, ast.Call) for node in ast.walk(tree))
