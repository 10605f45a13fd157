"""
datamask: name resolution across a dataset and an explicit scope.

An expression evaluated against a table sees two namespaces: the table's
columns and the program values in scope. ``datamask`` makes the lookup rule
explicit and testable:

* ``resolver`` – ``resolve`` and ``resolve_indirect``; unqualified names try
  the dataset first, then the scope.
* ``expressions`` – a sandboxed expression evaluator whose ``_data`` and
  ``_env`` pronouns force a lookup into one namespace.
* ``frames`` – filter/mutate/select/arrange/summarise verbs on pandas
  DataFrames built on the evaluator.
* ``linter`` – reports names that are shadowed, scope-only or unknown.
* ``cli`` – the ``datamask`` command.
"""

from datamask.errors import (
    AmbiguousNameError,
    ConfigError,
    DatamaskError,
    DatasetLoadError,
    EvaluationError,
    ExpressionError,
    FrameOperationError,
    NameNotFoundError,
)
from datamask.namespaces import DatasetNamespace, Namespace, ScopeNamespace
from datamask.resolver import NameResolver, resolve, resolve_indirect
from datamask.expressions import evaluate_masked_expression
from datamask.frames import MaskedFrame
from datamask.linter import lint_expression

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "Namespace",
    "DatasetNamespace",
    "ScopeNamespace",
    "NameResolver",
    "resolve",
    "resolve_indirect",
    "evaluate_masked_expression",
    "MaskedFrame",
    "lint_expression",
    "DatamaskError",
    "NameNotFoundError",
    "AmbiguousNameError",
    "ExpressionError",
    "EvaluationError",
    "FrameOperationError",
    "DatasetLoadError",
    "ConfigError",
]
