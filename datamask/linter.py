"""Static checks for names that resolve somewhere other than intended."""

from __future__ import annotations

import ast
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Mapping, Optional

from datamask.errors import DatamaskError, ExpressionError
from datamask.expressions import (
    DEFAULT_DATA_PRONOUN,
    DEFAULT_ENV_PRONOUN,
    MaskedExpressionEvaluator,
    NameReference,
    collect_references,
    compile_expression,
)
from datamask.namespaces import Namespace
from datamask.resolver import NameResolver

logger = logging.getLogger(__name__)


class LintSeverity(Enum):
    """Severity levels for lint findings."""
    ERROR = "error"
    WARNING = "warning"
    INFO = "info"


@dataclass
class LintFinding:
    """A single lint finding."""
    rule_id: str
    message: str
    severity: LintSeverity
    identifier: Optional[str] = None
    suggestion: Optional[str] = None

    def to_payload(self) -> dict:
        return {
            "rule_id": self.rule_id,
            "severity": self.severity.value,
            "identifier": self.identifier,
            "message": self.message,
            "suggestion": self.suggestion,
        }


@dataclass
class LintResult:
    """Result of linting one expression."""
    findings: List[LintFinding] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    def success(self) -> bool:
        return not self.errors and self.error_count() == 0

    def error_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.ERROR)

    def warning_count(self) -> int:
        return sum(1 for f in self.findings if f.severity == LintSeverity.WARNING)


def lint_expression(
    expression: str,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
    *,
    data_pronoun: str = DEFAULT_DATA_PRONOUN,
    env_pronoun: str = DEFAULT_ENV_PRONOUN,
) -> LintResult:
    """Report shadowed, scope-only, unknown and bad indirect names."""
    result = LintResult()
    try:
        tree = compile_expression(expression)
        references = collect_references(tree, data_pronoun=data_pronoun, env_pronoun=env_pronoun)
    except ExpressionError as exc:
        result.errors.append(exc.message)
        return result

    resolver = NameResolver(dataset, scope, data_pronoun=data_pronoun, env_pronoun=env_pronoun)
    evaluator = MaskedExpressionEvaluator(resolver, data_pronoun=data_pronoun, env_pronoun=env_pronoun)
    seen = set()
    for reference in references:
        if reference in seen:
            continue
        seen.add(reference)
        if reference.indirect:
            finding = _check_indirect(reference, evaluator, dataset, data_pronoun)
        elif reference.tag is None:
            finding = _check_bare(reference, dataset, scope, data_pronoun, env_pronoun)
        else:
            finding = _check_tagged(reference, dataset, scope)
        if finding is not None:
            result.findings.append(finding)
    logger.debug("Linted %r: %d findings", expression, len(result.findings))
    return result


def _check_bare(
    reference: NameReference,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
    data_pronoun: str,
    env_pronoun: str,
) -> Optional[LintFinding]:
    name = reference.identifier
    in_data = name in dataset
    in_scope = name in scope
    if in_data and in_scope:
        return LintFinding(
            rule_id="shadowed-name",
            message=f"'{name}' is a dataset column and also a scope value; the column is used",
            severity=LintSeverity.WARNING,
            identifier=name,
            suggestion=f"Write {data_pronoun}.{name} for the column or {env_pronoun}.{name} for the scope value",
        )
    if in_scope:
        return LintFinding(
            rule_id="scope-fallback",
            message=f"'{name}' is not a column and falls back to scope",
            severity=LintSeverity.INFO,
            identifier=name,
            suggestion=f"Write {env_pronoun}.{name} so a future column named '{name}' cannot shadow it",
        )
    if not in_data:
        return LintFinding(
            rule_id="unknown-name",
            message=f"'{name}' is neither a dataset column nor a scope value",
            severity=LintSeverity.ERROR,
            identifier=name,
        )
    return None


def _check_tagged(
    reference: NameReference,
    dataset: Mapping[str, Any],
    scope: Mapping[str, Any],
) -> Optional[LintFinding]:
    namespace = dataset if reference.tag is Namespace.DATASET else scope
    if reference.identifier in namespace:
        return None
    return LintFinding(
        rule_id="unknown-name",
        message=f"'{reference.identifier}' is not defined in the {reference.tag.value} namespace",
        severity=LintSeverity.ERROR,
        identifier=reference.identifier,
    )


def _check_indirect(
    reference: NameReference,
    evaluator: MaskedExpressionEvaluator,
    dataset: Mapping[str, Any],
    data_pronoun: str,
) -> Optional[LintFinding]:
    if reference.tag is not Namespace.DATASET:
        return None
    try:
        key = evaluator.evaluate(ast.parse(reference.identifier, mode="eval"))
    except DatamaskError:
        # The names inside the key are reported on their own.
        return None
    if isinstance(key, str) and key in dataset:
        return None
    return LintFinding(
        rule_id="indirect-key",
        message=f"{data_pronoun}[{reference.identifier}] evaluates to {key!r}, which is not a dataset column",
        severity=LintSeverity.ERROR,
        identifier=reference.identifier,
        suggestion="Check the variable holds one of: " + ", ".join(str(column) for column in dataset),
    )


__all__ = ["LintSeverity", "LintFinding", "LintResult", "lint_expression"]
