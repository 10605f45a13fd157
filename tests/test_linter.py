from __future__ import annotations

from datamask.linter import LintSeverity, lint_expression


def _rules(result):
    return [(finding.rule_id, finding.identifier) for finding in result.findings]


def test_clean_expression_has_no_findings() -> None:
    result = lint_expression("x > _env.min and _data.y < 3", {"x": 1, "y": 2}, {"min": 0})
    assert result.findings == []
    assert result.success()


def test_shadowed_bare_name_is_a_warning() -> None:
    result = lint_expression("input > 2", {"x": 1, "input": 3}, {"input": {"var": "x"}})
    assert _rules(result) == [("shadowed-name", "input")]
    finding = result.findings[0]
    assert finding.severity is LintSeverity.WARNING
    assert "_data.input" in finding.suggestion
    assert result.success()
    assert result.warning_count() == 1


def test_scope_fallback_is_informational() -> None:
    result = lint_expression("carat > min_carat", {"carat": 1.0}, {"min_carat": 1})
    assert _rules(result) == [("scope-fallback", "min_carat")]
    assert result.findings[0].severity is LintSeverity.INFO
    assert "_env.min_carat" in result.findings[0].suggestion


def test_unknown_names_are_errors() -> None:
    result = lint_expression("colour == 'E' or _env.limit > _data.depth", {"x": 1}, {})
    assert _rules(result) == [
        ("unknown-name", "colour"),
        ("unknown-name", "limit"),
        ("unknown-name", "depth"),
    ]
    assert result.error_count() == 3
    assert not result.success()


def test_indirect_key_must_name_a_column() -> None:
    result = lint_expression("_data[_env.var] > 0", {"x": 1, "y": 2}, {"var": "z"})
    assert _rules(result) == [("indirect-key", "_env.var")]
    assert "x, y" in result.findings[0].suggestion


def test_indirect_key_with_missing_variable_reports_the_variable_once() -> None:
    result = lint_expression("_data[_env.var] > 0", {"x": 1}, {})
    assert _rules(result) == [("unknown-name", "var")]


def test_repeated_names_are_reported_once() -> None:
    result = lint_expression("input > 1 and input < 5", {"input": 3}, {"input": 0})
    assert len(result.findings) == 1


def test_syntax_errors_are_collected() -> None:
    result = lint_expression("x >", {"x": 1}, {})
    assert result.findings == []
    assert result.errors
    assert not result.success()


def test_findings_serialise_to_payload() -> None:
    result = lint_expression("min", {}, {"min": 0})
    assert result.findings[0].to_payload() == {
        "rule_id": "scope-fallback",
        "severity": "info",
        "identifier": "min",
        "message": "'min' is not a column and falls back to scope",
        "suggestion": "Write _env.min so a future column named 'min' cannot shadow it",
    }
