"""Tests for the datamask CLI."""

import json

import pytest

from datamask.cli import build_parser, main
from datamask.errors import NameNotFoundError

pytestmark = pytest.mark.cli


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    """Run the CLI from an empty directory holding one small dataset."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DATAMASK_ON_SHADOW", raising=False)
    monkeypatch.delenv("DATAMASK_VERBOSE", raising=False)
    (tmp_path / "data.csv").write_text("x,y,input\n1,2,3\n4,5,6\n7,8,9\n", encoding="utf-8")
    return tmp_path


def _run(capsys, *argv):
    code = main(list(argv))
    captured = capsys.readouterr()
    return code, captured.out, captured.err


def test_resolve_prefers_column(workspace, capsys):
    code, out, _ = _run(capsys, "resolve", "input", "--data", "data.csv", "--row", "0", "-s", 'input={"var": "x"}')
    assert code == 0
    assert json.loads(out) == 3


def test_resolve_with_scope_namespace(workspace, capsys):
    code, out, _ = _run(
        capsys, "resolve", "input", "-n", "scope", "--data", "data.csv", "--row", "0", "-s", 'input={"var": "x"}'
    )
    assert code == 0
    assert json.loads(out) == {"var": "x"}


def test_resolve_indirect(workspace, capsys):
    code, out, _ = _run(capsys, "resolve", "var", "--indirect", "--data", "data.csv", "--row", "1", "-s", "var=y")
    assert code == 0
    assert json.loads(out) == 5


def test_resolve_missing_name_exits_with_two(workspace, capsys):
    code, _, err = _run(capsys, "resolve", "carat", "--data", "data.csv", "--row", "0")
    assert code == 2
    assert "DM_NOT_FOUND" in err
    assert "dataset or scope" in err


def test_eval_over_whole_columns(workspace, capsys):
    code, out, _ = _run(capsys, "eval", "x > _env.min", "--data", "data.csv", "-s", "min=2")
    assert code == 0
    assert json.loads(out) == [False, True, True]


def test_filter_prints_rows(workspace, capsys):
    code, out, _ = _run(capsys, "filter", "_data[_env.var] > 4", "--data", "data.csv", "-s", "var=y")
    assert code == 0
    assert json.loads(out) == [{"x": 4, "y": 5, "input": 6}, {"x": 7, "y": 8, "input": 9}]


def test_filter_writes_csv(workspace, capsys):
    code, out, _ = _run(capsys, "filter", "input > 3", "--data", "data.csv", "-o", "out.csv")
    assert code == 0
    assert "Wrote 2 rows" in out
    assert (workspace / "out.csv").read_text(encoding="utf-8").splitlines()[0] == "x,y,input"


def test_lint_warning_does_not_fail(workspace, capsys):
    code, out, _ = _run(capsys, "lint", "x > input", "--data", "data.csv", "-s", "input=3")
    payload = json.loads(out)
    assert code == 0
    assert [finding["rule_id"] for finding in payload["findings"]] == ["shadowed-name"]


def test_lint_error_fails(workspace, capsys):
    code, out, _ = _run(capsys, "lint", "colour == 1", "--data", "data.csv")
    assert code == 1
    assert json.loads(out)["findings"][0]["rule_id"] == "unknown-name"


def test_config_file_enables_strict_mode(workspace, capsys):
    (workspace / "datamask.toml").write_text('[evaluation]\non_shadow = "error"\n', encoding="utf-8")
    code, _, err = _run(capsys, "eval", "input", "--data", "data.csv", "--row", "0", "-s", "input=1")
    assert code == 2
    assert "DM_AMBIGUOUS" in err


def test_config_scope_defaults(workspace, capsys):
    (workspace / "datamask.toml").write_text("[scope]\nlimit = 5\n", encoding="utf-8")
    code, out, _ = _run(capsys, "eval", "x > limit", "--data", "data.csv", "--row", "2")
    assert code == 0
    assert json.loads(out) is True


def test_missing_dataset_exits_with_one(workspace, capsys):
    code, _, err = _run(capsys, "eval", "x", "--data", "missing.csv")
    assert code == 1
    assert "DM_LOAD" in err


def test_row_out_of_range(workspace, capsys):
    code, _, err = _run(capsys, "eval", "x", "--data", "data.csv", "--row", "10")
    assert code == 1
    assert "out of range" in err


def test_verbose_reraises(workspace):
    with pytest.raises(NameNotFoundError):
        main(["--verbose", "eval", "carat", "--data", "data.csv", "--row", "0"])


def test_no_command_prints_help(workspace, capsys):
    assert main([]) == 1
    assert "usage" in capsys.readouterr().out


def test_parser_rejects_unknown_namespace():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["resolve", "x", "--data", "d.csv", "-n", "global"])


def test_type_invalid_expression_exits_with_one(workspace, capsys):
    code, _, err = _run(capsys, "filter", "x + 'a' > 0", "--data", "data.csv")
    assert code == 1
    assert "DM_EVALUATION" in err


def test_log_level_accepts_warning(workspace, capsys):
    code, out, _ = _run(capsys, "--log-level", "warning", "eval", "x", "--data", "data.csv", "--row", "0")
    assert code == 0
    assert json.loads(out) == 1
