from __future__ import annotations

import json
from pathlib import Path

import pandas as pd
import pytest

from datamask.errors import ConfigError, DatasetLoadError
from datamask.loaders import load_dataset, load_scope, parse_scope_assignments


def test_load_csv(tmp_path: Path) -> None:
    path = tmp_path / "data.csv"
    path.write_text("x,y,input\n1,2,3\n4,5,6\n", encoding="utf-8")
    df = load_dataset(path)
    assert list(df.columns) == ["x", "y", "input"]
    assert df["input"].tolist() == [3, 6]


def test_load_json_records(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps([{"x": 1, "cut": "Ideal"}, {"x": 2, "cut": "Good"}]), encoding="utf-8")
    df = load_dataset(path)
    assert df["cut"].tolist() == ["Ideal", "Good"]


def test_load_parquet(tmp_path: Path, diamonds: pd.DataFrame) -> None:
    path = tmp_path / "diamonds.parquet"
    diamonds.to_parquet(path)
    assert load_dataset(path)["price"].tolist() == diamonds["price"].tolist()


def test_format_override(tmp_path: Path) -> None:
    path = tmp_path / "export.txt"
    path.write_text(json.dumps([{"x": 1}]), encoding="utf-8")
    assert load_dataset(path, "json")["x"].tolist() == [1]


def test_load_dataset_errors(tmp_path: Path) -> None:
    with pytest.raises(DatasetLoadError):
        load_dataset(tmp_path / "missing.csv")
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(DatasetLoadError):
        load_dataset(broken)
    with pytest.raises(DatasetLoadError):
        load_dataset(broken, "xlsx")


def test_parse_scope_assignments() -> None:
    values = parse_scope_assignments(["min=1", "name=abc", 'input={"var": "x"}', "flag=true"])
    assert values == {"min": 1, "name": "abc", "input": {"var": "x"}, "flag": True}


@pytest.mark.parametrize("entry", ["novalue", "1x=2", "bad key=3"])
def test_parse_scope_assignments_rejects(entry: str) -> None:
    with pytest.raises(ConfigError):
        parse_scope_assignments([entry])


def test_load_scope_merge_order(tmp_path: Path) -> None:
    merged = load_scope('{"b": 2, "c": 2}', None, ["c=3"], defaults={"a": 1, "b": 1})
    assert merged == {"a": 1, "b": 2, "c": 3}
    scope_file = tmp_path / "scope.json"
    scope_file.write_text('{"var": "y"}', encoding="utf-8")
    assert load_scope(None, str(scope_file)) == {"var": "y"}


def test_load_scope_errors(tmp_path: Path) -> None:
    with pytest.raises(ConfigError):
        load_scope("{}", str(tmp_path / "scope.json"))
    with pytest.raises(ConfigError):
        load_scope("[1, 2]")
    with pytest.raises(ConfigError):
        load_scope("{oops")
    with pytest.raises(ConfigError):
        load_scope(None, str(tmp_path / "missing.json"))
