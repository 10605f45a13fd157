from __future__ import annotations

import json
from pathlib import Path

import pytest

from datamask.config import EvaluationSettings, load_config, locate_config_file
from datamask.errors import ConfigError


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DATAMASK_ON_SHADOW", raising=False)


def _write_toml(root: Path, text: str) -> Path:
    path = root / "datamask.toml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_without_config_file(tmp_path: Path) -> None:
    config = load_config(tmp_path)
    assert config.source is None
    assert config.scope == {}
    assert config.evaluation == EvaluationSettings()
    assert config.evaluation.on_shadow == "ignore"


def test_toml_config(tmp_path: Path) -> None:
    path = _write_toml(
        tmp_path,
        '[evaluation]\non_shadow = "warn"\nenv_pronoun = "env"\nvectorize = false\n\n[scope]\nmin_carat = 0.5\n',
    )
    config = load_config(tmp_path)
    assert config.source == path
    assert config.evaluation.on_shadow == "warn"
    assert config.evaluation.env_pronoun == "env"
    assert config.evaluation.data_pronoun == "_data"
    assert config.evaluation.vectorize is False
    assert config.scope == {"min_carat": 0.5}


def test_json_rc_file(tmp_path: Path) -> None:
    (tmp_path / ".datamaskrc").write_text(
        json.dumps({"evaluation": {"on_shadow": "error"}, "scope": {"var": "x"}}),
        encoding="utf-8",
    )
    config = load_config(tmp_path)
    assert config.evaluation.on_shadow == "error"
    assert config.scope == {"var": "x"}


def test_toml_takes_precedence_over_rc_file(tmp_path: Path) -> None:
    (tmp_path / ".datamaskrc").write_text("{}", encoding="utf-8")
    toml_path = _write_toml(tmp_path, "")
    assert locate_config_file(tmp_path) == toml_path


def test_environment_overrides_shadow_policy(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    _write_toml(tmp_path, '[evaluation]\non_shadow = "warn"\n')
    monkeypatch.setenv("DATAMASK_ON_SHADOW", "ERROR")
    assert load_config(tmp_path).evaluation.on_shadow == "error"


def test_explicit_config_path(tmp_path: Path) -> None:
    explicit = tmp_path / "custom.toml"
    explicit.write_text("[scope]\nlimit = 3\n", encoding="utf-8")
    assert load_config(tmp_path, explicit).scope == {"limit": 3}
    with pytest.raises(ConfigError):
        load_config(tmp_path, tmp_path / "missing.toml")


@pytest.mark.parametrize(
    "text",
    [
        '[evaluation]\non_shadow = "sometimes"\n',
        '[evaluation]\ndata_pronoun = "same"\nenv_pronoun = "same"\n',
        '[evaluation]\ndata_pronoun = "not valid"\n',
        "scope = 3\n",
        '[evaluation]\nvectorize = "false"\n',
        "[evaluation\n",
    ],
)
def test_invalid_config(tmp_path: Path, text: str) -> None:
    _write_toml(tmp_path, text)
    with pytest.raises(ConfigError):
        load_config(tmp_path)


def test_settings_validate_returns_self() -> None:
    settings = EvaluationSettings(data_pronoun="d", env_pronoun="e")
    assert settings.validate() is settings
    with pytest.raises(ConfigError) as excinfo:
        EvaluationSettings(on_shadow="loud").validate()
    assert "DATAMASK_ON_SHADOW" in excinfo.value.hint


def test_rc_file_vectorize_must_be_boolean(tmp_path: Path) -> None:
    (tmp_path / ".datamaskrc").write_text(json.dumps({"evaluation": {"vectorize": "no"}}), encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(tmp_path)
