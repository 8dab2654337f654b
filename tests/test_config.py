"""Tests for docbot.core.config."""

import pytest
import yaml

from docbot.core.config import Config, load_config


def test_defaults():
    cfg = Config()
    assert cfg.agent.max_iterations == 32
    assert cfg.agent.status_check_interval == 5
    assert cfg.agent.repeat_threshold == 3
    assert cfg.agent.stall_threshold == 6
    assert cfg.agent.change_stop_threshold == 3
    assert cfg.tools.retry.max_attempts == 3
    assert cfg.database.path == "data/docbot.db"


def test_default_fallback_checkpoints():
    cps = Config().agent.fallback_checkpoints
    assert [(cp.iteration, cp.min_changes) for cp in cps] == [(5, 1), (10, 2), (15, 3)]
    assert Config().agent.fallback_hard_stop == 20


def test_from_dict():
    cfg = Config(
        agent={"model": "anthropic/claude-sonnet", "max_iterations": 8},
        providers={"anthropic": {"api_key": "sk-test"}},
    )
    assert cfg.agent.max_iterations == 8
    assert cfg.providers.anthropic.api_key == "sk-test"


def test_env_override(monkeypatch):
    monkeypatch.setenv("DOCBOT_AGENT__MAX_ITERATIONS", "7")
    monkeypatch.setenv("DOCBOT_TOOLS__RETRY__BASE_TIMEOUT_S", "2.5")
    cfg = Config()
    assert cfg.agent.max_iterations == 7
    assert cfg.tools.retry.base_timeout_s == 2.5


def test_load_yaml(tmp_path):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump({"agent": {"model": "ollama/llama3", "use_plan": False}}))
    cfg = load_config(f)
    assert cfg.agent.model == "ollama/llama3"
    assert cfg.agent.use_plan is False


def test_load_from_env_path(tmp_path, monkeypatch):
    f = tmp_path / "custom.yaml"
    f.write_text(yaml.dump({"database": {"path": "x.db"}}))
    monkeypatch.setenv("DOCBOT_CONFIG", str(f))
    assert load_config().database.path == "x.db"


def test_load_missing_explicit_path(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml")


def test_load_without_file_uses_defaults(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DOCBOT_CONFIG", raising=False)
    assert load_config().agent.max_iterations == 32


def test_load_docbot_yaml_from_cwd(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("DOCBOT_CONFIG", raising=False)
    (tmp_path / "docbot.yaml").write_text(yaml.dump({"agent": {"max_iterations": 9}}))
    (tmp_path / "config.yaml").write_text(yaml.dump({"agent": {"max_iterations": 5}}))
    assert load_config().agent.max_iterations == 9


def test_overrides_merge_over_file(tmp_path):
    f = tmp_path / "config.yaml"
    f.write_text(yaml.dump({"agent": {"model": "ollama/llama3", "max_iterations": 12}}))
    cfg = load_config(f, agent={"max_iterations": 4})
    assert cfg.agent.max_iterations == 4
    assert cfg.agent.model == "ollama/llama3"


def test_non_mapping_file_rejected(tmp_path):
    f = tmp_path / "config.yaml"
    f.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        load_config(f)
