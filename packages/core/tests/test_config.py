"""Tests for configuration loading and saving."""

import pytest
import yaml

from promptpanel_core.config import deep_merge, load_config, read_config_file, reflection_settings, save_config
from promptpanel_store.errors import PersistenceFailure


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["enabled"] is True
    assert config["log_dir"] == "logs"
    assert config["scoring"]["weights"] == {}
    assert config["scoring"]["weights_history"] == []
    assert config["reflection"]["min_reviews_for_adaptation"] == 5
    assert config["reflection"]["precision_threshold"] == 0.70
    assert config["editor"]["priority_order"][0] == "security"


def test_config_file_deep_merges_with_defaults(tmp_path):
    cfg = tmp_path / ".panel.yml"
    cfg.write_text("scoring:\n  weights:\n    security: 2.0\nreflection:\n  min_reviews_for_adaptation: 3\n")
    config = load_config(config_path=str(cfg))
    assert config["scoring"]["weights"] == {"security": 2.0}
    assert config["scoring"]["enabled"] is True
    assert config["reflection"]["min_reviews_for_adaptation"] == 3
    assert config["reflection"]["precision_threshold"] == 0.70


def test_defaults_not_mutated_between_loads(tmp_path):
    cfg = tmp_path / ".panel.yml"
    cfg.write_text("scoring:\n  weights:\n    security: 2.0\n")
    load_config(config_path=str(cfg))
    config = load_config(config_path=str(tmp_path / "other.yml"))
    assert config["scoring"]["weights"] == {}


def test_env_disables_auditing(tmp_path, monkeypatch):
    monkeypatch.setenv("PROMPTPANEL_ENABLED", "false")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["enabled"] is False


def test_env_overrides_log_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("PROMPTPANEL_LOG_DIR", "/var/log/panel")
    config = load_config(config_path=str(tmp_path / "none.yml"))
    assert config["log_dir"] == "/var/log/panel"


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".panel.yml"
    cfg.write_text("log_dir: from-file\n")
    config = load_config(config_path=str(cfg), cli_overrides={"log_dir": "from-cli"})
    assert config["log_dir"] == "from-cli"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".panel.yml"
    cfg.write_text("log_dir: from-file\n")
    config = load_config(config_path=str(cfg), cli_overrides={"log_dir": None})
    assert config["log_dir"] == "from-file"


def test_non_mapping_config_rejected(tmp_path):
    cfg = tmp_path / ".panel.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ValueError):
        read_config_file(str(cfg))


def test_deep_merge_replaces_lists():
    merged = deep_merge({"a": {"b": [1, 2], "c": 1}}, {"a": {"b": [3]}})
    assert merged == {"a": {"b": [3], "c": 1}}


def test_save_config_roundtrip(tmp_path):
    path = tmp_path / ".panel.yml"
    save_config({"scoring": {"weights": {"security": 2.5}}, "custom": "kept"}, str(path))
    data = yaml.safe_load(path.read_text())
    assert data == {"scoring": {"weights": {"security": 2.5}}, "custom": "kept"}


def test_save_config_raises_persistence_failure(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("x")
    with pytest.raises(PersistenceFailure):
        save_config({"a": 1}, str(blocker / ".panel.yml"))


def test_reflection_settings_fill_nulls_and_keep_zero():
    config = {"reflection": {"min_reviews_for_adaptation": 0, "precision_threshold": None, "weight_clamp_min": None}}
    settings = reflection_settings(config)
    assert settings["min_reviews_for_adaptation"] == 0
    assert settings["precision_threshold"] == 0.70
    assert settings["weight_clamp_min"] == 0.5
    assert settings["weight_clamp_max"] == 3.0


def test_reflection_settings_ignore_non_mapping_block():
    assert reflection_settings({"reflection": None})["min_reviews_for_adaptation"] == 5
    assert reflection_settings({"reflection": [1, 2]})["precision_threshold"] == 0.70
