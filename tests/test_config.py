"""Tests for YAML config loading and environment overrides."""

import click
import pytest
import yaml

from model_failover.cli.config import _load_config, _save_config
from model_failover.shared.types import FailoverConfig


@pytest.fixture(autouse=True)
def _clear_env(monkeypatch):
    for key in (
        "MODEL_FAILOVER_CONFIG",
        "MODEL_FAILOVER_MODEL_ORDER",
        "MODEL_FAILOVER_STATE_FILE",
        "MODEL_FAILOVER_METRICS_FILE",
    ):
        monkeypatch.delenv(key, raising=False)


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        assert _load_config(tmp_path / "nope.yaml") == FailoverConfig()

    def test_empty_file_gives_defaults(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("")
        assert _load_config(path) == FailoverConfig()

    def test_top_level_settings(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"model_order": ["a/x", "b/y"], "cooldown_minutes": 5}))
        cfg = _load_config(path)
        assert cfg.model_order == ["a/x", "b/y"]
        assert cfg.cooldown_minutes == 5

    def test_section_settings(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"model_failover": {"model_order": ["a/x"], "metrics_enabled": False}}))
        cfg = _load_config(path)
        assert cfg.model_order == ["a/x"]
        assert cfg.metrics_enabled is False

    def test_env_overrides(self, tmp_path, monkeypatch):
        path = tmp_path / "c.yaml"
        path.write_text(yaml.dump({"model_order": ["a/x"]}))
        monkeypatch.setenv("MODEL_FAILOVER_MODEL_ORDER", "c/z,,d/w ")
        monkeypatch.setenv("MODEL_FAILOVER_STATE_FILE", "/tmp/s.json")
        monkeypatch.setenv("MODEL_FAILOVER_METRICS_FILE", "/tmp/m.jsonl")
        cfg = _load_config(path)
        assert cfg.model_order == ["c/z", "d/w"]
        assert cfg.state_file == "/tmp/s.json"
        assert cfg.metrics_file == "/tmp/m.jsonl"

    def test_config_path_from_env(self, tmp_path, monkeypatch):
        path = tmp_path / "c.yaml"
        path.write_text("model_order: [e/v]\n")
        monkeypatch.setenv("MODEL_FAILOVER_CONFIG", str(path))
        assert _load_config().model_order == ["e/v"]

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("model_order: [unclosed\n")
        with pytest.raises(click.ClickException, match="Invalid YAML"):
            _load_config(path)

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("- a\n- b\n")
        with pytest.raises(click.ClickException, match="mapping"):
            _load_config(path)

    def test_invalid_value(self, tmp_path):
        path = tmp_path / "c.yaml"
        path.write_text("cooldown_minutes: -3\n")
        with pytest.raises(click.ClickException, match="Invalid failover config"):
            _load_config(path)


class TestSaveConfig:
    def test_round_trip(self, tmp_path):
        cfg = FailoverConfig(model_order=["a/x", "b/y"], unavailable_cooldown_minutes=5)
        path = _save_config(cfg, tmp_path / "nested" / "c.yaml")
        assert path.exists()
        assert _load_config(path) == cfg
