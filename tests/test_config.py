import json
from pathlib import Path

from storyflow import config as config_module
from storyflow.config import StoryflowConfig, load_config, save_config


def test_missing_config_returns_defaults(tmp_path: Path) -> None:
    loaded = load_config(tmp_path / "config.json")

    assert loaded == StoryflowConfig()
    assert loaded.tick_interval_ms == 100
    assert loaded.log_level == "INFO"


def test_invalid_json_returns_defaults(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{oops", encoding="utf-8")

    assert load_config(path) == StoryflowConfig()


def test_values_are_normalized(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"tick_interval_ms": 5, "log_level": "debug"}), encoding="utf-8")
    assert load_config(path) == StoryflowConfig(tick_interval_ms=10, log_level="DEBUG")

    path.write_text(json.dumps({"tick_interval_ms": "fast", "log_level": "LOUD"}), encoding="utf-8")
    assert load_config(path) == StoryflowConfig()

    path.write_text(json.dumps({"tick_interval_ms": 5000}), encoding="utf-8")
    assert load_config(path).tick_interval_ms == 1000


def test_save_then_load(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "config.json"

    save_config(StoryflowConfig(tick_interval_ms=250, log_level="warning"), path)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "log_level": "WARNING",
        "tick_interval_ms": 250,
    }
    assert load_config(path) == StoryflowConfig(tick_interval_ms=250, log_level="WARNING")


def test_default_path_uses_user_data_dir(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setattr(config_module, "get_user_data_dir", lambda: tmp_path)

    assert config_module.get_default_config_path() == tmp_path / "config.json"
    save_config(StoryflowConfig(log_level="ERROR"))
    assert load_config().log_level == "ERROR"
