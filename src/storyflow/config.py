"""User configuration persisted as JSON in the per-user data directory."""
from __future__ import annotations

import json
import os
from dataclasses import asdict, dataclass
from pathlib import Path

_DEFAULT_TICK_INTERVAL_MS = 100
_MIN_TICK_INTERVAL_MS = 10
_MAX_TICK_INTERVAL_MS = 1000
_DEFAULT_LOG_LEVEL = "INFO"
_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(slots=True)
class StoryflowConfig:
    """Runtime settings a user may override."""

    tick_interval_ms: int = _DEFAULT_TICK_INTERVAL_MS
    log_level: str = _DEFAULT_LOG_LEVEL


def get_user_data_dir() -> Path:
    """Return the per-user data directory."""
    if os.name == "nt":
        base = os.environ.get("APPDATA")
        if base:
            return Path(base) / "Storyflow"
        return Path.home() / "Storyflow"
    return Path.home() / ".config" / "storyflow"


def get_default_config_path() -> Path:
    """Return the default per-user config path."""
    return get_user_data_dir() / "config.json"


def _normalize_tick_interval(value: object) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        return _DEFAULT_TICK_INTERVAL_MS
    return min(_MAX_TICK_INTERVAL_MS, max(_MIN_TICK_INTERVAL_MS, value))


def _normalize_log_level(value: object) -> str:
    if isinstance(value, str) and value.upper() in _LOG_LEVELS:
        return value.upper()
    return _DEFAULT_LOG_LEVEL


def _normalize(raw: dict) -> StoryflowConfig:
    return StoryflowConfig(
        tick_interval_ms=_normalize_tick_interval(raw.get("tick_interval_ms")),
        log_level=_normalize_log_level(raw.get("log_level")),
    )


def load_config(path: Path | None = None) -> StoryflowConfig:
    """Load config from disk or return defaults."""
    config_path = path or get_default_config_path()
    try:
        raw = json.loads(config_path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return StoryflowConfig()
    if not isinstance(raw, dict):
        return StoryflowConfig()
    return _normalize(raw)


def save_config(config: StoryflowConfig, path: Path | None = None) -> None:
    """Persist config to disk."""
    config_path = path or get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    payload = asdict(_normalize(asdict(config)))
    config_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")
