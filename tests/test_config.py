from __future__ import annotations

import json
from pathlib import Path

import pytest

from agent_sensei.config.loader import camel_to_snake, load_config, save_config, snake_to_camel
from agent_sensei.config.schema import Config, EngineConfig


def test_engine_defaults() -> None:
    engine = EngineConfig()
    assert engine.busy_markers == ["working", "generating", "thinking", "processing"]
    assert engine.quiet_window_s == 2.0
    assert engine.min_dispatch_interval_s == 60.0
    assert engine.poll_interval_s == 0.1
    assert engine.history_limit == 200
    assert engine.display_limit == 500


def test_with_overrides_returns_validated_copy() -> None:
    base = EngineConfig()
    tuned = base.with_overrides(quiet_window_s=0.5, busy_markers=["compiling"])
    assert tuned.quiet_window_s == 0.5
    assert tuned.busy_markers == ["compiling"]
    assert base.quiet_window_s == 2.0


def test_with_overrides_rejects_unknown_and_invalid_fields() -> None:
    with pytest.raises(ValueError, match="quiet_window"):
        EngineConfig().with_overrides(quiet_window=1.0)
    with pytest.raises(ValueError):
        EngineConfig().with_overrides(history_limit=0)


def test_save_and_load_round_trip_uses_camel_case(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    config = Config()
    config.engine.quiet_window_s = 3.5
    config.completion.api_key = "sk-test"
    save_config(config, path)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["engine"]["quietWindowS"] == 3.5
    assert raw["completion"]["apiKey"] == "sk-test"
    assert "dataDir" in raw

    loaded = load_config(path)
    assert loaded.engine.quiet_window_s == 3.5
    assert loaded.completion.api_key == "sk-test"


def test_missing_or_broken_file_falls_back_to_defaults(tmp_path: Path) -> None:
    assert load_config(tmp_path / "absent.json").engine.quiet_window_s == 2.0
    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    assert load_config(broken).engine.min_dispatch_interval_s == 60.0


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("AGENT_SENSEI_ENGINE__QUIET_WINDOW_S", "7.5")
    monkeypatch.setenv("AGENT_SENSEI_SUPERVISOR__COMMAND", "claude")
    config = Config()
    assert config.engine.quiet_window_s == 7.5
    assert config.supervisor.command == "claude"


@pytest.mark.parametrize(
    ("snake", "camel"),
    [("quiet_window_s", "quietWindowS"), ("api_key", "apiKey"), ("enabled", "enabled")],
)
def test_key_case_conversion(snake: str, camel: str) -> None:
    assert snake_to_camel(snake) == camel
    assert camel_to_snake(camel) == snake
