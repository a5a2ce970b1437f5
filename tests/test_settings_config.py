from __future__ import annotations

import json
from pathlib import Path

import pytest

from daily_logs.integrations import config
from daily_logs.integrations.config import (
    DailyLogsSettings,
    SettingsStore,
    get_config,
    load_config,
    load_settings,
    save_settings,
)


def test_missing_data_gives_defaults(tmp_path: Path) -> None:
    settings = load_settings(SettingsStore(tmp_path / "data.json"))
    assert settings == DailyLogsSettings()
    assert settings.timestamp_format == "YYYY-MM-DD HH:mm:ss"
    assert settings.section_name == "# Лог"
    assert settings.line_start_headers is False


def test_saved_values_override_defaults(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text(json.dumps({"section_name": "# Log", "legacy": 1}), encoding="utf-8")
    settings = load_settings(SettingsStore(path))
    assert settings.section_name == "# Log"
    assert settings.timestamp_format == "YYYY-MM-DD HH:mm:ss"


def test_invalid_data_is_an_error(tmp_path: Path) -> None:
    path = tmp_path / "data.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ValueError):
        load_settings(SettingsStore(path))


def test_save_settings_writes_json(tmp_path: Path) -> None:
    store = SettingsStore(tmp_path / "nested" / "data.json")
    save_settings(store, DailyLogsSettings(timestamp_format="HH:mm"))
    raw = store.path.read_text(encoding="utf-8")
    assert "# Лог" in raw
    assert store.load_data() == {
        "timestamp_format": "HH:mm",
        "section_name": "# Лог",
        "line_start_headers": False,
    }


def test_load_config_from_env(tmp_path: Path, monkeypatch) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("vault_root: /tmp/vault\nbackup_root: null\n", encoding="utf-8")
    monkeypatch.setenv("DAILY_LOGS_CONFIG", str(cfg_path))
    monkeypatch.setattr(config, "_CACHED", None)
    assert get_config() == {"vault_root": "/tmp/vault", "backup_root": None}
    cfg_path.write_text("vault_root: /elsewhere\n", encoding="utf-8")
    assert get_config()["vault_root"] == "/tmp/vault"


def test_missing_config_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_config_must_be_a_mapping(tmp_path: Path) -> None:
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(cfg_path)
