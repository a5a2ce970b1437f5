from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Dict, Optional

import yaml
from pydantic import BaseModel


def _repo_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _default_config_path() -> Path:
    return _repo_root() / "config" / "config.yaml"


def load_config(path: Optional[Path] = None) -> Dict[str, object]:
    cfg_path = path or Path(os.environ.get("DAILY_LOGS_CONFIG", "")).expanduser()
    if not cfg_path or str(cfg_path) == ".":
        cfg_path = _default_config_path()
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")
    text = cfg_path.read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError("config.yaml must be a mapping at top level")
    return data


_CACHED: Optional[Dict[str, object]] = None


def get_config(path: Optional[Path] = None) -> Dict[str, object]:
    global _CACHED
    if _CACHED is None or path is not None:
        _CACHED = load_config(path)
    return _CACHED


class DailyLogsSettings(BaseModel):
    timestamp_format: str = "YYYY-MM-DD HH:mm:ss"
    section_name: str = "# Лог"
    # Only treat "#" at the start of a line as the end of the log section.
    line_start_headers: bool = False


class SettingsStore:
    """Plugin data file, the equivalent of Obsidian's loadData/saveData."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load_data(self) -> Optional[dict]:
        if not self.path.exists():
            return None
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return None
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Invalid plugin data in {self.path}: {exc}") from exc
        if data is None:
            return None
        if not isinstance(data, dict):
            raise ValueError(f"Plugin data in {self.path} must be an object")
        return data

    def save_data(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")


def load_settings(store: SettingsStore) -> DailyLogsSettings:
    """Saved values win over defaults; absent data means all defaults."""
    saved = store.load_data() or {}
    merged = DailyLogsSettings().model_dump()
    merged.update({k: v for k, v in saved.items() if k in merged})
    return DailyLogsSettings.model_validate(merged)


def save_settings(store: SettingsStore, settings: DailyLogsSettings) -> None:
    store.save_data(settings.model_dump())
