from __future__ import annotations

import datetime as dt
import json
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from daily_logs.core.daily_log import DailyLogWriter, DailyNoteResolver, daily_note_path
from daily_logs.core.session import DailyLogsUnit
from daily_logs.integrations.config import DailyLogsSettings
from daily_logs.integrations.obsidian import DailyNoteSettings, NoteResolutionError, VaultFile

FIXED_NOW = dt.datetime(2024, 1, 1, 9, 30, 15)


def fixed_clock() -> dt.datetime:
    return FIXED_NOW


class FakeNoteStore:
    def __init__(
        self,
        files: Optional[Dict[str, str]] = None,
        settings: Optional[DailyNoteSettings] = None,
    ) -> None:
        self.files: Dict[str, str] = dict(files or {})
        self.settings = settings or DailyNoteSettings(folder="Daily")
        self.created: List[str] = []
        self.writes: List[tuple] = []
        self.create_error: Optional[Exception] = None

    async def read(self, file: VaultFile) -> str:
        return self.files[file.path]

    async def modify(self, file: VaultFile, text: str) -> None:
        self.writes.append((file.path, text))
        self.files[file.path] = text

    async def get_file_by_path(self, path: str) -> Optional[VaultFile]:
        return VaultFile(path) if path in self.files else None

    async def create_daily_note(self, date: dt.datetime) -> VaultFile:
        if self.create_error is not None:
            raise self.create_error
        path = daily_note_path(self.settings, date)
        self.files[path] = ""
        self.created.append(path)
        return VaultFile(path)

    async def get_daily_note_settings(self) -> DailyNoteSettings:
        return self.settings


def make_unit(store: FakeNoteStore, settings: Optional[DailyLogsSettings] = None) -> DailyLogsUnit:
    resolver = DailyNoteResolver(store, clock=fixed_clock)
    writer = DailyLogWriter(store, resolver, settings or DailyLogsSettings())
    return DailyLogsUnit(writer, clock=fixed_clock)


@pytest.fixture
def store() -> FakeNoteStore:
    return FakeNoteStore()


@pytest.fixture
def failing_store() -> FakeNoteStore:
    broken = FakeNoteStore()
    broken.create_error = NoteResolutionError("vault is read-only")
    return broken


@pytest.fixture
def vault(tmp_path: Path) -> Path:
    root = tmp_path / "vault"
    (root / ".obsidian").mkdir(parents=True)
    return root


def write_daily_notes_config(vault_root: Path, **values: str) -> None:
    path = vault_root / ".obsidian" / "daily-notes.json"
    path.write_text(json.dumps(values), encoding="utf-8")
