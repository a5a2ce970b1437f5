from __future__ import annotations

import datetime as dt
import logging
from typing import Callable, Optional, Protocol

from daily_logs.integrations.config import DailyLogsSettings
from daily_logs.integrations.obsidian import (
    DailyNoteSettings,
    NoteResolutionError,
    VaultFile,
    append_to_section,
    format_moment,
    note_path,
)

logger = logging.getLogger(__name__)


class NoteStore(Protocol):
    async def read(self, file: VaultFile) -> str:
        ...

    async def modify(self, file: VaultFile, text: str) -> None:
        ...

    async def get_file_by_path(self, path: str) -> Optional[VaultFile]:
        ...

    async def create_daily_note(self, date: dt.datetime) -> VaultFile:
        ...

    async def get_daily_note_settings(self) -> DailyNoteSettings:
        ...


def daily_note_path(settings: DailyNoteSettings, today: dt.datetime) -> str:
    return note_path(settings.folder, format_moment(today, settings.format))


class DailyNoteResolver:
    """Finds today's daily note, creating it on first use."""

    def __init__(self, store: NoteStore, clock: Callable[[], dt.datetime] = dt.datetime.now) -> None:
        self.store = store
        self._clock = clock

    async def resolve(self, today: Optional[dt.datetime] = None) -> VaultFile:
        today = today or self._clock()
        settings = await self.store.get_daily_note_settings()
        filename = daily_note_path(settings, today)
        existing = await self.store.get_file_by_path(filename)
        if existing is not None:
            return existing
        try:
            return await self.store.create_daily_note(today)
        except OSError as exc:
            raise NoteResolutionError(f"Cannot create daily note {filename}: {exc}") from exc


def format_text_entry(now: dt.datetime, text: str, timestamp_format: str) -> str:
    return f"{format_moment(now, timestamp_format)}:\n{text}\n"


def format_file_entry(
    now: dt.datetime, file: VaultFile, timestamp_format: str, caption: Optional[str] = None
) -> str:
    entry = f"\n{format_moment(now, timestamp_format)}:\n![[{file.name}]]\n"
    if caption:
        entry += f"{caption}\n"
    return entry


class DailyLogWriter:
    """Read-modify-write of the log section in today's note.

    Nothing serialises concurrent appends; the last write to the note wins.
    """

    def __init__(
        self,
        store: NoteStore,
        resolver: DailyNoteResolver,
        settings: DailyLogsSettings,
    ) -> None:
        self.store = store
        self.resolver = resolver
        self.settings = settings

    async def add_daily_log(self, entry: str) -> VaultFile:
        note = await self.resolver.resolve()
        content = await self.store.read(note)
        updated = append_to_section(
            content,
            self.settings.section_name,
            entry,
            line_start_headers=self.settings.line_start_headers,
        )
        await self.store.modify(note, updated)
        logger.info("Appended log entry to %s under %r", note.path, self.settings.section_name)
        return note
