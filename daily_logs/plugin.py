"""Telegram daily logs plugin.

Wires the vault note store, the daily-log writer and the session handlers
together and registers them with a bot that implements ``TelegramBotAPI``.
"""

from __future__ import annotations

import datetime as dt
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from daily_logs.core.daily_log import DailyLogWriter, DailyNoteResolver
from daily_logs.core.session import UNIT_NAME, DailyLogsUnit
from daily_logs.integrations.config import (
    DailyLogsSettings,
    SettingsStore,
    get_config,
    load_settings,
    save_settings,
)
from daily_logs.integrations.obsidian import ObsidianPaths, VaultNoteStore
from daily_logs.integrations.telegram_api import TelegramBotAPI

logger = logging.getLogger(__name__)

PLUGIN_ID = "telegram-daily-logs"


def default_data_path(vault_root: Path) -> Path:
    return Path(vault_root) / ".obsidian" / "plugins" / PLUGIN_ID / "data.json"


class TelegramDailyLogsPlugin:
    def __init__(
        self,
        vault_root: Path,
        bot_api: TelegramBotAPI,
        data_path: Optional[Path] = None,
        backup_root: Optional[Path] = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.vault_root = Path(vault_root)
        self.bot_api = bot_api
        self.settings_store = SettingsStore(data_path or default_data_path(self.vault_root))
        self.store = VaultNoteStore(self.vault_root, backup_root=backup_root, clock=clock)
        self.settings = DailyLogsSettings()
        self._clock = clock
        self.unit: Optional[DailyLogsUnit] = None

    @classmethod
    def from_config(
        cls, bot_api: TelegramBotAPI, config: Optional[Dict[str, object]] = None
    ) -> "TelegramDailyLogsPlugin":
        cfg = config if config is not None else get_config()
        paths = ObsidianPaths.from_config(cfg)
        data_value = cfg.get("plugin_data_path")
        return cls(
            paths.vault_root,
            bot_api,
            data_path=Path(str(data_value)).expanduser() if data_value else None,
            backup_root=paths.backup_root,
        )

    async def load(self) -> None:
        self.settings = load_settings(self.settings_store)
        resolver = DailyNoteResolver(self.store, clock=self._clock)
        writer = DailyLogWriter(self.store, resolver, self.settings)
        self.unit = DailyLogsUnit(writer, clock=self._clock)
        self.unit.register(self.bot_api)
        logger.info("%s loaded for vault %s", PLUGIN_ID, self.vault_root)

    def unload(self) -> None:
        remove_unit = getattr(self.bot_api, "remove_unit", None)
        if callable(remove_unit):
            remove_unit(UNIT_NAME)
        self.unit = None

    def save_settings(self) -> None:
        save_settings(self.settings_store, self.settings)

    def update_settings(self, **changes: Any) -> DailyLogsSettings:
        merged = self.settings.model_dump()
        unknown = sorted(set(changes) - set(merged))
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")
        merged.update(changes)
        self.settings = DailyLogsSettings.model_validate(merged)
        if self.unit is not None:
            self.unit.writer.settings = self.settings
        self.save_settings()
        return self.settings
