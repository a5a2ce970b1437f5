from __future__ import annotations

import json
from pathlib import Path

import pytest

from daily_logs.core.session import PROMPT_REPLY
from daily_logs.integrations.obsidian import VaultFile
from daily_logs.integrations.telegram_api import HandlerRegistry
from daily_logs.plugin import TelegramDailyLogsPlugin, default_data_path

from conftest import fixed_clock, write_daily_notes_config


def _plugin(vault: Path, registry: HandlerRegistry) -> TelegramDailyLogsPlugin:
    return TelegramDailyLogsPlugin(vault, registry, clock=fixed_clock)


@pytest.mark.asyncio
async def test_command_then_text_lands_in_daily_note(vault: Path) -> None:
    write_daily_notes_config(vault, folder="Daily")
    registry = HandlerRegistry()
    plugin = _plugin(vault, registry)
    await plugin.load()

    assert await registry.dispatch_command("/add_log_to_daily") == [PROMPT_REPLY]
    answers = await registry.dispatch_text("hello")

    assert answers == ["Запись добавлена в ежедневную заметку (Daily/2024-01-01.md)"]
    text = (vault / "Daily" / "2024-01-01.md").read_text(encoding="utf-8")
    assert text == "\n# Лог\n\n2024-01-01 09:30:15:\nhello\n"


@pytest.mark.asyncio
async def test_capture_all_logs_files(vault: Path) -> None:
    registry = HandlerRegistry()
    plugin = _plugin(vault, registry)
    await plugin.load()

    await registry.dispatch_command("toggle_income_to_daily_log")
    answers = await registry.dispatch_file(VaultFile("attachments/scan.pdf"), caption="receipt")

    assert answers == ["Файл сохранен в scan.pdf, ссылка добавлена в 2024-01-01.md"]
    text = (vault / "2024-01-01.md").read_text(encoding="utf-8")
    assert text.endswith("![[scan.pdf]]\nreceipt\n")


@pytest.mark.asyncio
async def test_settings_are_loaded_and_saved(vault: Path) -> None:
    data_path = default_data_path(vault)
    data_path.parent.mkdir(parents=True)
    data_path.write_text(json.dumps({"timestamp_format": "HH:mm"}), encoding="utf-8")
    registry = HandlerRegistry()
    plugin = _plugin(vault, registry)
    await plugin.load()
    assert plugin.settings.timestamp_format == "HH:mm"

    plugin.update_settings(section_name="# Log")
    saved = json.loads(data_path.read_text(encoding="utf-8"))
    assert saved["section_name"] == "# Log"
    assert saved["timestamp_format"] == "HH:mm"

    await registry.dispatch_command("add_log_to_daily")
    await registry.dispatch_text("after rename")
    text = (vault / "2024-01-01.md").read_text(encoding="utf-8")
    assert text == "\n# Log\n\n09:30:\nafter rename\n"


@pytest.mark.asyncio
async def test_unknown_settings_are_rejected(vault: Path) -> None:
    plugin = _plugin(vault, HandlerRegistry())
    await plugin.load()
    with pytest.raises(ValueError):
        plugin.update_settings(colour="red")


@pytest.mark.asyncio
async def test_unload_removes_handlers(vault: Path) -> None:
    registry = HandlerRegistry()
    plugin = _plugin(vault, registry)
    await plugin.load()
    plugin.unload()
    assert registry.units() == []
    assert await registry.dispatch_command("add_log_to_daily") == []


def test_from_config(tmp_path: Path) -> None:
    plugin = TelegramDailyLogsPlugin.from_config(
        HandlerRegistry(),
        config={"vault_root": str(tmp_path / "vault"), "backup_root": str(tmp_path / "bak")},
    )
    assert plugin.vault_root == tmp_path / "vault"
    assert plugin.store.backup_root == tmp_path / "bak"
    assert plugin.settings_store.path == default_data_path(tmp_path / "vault")


def test_from_config_requires_vault_root() -> None:
    with pytest.raises(ValueError):
        TelegramDailyLogsPlugin.from_config(HandlerRegistry(), config={})
