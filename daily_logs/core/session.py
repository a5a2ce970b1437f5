from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Callable, Optional

from daily_logs.core.daily_log import DailyLogWriter, format_file_entry, format_text_entry
from daily_logs.integrations.obsidian import VaultFile
from daily_logs.integrations.telegram_api import DECLINED, HandlerResult, TelegramBotAPI

logger = logging.getLogger(__name__)

UNIT_NAME = "daily-logs"
ADD_LOG_COMMAND = "add_log_to_daily"
TOGGLE_CAPTURE_COMMAND = "toggle_income_to_daily_log"

PROMPT_REPLY = "Введите текст или отправьте файл"
CAPTURE_ON = "Включен"
CAPTURE_OFF = "Выключен"
CAPTURE_REPLY = "{state} режим 'записывать все входящие сообщения в daily заметки'"
TEXT_SAVED_REPLY = "Запись добавлена в ежедневную заметку ({path})"
FILE_SAVED_REPLY = "Файл сохранен в {name}, ссылка добавлена в {path}"


@dataclass
class SessionState:
    awaiting_text: bool = False
    capture_all: bool = False

    @property
    def should_capture(self) -> bool:
        return self.awaiting_text or self.capture_all


class DailyLogsUnit:
    """Bot handlers that turn chat messages into daily log entries.

    ``awaiting_text`` is armed by the add-log command and consumed by the next
    text or file; ``capture_all`` logs every message until toggled off. Text
    and file handlers answer with ``processed=False`` even after logging so
    other units still get to handle the same message.
    """

    def __init__(
        self,
        writer: DailyLogWriter,
        state: Optional[SessionState] = None,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self.writer = writer
        self.state = state or SessionState()
        self._clock = clock

    def register(self, bot_api: TelegramBotAPI) -> None:
        bot_api.add_command_handler(ADD_LOG_COMMAND, self.on_add_log_command, UNIT_NAME)
        bot_api.add_command_handler(TOGGLE_CAPTURE_COMMAND, self.on_toggle_capture_command, UNIT_NAME)
        bot_api.add_text_handler(self.on_text, UNIT_NAME)
        bot_api.add_file_handler(self.on_file, UNIT_NAME)

    async def on_add_log_command(self, processed_before: bool) -> HandlerResult:
        logger.info("received cmd %s", ADD_LOG_COMMAND)
        if processed_before or self.state.awaiting_text:
            return DECLINED
        self.state.awaiting_text = True
        return HandlerResult(processed=True, answer=PROMPT_REPLY)

    async def on_toggle_capture_command(self, processed_before: bool) -> HandlerResult:
        logger.info("received cmd %s", TOGGLE_CAPTURE_COMMAND)
        if processed_before or self.state.awaiting_text:
            return DECLINED
        self.state.capture_all = not self.state.capture_all
        logger.info("capture-all mode %s", "on" if self.state.capture_all else "off")
        on_off = CAPTURE_ON if self.state.capture_all else CAPTURE_OFF
        return HandlerResult(processed=True, answer=CAPTURE_REPLY.format(state=on_off))

    async def on_text(self, text: str, processed_before: bool) -> HandlerResult:
        if not self.state.should_capture:
            return DECLINED
        entry = format_text_entry(self._clock(), text, self.writer.settings.timestamp_format)
        note = await self.writer.add_daily_log(entry)
        self.state.awaiting_text = False
        return HandlerResult(processed=False, answer=TEXT_SAVED_REPLY.format(path=note.path))

    async def on_file(
        self, file: VaultFile, processed_before: bool, caption: Optional[str] = None
    ) -> HandlerResult:
        if not self.state.should_capture:
            return DECLINED
        entry = format_file_entry(
            self._clock(), file, self.writer.settings.timestamp_format, caption=caption
        )
        note = await self.writer.add_daily_log(entry)
        self.state.awaiting_text = False
        return HandlerResult(
            processed=False, answer=FILE_SAVED_REPLY.format(name=file.name, path=note.path)
        )
