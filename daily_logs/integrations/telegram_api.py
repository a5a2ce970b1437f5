from __future__ import annotations

import fnmatch
import logging
import mimetypes
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, List, Optional, Protocol

from .obsidian import VaultFile

logger = logging.getLogger(__name__)

Reply = Optional[str]


@dataclass(frozen=True)
class HandlerResult:
    processed: bool
    answer: Reply = None


DECLINED = HandlerResult(processed=False, answer=None)

CommandHandler = Callable[[bool], Awaitable[HandlerResult]]
TextHandler = Callable[[str, bool], Awaitable[HandlerResult]]
FileHandler = Callable[..., Awaitable[HandlerResult]]
Sender = Callable[[str], Awaitable[None]]


class TelegramBotAPI(Protocol):
    """Handler registration surface exposed by the bot to other units."""

    def add_command_handler(self, cmd: str, handler: CommandHandler, unit_name: str) -> None:
        ...

    def add_text_handler(self, handler: TextHandler, unit_name: str) -> None:
        ...

    def add_file_handler(
        self, handler: FileHandler, unit_name: str, mime_type: Optional[str] = None
    ) -> None:
        ...

    async def send_message(self, text: str) -> None:
        ...


@dataclass
class _Registration:
    unit_name: str
    handler: Callable[..., Awaitable[HandlerResult]]
    command: Optional[str] = None
    mime_type: Optional[str] = None


def _command_name(raw: str) -> str:
    name = raw.strip().lstrip("/")
    if " " in name:
        name = name.split(" ", 1)[0]
    # "/cmd@SomeBot" in group chats
    return name.split("@", 1)[0]


class HandlerRegistry:
    """In-process implementation of :class:`TelegramBotAPI`.

    Handlers run in registration order. Every handler sees whether an earlier
    one already reported ``processed=True``; each non-empty answer is sent back
    to the chat.
    """

    def __init__(self, sender: Optional[Sender] = None) -> None:
        self._sender = sender
        self._commands: List[_Registration] = []
        self._texts: List[_Registration] = []
        self._files: List[_Registration] = []
        self.sent: List[str] = []

    def add_command_handler(self, cmd: str, handler: CommandHandler, unit_name: str) -> None:
        self._commands.append(_Registration(unit_name, handler, command=_command_name(cmd)))

    def add_text_handler(self, handler: TextHandler, unit_name: str) -> None:
        self._texts.append(_Registration(unit_name, handler))

    def add_file_handler(
        self, handler: FileHandler, unit_name: str, mime_type: Optional[str] = None
    ) -> None:
        self._files.append(_Registration(unit_name, handler, mime_type=mime_type))

    def remove_unit(self, unit_name: str) -> None:
        self._commands = [r for r in self._commands if r.unit_name != unit_name]
        self._texts = [r for r in self._texts if r.unit_name != unit_name]
        self._files = [r for r in self._files if r.unit_name != unit_name]

    def units(self) -> List[str]:
        names: List[str] = []
        for reg in self._commands + self._texts + self._files:
            if reg.unit_name not in names:
                names.append(reg.unit_name)
        return names

    async def send_message(self, text: str) -> None:
        self.sent.append(text)
        if self._sender is not None:
            await self._sender(text)

    async def _run(self, registrations: List[_Registration], *args: Any, **kwargs: Any) -> List[str]:
        processed = False
        answers: List[str] = []
        for reg in registrations:
            try:
                result = await reg.handler(*args, processed, **kwargs)
            except Exception:
                logger.exception("Handler of unit %s failed", reg.unit_name)
                raise
            processed = processed or result.processed
            if result.answer is not None:
                answers.append(result.answer)
                await self.send_message(result.answer)
        return answers

    async def dispatch_command(self, command: str) -> List[str]:
        name = _command_name(command)
        matching = [r for r in self._commands if r.command == name]
        logger.info("Dispatching command %s to %d handler(s)", name, len(matching))
        return await self._run(matching)

    async def dispatch_text(self, text: str) -> List[str]:
        return await self._run(list(self._texts), text)

    async def dispatch_file(
        self,
        file: VaultFile,
        caption: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> List[str]:
        mime = mime_type or mimetypes.guess_type(file.name)[0]
        matching = [
            r
            for r in self._files
            if r.mime_type is None or (mime is not None and fnmatch.fnmatch(mime, r.mime_type))
        ]
        return await self._run(matching, file, caption=caption)
