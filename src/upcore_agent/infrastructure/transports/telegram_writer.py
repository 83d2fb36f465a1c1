"""
Telegram streaming writer.

The model emits dozens of text chunks per second; Telegram tolerates roughly
one edit per second per chat. TelegramMessageWriter coalesces chunks into a
buffer and flushes it with throttled send/edit calls:

- a flush renders the current page (``max_chars`` slice of the buffer) by
  sending a new message or editing the page's message
- at most one flush is pending; its delay is ``edit_interval`` minus the time
  since the last edit
- when the buffer overflows the current page, the page is finalized and the
  next flush opens a new message

Tool progress is rendered inline as a placeholder that turns into a done marker
when the tool finishes. Placeholders are tracked by buffer offset; a marker
whose placeholder is no longer intact, or that sits in an already finalized
page, is left as is.
"""

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

import structlog
from telegram import Bot
from telegram.constants import ChatAction, ParseMode
from telegram.error import BadRequest, TelegramError

from upcore_agent.core.domain.events import AgentEvent, AgentEventType

logger = structlog.get_logger()

TELEGRAM_MAX_CHARS = 4096
EDIT_INTERVAL = 1.5


@dataclass
class _ToolMarker:
    name: str
    offset: int
    placeholder: str


def tool_placeholder(name: str) -> str:
    return f"\n`🔧 {name}...`"


def tool_done_marker(name: str) -> str:
    return f"\n`✅ {name}`"


class TelegramMessageWriter:
    """
    Live-updating, paginated Telegram output for one agent turn.

    Args:
        bot: python-telegram-bot Bot
        chat_id: Target chat
        max_chars: Page size (Telegram message limit)
        edit_interval: Minimum seconds between transport calls
        clock: Monotonic time source
    """

    def __init__(
        self,
        bot: Bot,
        chat_id: int,
        max_chars: int = TELEGRAM_MAX_CHARS,
        edit_interval: float = EDIT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.bot = bot
        self.chat_id = chat_id
        self.max_chars = max_chars
        self.edit_interval = edit_interval
        self.clock = clock

        self.buffer = ""
        self.message_id: int | None = None
        self.page_index = 0
        self.last_edit: float | None = None

        self._pending: asyncio.Task | None = None
        self._lock = asyncio.Lock()
        self._markers: list[_ToolMarker] = []
        self._last_sent: str | None = None
        self.logger = logger.bind(component="telegram_writer", chat_id=chat_id)

    @property
    def page_start(self) -> int:
        return self.page_index * self.max_chars

    def append_text(self, chunk: str) -> None:
        self.buffer += chunk
        self._schedule_flush()

    def append_tool_start(self, name: str) -> None:
        placeholder = tool_placeholder(name)
        self._markers.append(_ToolMarker(name=name, offset=len(self.buffer), placeholder=placeholder))
        self.buffer += placeholder
        self._schedule_flush()

    def append_tool_done(self, name: str) -> None:
        """Turn the oldest open placeholder for ``name`` into a done marker."""
        marker = next((m for m in self._markers if m.name == name), None)
        if marker is None:
            return
        self._markers.remove(marker)

        end = marker.offset + len(marker.placeholder)
        intact = self.buffer[marker.offset:end] == marker.placeholder
        if not intact or marker.offset < self.page_start:
            self.logger.debug("telegram.marker_skipped", tool=name, intact=intact)
            return

        done = tool_done_marker(name)
        self.buffer = self.buffer[: marker.offset] + done + self.buffer[end:]
        shift = len(done) - len(marker.placeholder)
        for other in self._markers:
            if other.offset > marker.offset:
                other.offset += shift
        self._schedule_flush()

    async def finalize(self) -> None:
        """Flush everything now, sending any remaining overflow pages."""
        while True:
            self._cancel_pending()
            page_before = self.page_index
            await self._flush()
            if self.page_index == page_before:
                break
        self._cancel_pending()

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _schedule_flush(self) -> None:
        if self._pending is not None:
            return
        if self.last_edit is None:
            delay = 0.0
        else:
            delay = max(0.0, self.edit_interval - (self.clock() - self.last_edit))
        self._pending = asyncio.create_task(self._delayed_flush(delay))

    async def _delayed_flush(self, delay: float) -> None:
        await asyncio.sleep(delay)
        self._pending = None
        await self._flush()

    async def _flush(self) -> None:
        overflowed = False
        async with self._lock:
            page = self.buffer[self.page_start : self.page_start + self.max_chars]
            if not page:
                return
            if page != self._last_sent or self.message_id is None:
                await self._send_or_edit(page)
                self._last_sent = page
                self.last_edit = self.clock()

            # chunks appended while a call was in flight may have completed
            # the page; it must go out in full before the next page opens
            while len(self.buffer) > self.page_start + self.max_chars and self.message_id is not None:
                page = self.buffer[self.page_start : self.page_start + self.max_chars]
                if page == self._last_sent:
                    break
                await self._send_or_edit(page)
                self._last_sent = page
                self.last_edit = self.clock()

            if len(self.buffer) > self.page_start + self.max_chars:
                self.page_index += 1
                self.message_id = None
                self._last_sent = None
                overflowed = True
                self.logger.debug("telegram.page_advanced", page_index=self.page_index)
        if overflowed:
            self._schedule_flush()

    async def _send_or_edit(self, text: str) -> None:
        try:
            await self._deliver(text, ParseMode.MARKDOWN)
        except BadRequest as e:
            if "message is not modified" in str(e).lower():
                return
            self.logger.debug("telegram.markdown_rejected", error=str(e))
            try:
                await self._deliver(text, None)
            except TelegramError as plain_error:
                if "message is not modified" not in str(plain_error).lower():
                    self.logger.warning("telegram.plain_text_failed", error=str(plain_error))
        except TelegramError as e:
            self.logger.warning("telegram.edit_failed", error=str(e))

    async def _deliver(self, text: str, parse_mode: str | None) -> None:
        if self.message_id is None:
            message = await self.bot.send_message(
                chat_id=self.chat_id, text=text, parse_mode=parse_mode
            )
            self.message_id = message.message_id
        else:
            await self.bot.edit_message_text(
                text=text,
                chat_id=self.chat_id,
                message_id=self.message_id,
                parse_mode=parse_mode,
            )


class TelegramEventRenderer:
    """
    Maps AgentEvents onto a TelegramMessageWriter.

    Terminal events finalize the writer, then send a trailer message (token
    usage, continuation hint or error).
    """

    def __init__(self, bot: Bot, chat_id: int, writer: TelegramMessageWriter | None = None):
        self.bot = bot
        self.chat_id = chat_id
        self.writer = writer or TelegramMessageWriter(bot, chat_id)
        self.logger = logger.bind(component="telegram_renderer", chat_id=chat_id)

    async def handle(self, event: AgentEvent) -> None:
        if event.type == AgentEventType.TEXT_CHUNK:
            self.writer.append_text(event.content or "")
        elif event.type == AgentEventType.TOOL_START:
            self.writer.append_tool_start(event.tool or "")
        elif event.type == AgentEventType.TOOL_DONE:
            self.writer.append_tool_done(event.tool or "")
        elif event.type == AgentEventType.HEARTBEAT:
            await self._typing()
        elif event.type == AgentEventType.COMPLETE:
            await self.writer.finalize()
            usage = event.usage
            if usage is not None:
                await self.send(
                    f"_Tokens used: {usage.input_tokens} in · {usage.output_tokens} out_",
                    ParseMode.MARKDOWN,
                )
        elif event.type == AgentEventType.NEEDS_CONTINUE:
            await self.writer.finalize()
            await self.send(f"⏸ {event.summary}\n\nSend /continue to resume the task.")
        elif event.type == AgentEventType.ERROR:
            await self.writer.finalize()
            await self.send(f"❌ {event.message}")

    __call__ = handle

    async def send(self, text: str, parse_mode: str | None = None) -> None:
        try:
            await self.bot.send_message(chat_id=self.chat_id, text=text, parse_mode=parse_mode)
        except TelegramError as e:
            self.logger.warning("telegram.send_failed", error=str(e))

    async def _typing(self) -> None:
        try:
            await self.bot.send_chat_action(chat_id=self.chat_id, action=ChatAction.TYPING)
        except TelegramError as e:
            self.logger.debug("telegram.typing_failed", error=str(e))
