"""
Telegram bot transport.

Long-polling python-telegram-bot Application embedded in the server's event
loop. Only allow-listed chats reach the agent; every other chat is told its
chat id so the operator can add it.
"""

from collections.abc import Iterable
from typing import TYPE_CHECKING

import structlog
from telegram import Update
from telegram.constants import ChatAction, ParseMode
from telegram.error import TelegramError
from telegram.ext import Application, CommandHandler, ContextTypes, MessageHandler, filters

from upcore_agent.core.domain.session import SessionRegistry
from upcore_agent.infrastructure.transports.telegram_writer import (
    TelegramEventRenderer,
    TelegramMessageWriter,
)

if TYPE_CHECKING:
    from upcore_agent.application.executor import AgentExecutor

logger = structlog.get_logger()

START_TEXT = (
    "*UpcoreCodeTestDeploy Agent* 🤖\n\n"
    "Send me a coding task and I'll generate production-ready code with live streaming.\n\n"
    "*Commands:*\n"
    "/reset - clear conversation history\n"
    "/cancel - abort the current request\n"
    "/continue - resume a task that hit its phase limit\n"
    "/start - show this message"
)


class TelegramBotService:
    """
    Polling bot that routes allow-listed chats into the AgentExecutor.

    Args:
        token: Bot API token
        allowed_chat_ids: Chats allowed to talk to the agent
        executor: Turn lifecycle service
        sessions: Registry holding one session per chat
        max_chars: Page size for streamed replies
        edit_interval: Minimum seconds between message edits
    """

    def __init__(
        self,
        token: str,
        allowed_chat_ids: Iterable[int],
        executor: "AgentExecutor",
        sessions: SessionRegistry,
        max_chars: int = 4096,
        edit_interval: float = 1.5,
    ):
        self.allowed_chat_ids = frozenset(allowed_chat_ids)
        self.executor = executor
        self.sessions = sessions
        self.max_chars = max_chars
        self.edit_interval = edit_interval
        self.logger = logger.bind(component="telegram_bot")

        self.application = Application.builder().token(token).concurrent_updates(True).build()
        self.application.add_handler(CommandHandler("start", self.cmd_start))
        self.application.add_handler(CommandHandler("reset", self.cmd_reset))
        self.application.add_handler(CommandHandler("cancel", self.cmd_cancel))
        self.application.add_handler(CommandHandler("continue", self.cmd_continue))
        self.application.add_handler(MessageHandler(filters.TEXT & ~filters.COMMAND, self.handle_message))
        self.application.add_error_handler(self.on_error)

    async def start(self) -> None:
        await self.application.initialize()
        await self.application.start()
        await self.application.updater.start_polling(drop_pending_updates=True)
        self.logger.info("telegram.polling_started", allowed_chats=len(self.allowed_chat_ids))

    async def stop(self) -> None:
        if self.application.updater.running:
            await self.application.updater.stop()
        if self.application.running:
            await self.application.stop()
        await self.application.shutdown()
        self.logger.info("telegram.polling_stopped")

    @staticmethod
    def session_id(chat_id: int) -> str:
        return f"telegram:{chat_id}"

    async def _gate(self, update: Update) -> int | None:
        """Return the chat id if allowed, otherwise tell the chat and return None."""
        chat = update.effective_chat
        if chat is None:
            return None
        if chat.id in self.allowed_chat_ids:
            return chat.id
        self.logger.warning("telegram.access_denied", chat_id=chat.id)
        await self._reply(
            chat.id,
            f"⛔ Access denied. This bot is private.\n\nYour chat ID is: `{chat.id}`",
            ParseMode.MARKDOWN,
        )
        return None

    async def _reply(self, chat_id: int, text: str, parse_mode: str | None = None) -> None:
        try:
            await self.application.bot.send_message(chat_id=chat_id, text=text, parse_mode=parse_mode)
        except TelegramError as e:
            self.logger.warning("telegram.send_failed", chat_id=chat_id, error=str(e))

    def _renderer(self, chat_id: int) -> TelegramEventRenderer:
        bot = self.application.bot
        writer = TelegramMessageWriter(
            bot, chat_id, max_chars=self.max_chars, edit_interval=self.edit_interval
        )
        return TelegramEventRenderer(bot, chat_id, writer)

    async def _typing(self, chat_id: int) -> None:
        try:
            await self.application.bot.send_chat_action(chat_id=chat_id, action=ChatAction.TYPING)
        except TelegramError as e:
            self.logger.debug("telegram.typing_failed", chat_id=chat_id, error=str(e))

    async def cmd_start(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = await self._gate(update)
        if chat_id is None:
            return
        await self._reply(chat_id, START_TEXT, ParseMode.MARKDOWN)

    async def cmd_reset(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = await self._gate(update)
        if chat_id is None:
            return
        self.executor.reset(self.sessions.get_or_open(self.session_id(chat_id)))
        await self._reply(chat_id, "🔄 Conversation history cleared.")

    async def cmd_cancel(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = await self._gate(update)
        if chat_id is None:
            return
        session = self.sessions.get_or_open(self.session_id(chat_id))
        if self.executor.cancel(session):
            await self._reply(chat_id, "⏹ Request cancelled.")
        else:
            await self._reply(chat_id, "No active request to cancel.")

    async def cmd_continue(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = await self._gate(update)
        if chat_id is None:
            return
        session = self.sessions.get_or_open(self.session_id(chat_id))
        await self._typing(chat_id)
        await self.executor.continue_phase(session, self._renderer(chat_id).handle)

    async def handle_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        chat_id = await self._gate(update)
        if chat_id is None or update.message is None:
            return
        text = (update.message.text or "").strip()
        if not text:
            return
        session = self.sessions.get_or_open(self.session_id(chat_id))
        await self._typing(chat_id)
        await self.executor.submit(session, text, self._renderer(chat_id).handle)

    async def on_error(self, update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
        self.logger.error("telegram.handler_error", error=str(context.error))
