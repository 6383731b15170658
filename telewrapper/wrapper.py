"""
TeleWrapper — Context object tying the router to a Telegram bot.

Owns every piece of routing state (registry, authorized chats, outbox,
diagnostics, dispatcher) and the python-telegram-bot ``Application`` that
feeds it. Construct one per process:

    bot = TeleWrapper(token)
    bot.set_debug_chat(-100123)
    bot.on_command("ping", 100, lambda msg, content: ...)
    await bot.start()

Tests and hosts with their own transport pass ``client=`` instead of a
token and push events through :meth:`process_message` /
:meth:`process_callback`.
"""

import logging
import re
import time
from typing import Any, Iterable, List, Optional, Sequence, Union

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, KeyboardButton, Update
from telegram.ext import Application, CallbackQueryHandler, ContextTypes, MessageHandler, filters

from telewrapper import keyboards
from telewrapper.client import ChatClient, TelegramChatClient
from telewrapper.config import Settings, get_settings
from telewrapper.diagnostics import Diagnostics
from telewrapper.events import CallbackEvent, ChatMessage, User
from telewrapper.messaging import Messenger, message_equal
from telewrapper.outbox import OutboxHistory
from telewrapper.routing.auth import AuthorizationGate, AuthorizedChatSet, ChatScope
from telewrapper.routing.dispatcher import Dispatcher
from telewrapper.routing.handlers import (
    AnyCallback,
    ButtonCallback,
    CommandCallback,
    InvalidCallback,
    PatternCallback,
)
from telewrapper.routing.registry import HandlerRegistry, extract_command_token
from telewrapper.structured_logging import enable_structured_logging

logger = logging.getLogger(__name__)


class TeleWrapper:
    """
    Telegram bot wrapper with command / pattern / button routing.

    - Routes messages to commands, patterns, audio and catch-all handlers
    - Restricts handlers to authorized chats and reports the rest
    - Drops messages queued while the bot was down
    - Keeps a bounded history of sent messages for bulk deletion
    - Mints inline buttons bound to callables
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        client: Optional[ChatClient] = None,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        if self.settings.structured_logging:
            enable_structured_logging(self.settings.log_level.upper())

        self.start_time: float = time.time()
        self.bot_info: Optional[User] = None
        self.app: Optional[Application] = None

        token = token or self.settings.telegram_bot_token
        if client is None:
            if not token:
                raise ValueError("A bot token or a ChatClient is required")
            builder = Application.builder().token(token)
            builder.concurrent_updates(self.settings.concurrent_updates)
            self.app = builder.build()
            client = TelegramChatClient(self.app.bot)
        self.client = client

        self.outbox = OutboxHistory(self.settings.message_history_length)
        self.diagnostics = Diagnostics(
            client,
            self.outbox,
            debug_chat_id=self.settings.debug_chat_id,
            history_size=self.settings.diagnostic_history_size,
        )
        self.chats = AuthorizedChatSet(self.diagnostics)
        self.registry = HandlerRegistry(self.chats, self.diagnostics)
        self.gate = AuthorizationGate(
            self.chats, self.registry.invalid, self.diagnostics, start_time=self.start_time
        )
        self.messenger = Messenger(client, self.chats, self.outbox, self.diagnostics)
        self.dispatcher = Dispatcher(
            self.registry,
            self.gate,
            self.messenger,
            self.diagnostics,
            bot_user=lambda: self.bot_info,
            button_error_text=self.settings.button_error_text,
            button_error_grace_seconds=self.settings.button_error_grace_seconds,
        )
        self._subscribed = False

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} chats={self.chats.all()} commands={len(self.registry.commands)}>"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Fetch the bot identity, subscribe to updates and start polling."""
        self.bot_info = await self.client.get_me()
        if self.app is None:
            logger.info("[BOT] Started without an Application, events must be pushed")
            return

        self._subscribe()
        await self.app.initialize()
        await self.app.start()
        await self.app.updater.start_polling(poll_interval=self.settings.polling_interval)
        logger.info(f"[BOT] @{self.bot_info.username} started (polling mode)")

    async def stop(self) -> None:
        """Stop polling; handlers and state stay in place."""
        if self.app and self.app.updater and self.app.updater.running:
            await self.app.updater.stop()
            logger.info("[BOT] Polling stopped")

    async def continue_from_stop(self) -> None:
        """Resume polling after :meth:`stop`."""
        if self.app and self.app.updater and not self.app.updater.running:
            await self.app.updater.start_polling(poll_interval=self.settings.polling_interval)
            logger.info("[BOT] Polling resumed")

    async def shutdown(self) -> None:
        """Stop polling and release the Application."""
        await self.stop()
        if self.app:
            if self.app.running:
                try:
                    await self.app.stop()
                except Exception as e:
                    logger.warning(f"[BOT] Application stop error: {e}")
            await self.app.shutdown()
        await self.dispatcher.drain()
        await self.diagnostics.drain()

    def _subscribe(self) -> None:
        if self._subscribed:
            return
        self.app.add_handler(MessageHandler(filters.UpdateType.MESSAGE, self._on_message))
        self.app.add_handler(CallbackQueryHandler(self._on_callback_query))
        self.app.add_error_handler(self._error_handler)
        self._subscribed = True

    async def _on_message(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self.process_message(ChatMessage.from_telegram(update.message))

    async def _on_callback_query(self, update: Update, context: ContextTypes.DEFAULT_TYPE):
        await self.process_callback(CallbackEvent.from_telegram(update.callback_query))

    async def _error_handler(self, update: object, context: ContextTypes.DEFAULT_TYPE):
        """Errors raised outside the dispatcher (update conversion, polling)."""
        await self.diagnostics.send_error("update error", context.error)

    async def process_message(self, message: ChatMessage) -> bool:
        return await self.dispatcher.handle_message(message)

    async def process_callback(self, query: CallbackEvent) -> None:
        await self.dispatcher.handle_callback(query)

    # ------------------------------------------------------------------
    # Chats
    # ------------------------------------------------------------------

    def set_debug_chat(self, chat_id: int) -> None:
        self.diagnostics.debug_chat_id = chat_id

    @property
    def debug_chat(self) -> int:
        return self.diagnostics.debug_chat_id

    def add_valid_chat(self, chat_id: int) -> bool:
        return self.chats.add(chat_id)

    def remove_valid_chat(self, chat_id: int) -> bool:
        return self.chats.remove(chat_id)

    def get_valid_chats(self) -> List[int]:
        return self.chats.all()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def on_command(
        self,
        command: str,
        chat_ids: ChatScope,
        callback: CommandCallback,
        desc: Optional[str] = None,
        *,
        authorize: bool = True,
    ):
        return self.registry.register_command(command, chat_ids, callback, desc, authorize=authorize)

    def on_regex(
        self,
        regex: Union[str, "re.Pattern[str]"],
        chat_ids: ChatScope,
        callback: PatternCallback,
        desc: str = "",
        *,
        authorize: bool = True,
    ):
        return self.registry.register_pattern(regex, chat_ids, callback, desc, authorize=authorize)

    def on_any(self, chat_ids: ChatScope, callback: AnyCallback, *, authorize: bool = True):
        return self.registry.register_catch_all(chat_ids, callback, authorize=authorize)

    def on_audio(self, chat_ids: ChatScope, callback: AnyCallback, *, authorize: bool = True):
        return self.registry.register_audio(chat_ids, callback, authorize=authorize)

    def on_invalid(self, callback: InvalidCallback):
        return self.registry.register_invalid(callback)

    def on_button(self, name: str, callback: ButtonCallback):
        return self.registry.register_button(name, callback)

    async def publish_commands(self) -> int:
        """Show registered commands in the Telegram command menu."""
        commands = {
            name: desc
            for name, desc in self.registry.command_descriptions().items()
            if desc and desc != "(empty)"
        }
        if commands:
            await self.client.set_my_commands(commands)
        return len(commands)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @staticmethod
    def extract_command(text: str) -> str:
        return extract_command_token(text)

    def is_command(self, message: ChatMessage) -> bool:
        return self.registry.is_command(message)

    def is_regex(self, message: ChatMessage) -> bool:
        return self.registry.is_pattern(message)

    def uptime(self) -> float:
        return time.time() - self.start_time

    def bot_running_time(self) -> str:
        passed = self.uptime()
        hours = int(passed // 3600)
        minutes = int(passed % 3600 // 60)
        seconds = int(passed % 60)
        return f"Bot status:\nRunning time: {hours} hours {minutes} minutes {seconds} seconds"

    # ------------------------------------------------------------------
    # Messaging (delegates to Messenger)
    # ------------------------------------------------------------------

    async def send_error(self, text: str, error: Any = None) -> Optional[ChatMessage]:
        return await self.diagnostics.send_error(text, error)

    async def send_message(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.messenger.send_message(text, chat_id, notification)

    async def send_markdown(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.messenger.send_markdown(text, chat_id, notification)

    async def send_markdown_v2(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.messenger.send_markdown_v2(text, chat_id, notification)

    async def send_reply(self, text: str, chat_id: int, reply_id: int, markdown: bool = False) -> ChatMessage:
        return await self.messenger.send_reply(text, chat_id, reply_id, markdown)

    async def send_keyboard(
        self, text: str, chat_id: int, keyboard, notification: bool = False, markdown: bool = False
    ) -> ChatMessage:
        return await self.messenger.send_keyboard(text, chat_id, keyboard, notification, markdown)

    async def clear_keyboard(self, chat_id: int, selective: bool = False) -> None:
        await self.messenger.clear_keyboard(chat_id, selective)

    async def clear_inline(self, message: ChatMessage) -> None:
        await self.messenger.clear_inline(message)

    async def send_poll(self, question: str, chat_id: int, options: Sequence[str], **kwargs) -> ChatMessage:
        return await self.messenger.send_poll(question, chat_id, options, **kwargs)

    async def send_dice(self, chat_id: int, kind: str = "dice") -> ChatMessage:
        return await self.messenger.send_dice(chat_id, kind)

    async def edit_message(
        self, message: ChatMessage, text: str, keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
    ) -> ChatMessage:
        return await self.messenger.edit_message(message, text, keyboard, parse_mode)

    async def edit_markdown(self, message: ChatMessage, text: str, keyboard: Optional[InlineKeyboardMarkup] = None) -> ChatMessage:
        return await self.messenger.edit_markdown(message, text, keyboard)

    async def edit_markdown_v2(self, message: ChatMessage, text: str, keyboard: Optional[InlineKeyboardMarkup] = None) -> ChatMessage:
        return await self.messenger.edit_markdown_v2(message, text, keyboard)

    async def replace_keyboard(self, message: ChatMessage, keyboard: InlineKeyboardMarkup) -> None:
        await self.messenger.replace_keyboard(message, keyboard)

    async def delete_message(self, message: Union[ChatMessage, Iterable[ChatMessage], None]) -> None:
        await self.messenger.delete_message(message)

    async def clear_messages(self, chat_ids: ChatScope, exclude: Optional[Iterable[ChatMessage]] = None) -> int:
        return await self.messenger.clear_messages(chat_ids, exclude)

    @staticmethod
    def message_equal(first: ChatMessage, second: ChatMessage) -> bool:
        return message_equal(first, second)

    # ------------------------------------------------------------------
    # Keyboards
    # ------------------------------------------------------------------

    @staticmethod
    def k_button(text: str) -> KeyboardButton:
        return keyboards.k_button(text)

    def i_button(self, name: str, action: ButtonCallback) -> InlineKeyboardButton:
        return self.registry.buttons.mint(name, action)

    @staticmethod
    def new_keyboard(buttons, one_time: bool = False, selective: bool = False, resize: bool = True):
        return keyboards.new_keyboard(buttons, one_time, selective, resize)

    @staticmethod
    def new_inline(buttons) -> InlineKeyboardMarkup:
        return keyboards.new_inline(buttons)
