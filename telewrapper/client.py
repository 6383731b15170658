"""
Chat Client — Abstract interface to the chat platform.

The router only needs a handful of outbound operations. ``ChatClient``
names them; ``TelegramChatClient`` implements them on top of a
python-telegram-bot ``Bot`` and converts results into :mod:`telewrapper.events`
objects.

Design Principles
-----------------
* Platform-specific logic lives **only** inside the adapter subclass.
* Every platform error surfaces as :class:`TransportFailure`.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence

from telegram import Bot, BotCommand, Message, ReplyParameters
from telegram.error import TelegramError

from telewrapper.errors import TransportFailure
from telewrapper.events import ChatMessage, User

logger = logging.getLogger(__name__)


class ChatClient(ABC):
    """
    Outbound operations used by the router and the messaging helpers.

    Subclasses must implement every method; all of them are coroutines and
    raise :class:`TransportFailure` when the platform rejects the call.
    """

    @abstractmethod
    async def get_me(self) -> User:
        """Return the bot's own identity."""

    @abstractmethod
    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        disable_notification: bool = False,
        parse_mode: Optional[str] = None,
        reply_markup: Any = None,
        reply_to_message_id: Optional[int] = None,
    ) -> ChatMessage:
        """Send a text message."""

    @abstractmethod
    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Any = None,
    ) -> ChatMessage:
        """Replace the text (and markup) of a sent message."""

    @abstractmethod
    async def edit_message_reply_markup(
        self, chat_id: int, message_id: int, reply_markup: Any = None
    ) -> None:
        """Replace or remove the inline keyboard of a sent message."""

    @abstractmethod
    async def delete_message(self, chat_id: int, message_id: int) -> None:
        """Delete a message."""

    @abstractmethod
    async def send_poll(
        self, chat_id: int, question: str, options: Sequence[str], **kwargs: Any
    ) -> ChatMessage:
        """Send a poll."""

    @abstractmethod
    async def send_dice(
        self, chat_id: int, emoji: Optional[str] = None, *, disable_notification: bool = True
    ) -> ChatMessage:
        """Send an animated random value ("dice")."""

    @abstractmethod
    async def answer_callback_query(
        self, callback_id: str, text: Optional[str] = None, show_alert: bool = False
    ) -> None:
        """Acknowledge a button press, optionally with a toast or alert."""

    @abstractmethod
    async def set_my_commands(self, commands: Dict[str, str]) -> None:
        """Publish the bot command menu (command → description)."""


class TelegramChatClient(ChatClient):
    """``ChatClient`` backed by a python-telegram-bot ``Bot``."""

    def __init__(self, bot: Bot):
        self.bot = bot

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} bot={self.bot!r}>"

    async def get_me(self) -> User:
        try:
            me = await self.bot.get_me()
        except TelegramError as e:
            raise TransportFailure("getMe", e) from e
        return User.from_telegram(me)

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        disable_notification: bool = False,
        parse_mode: Optional[str] = None,
        reply_markup: Any = None,
        reply_to_message_id: Optional[int] = None,
    ) -> ChatMessage:
        reply_parameters = None
        if reply_to_message_id is not None:
            reply_parameters = ReplyParameters(message_id=reply_to_message_id)
        try:
            msg = await self.bot.send_message(
                chat_id=chat_id,
                text=text,
                parse_mode=parse_mode,
                disable_notification=disable_notification,
                reply_markup=reply_markup,
                reply_parameters=reply_parameters,
            )
        except TelegramError as e:
            raise TransportFailure("sendMessage", e) from e
        return ChatMessage.from_telegram(msg)

    async def edit_message_text(
        self,
        chat_id: int,
        message_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        reply_markup: Any = None,
    ) -> ChatMessage:
        try:
            result = await self.bot.edit_message_text(
                text=text,
                chat_id=chat_id,
                message_id=message_id,
                parse_mode=parse_mode,
                reply_markup=reply_markup,
            )
        except TelegramError as e:
            raise TransportFailure("editMessageText", e) from e
        if not isinstance(result, Message):
            raise TransportFailure("editMessageText")
        return ChatMessage.from_telegram(result)

    async def edit_message_reply_markup(
        self, chat_id: int, message_id: int, reply_markup: Any = None
    ) -> None:
        try:
            await self.bot.edit_message_reply_markup(
                chat_id=chat_id, message_id=message_id, reply_markup=reply_markup
            )
        except TelegramError as e:
            raise TransportFailure("editMessageReplyMarkup", e) from e

    async def delete_message(self, chat_id: int, message_id: int) -> None:
        try:
            await self.bot.delete_message(chat_id=chat_id, message_id=message_id)
        except TelegramError as e:
            raise TransportFailure("deleteMessage", e) from e

    async def send_poll(
        self, chat_id: int, question: str, options: Sequence[str], **kwargs: Any
    ) -> ChatMessage:
        try:
            msg = await self.bot.send_poll(
                chat_id=chat_id, question=question, options=list(options), **kwargs
            )
        except TelegramError as e:
            raise TransportFailure("sendPoll", e) from e
        return ChatMessage.from_telegram(msg)

    async def send_dice(
        self, chat_id: int, emoji: Optional[str] = None, *, disable_notification: bool = True
    ) -> ChatMessage:
        try:
            msg = await self.bot.send_dice(
                chat_id=chat_id, emoji=emoji, disable_notification=disable_notification
            )
        except TelegramError as e:
            raise TransportFailure("sendDice", e) from e
        return ChatMessage.from_telegram(msg)

    async def answer_callback_query(
        self, callback_id: str, text: Optional[str] = None, show_alert: bool = False
    ) -> None:
        try:
            await self.bot.answer_callback_query(
                callback_query_id=callback_id, text=text, show_alert=show_alert
            )
        except TelegramError as e:
            raise TransportFailure("answerCallbackQuery", e) from e

    async def set_my_commands(self, commands: Dict[str, str]) -> None:
        menu: List[BotCommand] = [BotCommand(name, desc) for name, desc in commands.items()]
        try:
            await self.bot.set_my_commands(menu)
        except TelegramError as e:
            raise TransportFailure("setMyCommands", e) from e
        logger.info(f"[CLIENT] Published {len(menu)} bot commands")
