"""
Messaging — Outbound helpers used by handlers.

Every send goes through :meth:`Messenger.send_message_base`, which refuses
chats outside the authorized set before touching the network and records
successful sends in the outbox. Deletions used for cleanup are best effort:
failures are logged and dropped.
"""

import asyncio
import logging
from typing import Any, Iterable, List, Optional, Sequence, Union

from telegram import InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove
from telegram.constants import ParseMode

from telewrapper.client import ChatClient
from telewrapper.diagnostics import DiagnosticKind, Diagnostics
from telewrapper.errors import InvalidChatTarget, TransportFailure
from telewrapper.events import ChatMessage
from telewrapper.keyboards import remove_keyboard
from telewrapper.outbox import OutboxHistory
from telewrapper.routing.auth import AuthorizedChatSet, ChatScope, normalize_chat_ids

logger = logging.getLogger(__name__)

Keyboard = Union[InlineKeyboardMarkup, ReplyKeyboardMarkup, ReplyKeyboardRemove]

DICE_EMOJI = {
    "dice": "🎲",
    "slot": "🎰",
    "basket": "🏀",
    "soccer": "⚽",
    "target": "🎯",
}


def message_equal(first: ChatMessage, second: ChatMessage) -> bool:
    return first.chat_id == second.chat_id and first.message_id == second.message_id


class Messenger:
    """Outbound message helpers bound to one client, chat set and outbox."""

    def __init__(
        self,
        client: ChatClient,
        chats: AuthorizedChatSet,
        outbox: OutboxHistory,
        diagnostics: Diagnostics,
    ):
        self.client = client
        self.chats = chats
        self.outbox = outbox
        self.diagnostics = diagnostics

    async def _ensure_valid_target(self, chat_id: int, what: str = "message") -> None:
        if chat_id not in self.chats:
            await self.diagnostics.report(
                DiagnosticKind.INVALID_CHAT_TARGET,
                f"Error: trying to send a {what} to an invalid chat id",
                chat_id=chat_id,
            )
            raise InvalidChatTarget(chat_id)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    async def send_message_base(
        self,
        text: str,
        chat_id: int,
        *,
        disable_notification: bool = False,
        parse_mode: Optional[str] = None,
        reply_markup: Any = None,
        reply_to_message_id: Optional[int] = None,
    ) -> ChatMessage:
        await self._ensure_valid_target(chat_id)
        msg = await self.client.send_message(
            chat_id,
            text,
            disable_notification=disable_notification,
            parse_mode=parse_mode,
            reply_markup=reply_markup,
            reply_to_message_id=reply_to_message_id,
        )
        self.outbox.append(msg)
        return msg

    async def send_message(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.send_message_base(text, chat_id, disable_notification=not notification)

    async def send_markdown(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.send_message_base(
            text, chat_id, parse_mode=ParseMode.MARKDOWN, disable_notification=not notification
        )

    async def send_markdown_v2(self, text: str, chat_id: int, notification: bool = True) -> ChatMessage:
        return await self.send_message_base(
            text, chat_id, parse_mode=ParseMode.MARKDOWN_V2, disable_notification=not notification
        )

    async def send_reply(
        self, text: str, chat_id: int, reply_id: int, markdown: bool = False
    ) -> ChatMessage:
        return await self.send_message_base(
            text,
            chat_id,
            reply_to_message_id=reply_id,
            parse_mode=ParseMode.MARKDOWN if markdown else None,
        )

    async def send_keyboard(
        self,
        text: str,
        chat_id: int,
        keyboard: Keyboard,
        notification: bool = False,
        markdown: bool = False,
    ) -> ChatMessage:
        return await self.send_message_base(
            text,
            chat_id,
            reply_markup=keyboard,
            parse_mode=ParseMode.MARKDOWN if markdown else None,
            disable_notification=not notification,
        )

    async def clear_keyboard(self, chat_id: int, selective: bool = False) -> None:
        """Remove the reply keyboard shown in a chat."""
        # Telegram only removes a reply keyboard together with a message
        msg = await self.send_message_base(
            ".", chat_id, reply_markup=remove_keyboard(selective), disable_notification=True
        )
        await self.delete_message(msg)

    async def send_poll(
        self, question: str, chat_id: int, options: Sequence[str], **kwargs: Any
    ) -> ChatMessage:
        await self._ensure_valid_target(chat_id, "poll")
        msg = await self.client.send_poll(chat_id, question, options, **kwargs)
        self.outbox.append(msg)
        return msg

    async def send_dice(self, chat_id: int, kind: str = "dice") -> ChatMessage:
        """Send an animated dice; for other kinds also post the rolled value."""
        if kind not in DICE_EMOJI:
            raise ValueError(f"Unknown dice kind: {kind}")
        await self._ensure_valid_target(chat_id, "dice")
        msg = await self.client.send_dice(chat_id, DICE_EMOJI[kind], disable_notification=True)
        self.outbox.append(msg)
        if msg.dice_emoji and msg.dice_emoji != DICE_EMOJI["dice"]:
            await self.send_message(f"Value: {msg.dice_value}", msg.chat_id)
        return msg

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    async def edit_message(
        self,
        message: ChatMessage,
        text: str,
        keyboard: Optional[InlineKeyboardMarkup] = None,
        parse_mode: Optional[str] = None,
    ) -> ChatMessage:
        """Replace a message's text; without ``keyboard`` the current one is kept."""
        markup = message.reply_markup if keyboard is None else keyboard
        return await self.client.edit_message_text(
            message.chat_id, message.message_id, text, parse_mode=parse_mode, reply_markup=markup
        )

    async def edit_markdown(
        self, message: ChatMessage, text: str, keyboard: Optional[InlineKeyboardMarkup] = None
    ) -> ChatMessage:
        return await self.edit_message(message, text, keyboard, parse_mode=ParseMode.MARKDOWN)

    async def edit_markdown_v2(
        self, message: ChatMessage, text: str, keyboard: Optional[InlineKeyboardMarkup] = None
    ) -> ChatMessage:
        return await self.edit_message(message, text, keyboard, parse_mode=ParseMode.MARKDOWN_V2)

    async def replace_keyboard(self, message: ChatMessage, keyboard: InlineKeyboardMarkup) -> None:
        await self.client.edit_message_reply_markup(message.chat_id, message.message_id, keyboard)

    async def clear_inline(self, message: ChatMessage) -> None:
        await self.client.edit_message_reply_markup(message.chat_id, message.message_id, None)

    # ------------------------------------------------------------------
    # Deleting
    # ------------------------------------------------------------------

    async def delete_message(
        self, message: Union[ChatMessage, Iterable[ChatMessage], None]
    ) -> None:
        """Delete one message, or several concurrently."""
        if message is None:
            return
        if isinstance(message, ChatMessage):
            await self.client.delete_message(message.chat_id, message.message_id)
            return
        await asyncio.gather(*(self.delete_message(m) for m in message))

    async def delete_quietly(self, message: Optional[ChatMessage]) -> bool:
        """Best-effort delete; returns False instead of raising on failure."""
        if message is None:
            return False
        try:
            await self.delete_message(message)
        except TransportFailure as e:
            logger.warning(f"[OUTBOX] Could not delete {message.key}: {e}")
            return False
        return True

    async def clear_messages(
        self, chat_ids: ChatScope, exclude: Optional[Iterable[ChatMessage]] = None
    ) -> int:
        """
        Delete every stored message of the given chats, except ``exclude``.

        Messages that fail to delete are forgotten all the same. Returns the
        number of successful deletions.
        """
        ids = set(normalize_chat_ids(chat_ids))
        keep = {m.key for m in exclude or []}
        targets: List[ChatMessage] = [
            m for m in self.outbox.entries(ids) if m.key not in keep
        ]
        results = await asyncio.gather(
            *(self.delete_message(m) for m in targets), return_exceptions=True
        )
        failures = [r for r in results if isinstance(r, Exception)]
        for error in failures:
            logger.warning(f"[OUTBOX] Delete failed during clear: {error}")

        self.outbox.discard({m.key for m in targets})
        return len(targets) - len(failures)
