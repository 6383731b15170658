"""
Event Types — Normalised chat objects consumed by the router.

The router never touches python-telegram-bot objects directly. Inbound
updates and sent messages are converted into the small dataclasses below;
the original object is kept in ``raw`` for handlers that need more.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Optional

import telegram


@dataclass
class Chat:
    id: int
    type: str = "private"
    title: Optional[str] = None
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def to_json(self) -> str:
        data = {k: v for k, v in self.__dict__.items() if v is not None}
        return json.dumps(data, ensure_ascii=False)

    @classmethod
    def from_telegram(cls, chat: telegram.Chat) -> "Chat":
        return cls(
            id=chat.id,
            type=chat.type,
            title=chat.title,
            username=chat.username,
            first_name=chat.first_name,
            last_name=chat.last_name,
        )


@dataclass
class User:
    id: int
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None
    is_bot: bool = False

    def describe(self) -> str:
        """``First Last | username`` with placeholders for missing parts."""
        surname = self.last_name or "(no surname)"
        username = self.username or "(no username)"
        return f"{self.first_name} {surname} | {username}"

    @classmethod
    def from_telegram(cls, user: telegram.User) -> "User":
        return cls(
            id=user.id,
            first_name=user.first_name,
            last_name=user.last_name,
            username=user.username,
            is_bot=user.is_bot,
        )


@dataclass
class ChatMessage:
    """A message seen by the router, inbound or sent by the bot itself."""

    chat: Chat
    message_id: int
    date: float = 0.0  # epoch seconds
    text: Optional[str] = None
    from_user: Optional[User] = None
    reply_to: Optional["ChatMessage"] = None
    has_audio: bool = False
    reply_markup: Any = None
    dice_emoji: Optional[str] = None
    dice_value: Optional[int] = None
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def chat_id(self) -> int:
        return self.chat.id

    @property
    def key(self) -> tuple:
        return (self.chat.id, self.message_id)

    def same_message(self, other: "ChatMessage") -> bool:
        return self.key == other.key

    @classmethod
    def from_telegram(cls, msg: telegram.Message) -> "ChatMessage":
        reply_to = None
        if msg.reply_to_message is not None:
            reply_to = cls.from_telegram(msg.reply_to_message)
        dice = msg.dice
        return cls(
            chat=Chat.from_telegram(msg.chat),
            message_id=msg.message_id,
            date=msg.date.timestamp() if msg.date else 0.0,
            text=msg.text,
            from_user=User.from_telegram(msg.from_user) if msg.from_user else None,
            reply_to=reply_to,
            has_audio=bool(msg.voice or msg.audio),
            reply_markup=msg.reply_markup,
            dice_emoji=dice.emoji if dice else None,
            dice_value=dice.value if dice else None,
            raw=msg,
        )


@dataclass
class CallbackEvent:
    """A button press on an inline keyboard."""

    callback_id: str
    data: Optional[str] = None
    from_user: Optional[User] = None
    message: Optional[ChatMessage] = None
    raw: Any = field(default=None, repr=False, compare=False)

    @property
    def chat_id(self) -> Optional[int]:
        return self.message.chat_id if self.message else None

    @classmethod
    def from_telegram(cls, query: telegram.CallbackQuery) -> "CallbackEvent":
        message = None
        # Messages older than 48h arrive as InaccessibleMessage without text
        if isinstance(query.message, telegram.Message):
            message = ChatMessage.from_telegram(query.message)
        elif query.message is not None:
            message = ChatMessage(
                chat=Chat.from_telegram(query.message.chat),
                message_id=query.message.message_id,
                raw=query.message,
            )
        return cls(
            callback_id=query.id,
            data=query.data,
            from_user=User.from_telegram(query.from_user) if query.from_user else None,
            message=message,
            raw=query,
        )
