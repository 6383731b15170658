"""
Shared fixtures: an in-memory ChatClient and a TeleWrapper bound to it.
"""

import asyncio
import itertools
import time
from typing import Any, Dict, List, Optional, Sequence, Set

import pytest

from telewrapper.client import ChatClient
from telewrapper.config import Settings
from telewrapper.errors import TransportFailure
from telewrapper.events import Chat, ChatMessage, User
from telewrapper.wrapper import TeleWrapper

BOT = User(id=42, first_name="Router", username="router_bot", is_bot=True)


class FakeChatClient(ChatClient):
    """Records every outbound call instead of talking to Telegram."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.sent: List[ChatMessage] = []
        self.deleted: List[tuple] = []
        self.answers: List[Dict[str, Any]] = []
        self.commands: Dict[str, str] = {}
        self.fail_deletes: Set[tuple] = set()
        self.fail_sends = False
        self.dice_value = 4
        self.delete_gate: Optional[asyncio.Event] = None
        self._ids = itertools.count(1000)

    def _new_message(self, chat_id: int, text: Optional[str] = None, **kwargs) -> ChatMessage:
        msg = ChatMessage(
            chat=Chat(id=chat_id),
            message_id=next(self._ids),
            date=time.time(),
            text=text,
            from_user=BOT,
            **kwargs,
        )
        self.sent.append(msg)
        return msg

    async def get_me(self) -> User:
        self.calls.append(("get_me",))
        return BOT

    async def send_message(self, chat_id, text, *, disable_notification=False, parse_mode=None,
                           reply_markup=None, reply_to_message_id=None) -> ChatMessage:
        self.calls.append(("send_message", chat_id, text, {
            "disable_notification": disable_notification,
            "parse_mode": parse_mode,
            "reply_markup": reply_markup,
            "reply_to_message_id": reply_to_message_id,
        }))
        if self.fail_sends:
            raise TransportFailure("sendMessage")
        return self._new_message(chat_id, text, reply_markup=reply_markup)

    async def edit_message_text(self, chat_id, message_id, text, *, parse_mode=None,
                                reply_markup=None) -> ChatMessage:
        self.calls.append(("edit_message_text", chat_id, message_id, text, parse_mode, reply_markup))
        return ChatMessage(chat=Chat(id=chat_id), message_id=message_id, text=text,
                           reply_markup=reply_markup)

    async def edit_message_reply_markup(self, chat_id, message_id, reply_markup=None) -> None:
        self.calls.append(("edit_message_reply_markup", chat_id, message_id, reply_markup))

    async def delete_message(self, chat_id, message_id) -> None:
        self.calls.append(("delete_message", chat_id, message_id))
        if self.delete_gate is not None:
            await self.delete_gate.wait()
        if (chat_id, message_id) in self.fail_deletes:
            raise TransportFailure("deleteMessage")
        self.deleted.append((chat_id, message_id))

    async def send_poll(self, chat_id, question, options: Sequence[str], **kwargs) -> ChatMessage:
        self.calls.append(("send_poll", chat_id, question, list(options), kwargs))
        return self._new_message(chat_id)

    async def send_dice(self, chat_id, emoji=None, *, disable_notification=True) -> ChatMessage:
        self.calls.append(("send_dice", chat_id, emoji))
        return self._new_message(chat_id, dice_emoji=emoji or "🎲", dice_value=self.dice_value)

    async def answer_callback_query(self, callback_id, text=None, show_alert=False) -> None:
        self.answers.append({"id": callback_id, "text": text, "show_alert": show_alert})

    async def set_my_commands(self, commands: Dict[str, str]) -> None:
        self.commands = dict(commands)

    def texts_to(self, chat_id: int) -> List[str]:
        return [c[2] for c in self.calls if c[0] == "send_message" and c[1] == chat_id]


def make_message(chat_id: int, text: Optional[str] = None, *, message_id: int = 1,
                 date: Optional[float] = None, from_user: Optional[User] = None,
                 reply_to: Optional[ChatMessage] = None, has_audio: bool = False) -> ChatMessage:
    return ChatMessage(
        chat=Chat(id=chat_id, type="group", title=f"chat {chat_id}"),
        message_id=message_id,
        date=time.time() + 1 if date is None else date,
        text=text,
        from_user=from_user or User(id=7, first_name="Ada", username="ada"),
        reply_to=reply_to,
        has_audio=has_audio,
    )


@pytest.fixture
def settings() -> Settings:
    return Settings(
        telegram_bot_token=None,
        debug_chat_id=0,
        message_history_length=1000,
        button_error_grace_seconds=0.0,
        _env_file=None,
    )


@pytest.fixture
def client() -> FakeChatClient:
    return FakeChatClient()


@pytest.fixture
def bot(client, settings) -> TeleWrapper:
    return TeleWrapper(client=client, settings=settings)
