"""
Authorization — Which chats may trigger which handlers.

``AuthorizedChatSet`` is the list of chats the bot serves; the debug chat
is always part of it. ``AuthorizationGate`` decides, per handler, whether an
inbound message may run it:

* messages older than the start time are dropped without a report;
* a chat listed in the handler's scope is always allowed;
* an empty scope means "any authorized chat";
* patterns skip authorized chats outside their scope silently;
* everything else runs the invalid handlers and, unless one of them claims
  the message, is reported to the diagnostic channel.
"""

import logging
import time
from typing import Iterable, List, Optional, Union

from telewrapper.diagnostics import DiagnosticKind, Diagnostics
from telewrapper.events import ChatMessage
from telewrapper.routing.handlers import InvalidRoute, call_handler

logger = logging.getLogger(__name__)

ChatScope = Union[int, Iterable[int], None]


def normalize_chat_ids(chat_ids: ChatScope) -> List[int]:
    """Accept a single id, an iterable of ids or ``None`` and return a list."""
    if chat_ids is None:
        return []
    if isinstance(chat_ids, int):
        return [chat_ids]
    return [int(c) for c in chat_ids]


class AuthorizedChatSet:
    """Ordered set of authorized chat ids, plus the implicit debug chat."""

    def __init__(self, diagnostics: Diagnostics, chat_ids: Optional[Iterable[int]] = None):
        self.diagnostics = diagnostics
        self._chats: List[int] = []
        for chat_id in chat_ids or []:
            self.add(chat_id)

    @property
    def debug_chat(self) -> int:
        return self.diagnostics.debug_chat_id

    def all(self) -> List[int]:
        if not self.debug_chat:
            return list(self._chats)
        return [self.debug_chat, *self._chats]

    def __contains__(self, chat_id: object) -> bool:
        return chat_id in self._chats or (bool(self.debug_chat) and chat_id == self.debug_chat)

    def __len__(self) -> int:
        return len(self.all())

    def add(self, chat_id: int) -> bool:
        if chat_id == 0:
            return False
        if chat_id in self._chats:
            self.diagnostics.report_nowait(
                DiagnosticKind.SOFT_ERROR, "Error: tried to add duplicate valid chat"
            )
            return False
        self._chats.append(chat_id)
        logger.info(f"[AUTH] Authorized chat {chat_id}")
        return True

    def remove(self, chat_id: int) -> bool:
        if chat_id not in self._chats:
            self.diagnostics.report_nowait(
                DiagnosticKind.SOFT_ERROR, "Error: tried to remove non-existing valid chat"
            )
            return False
        self._chats.remove(chat_id)
        logger.info(f"[AUTH] Removed chat {chat_id}")
        return True


class AuthorizationGate:
    """Per-handler authorization check with unauthorized reporting."""

    def __init__(
        self,
        chats: AuthorizedChatSet,
        invalid_routes: List[InvalidRoute],
        diagnostics: Diagnostics,
        start_time: Optional[float] = None,
    ):
        self.chats = chats
        self.invalid_routes = invalid_routes
        self.diagnostics = diagnostics
        self.start_time = time.time() if start_time is None else start_time

    def is_stale(self, message: ChatMessage) -> bool:
        """True if the message was sent before routing started."""
        # Telegram dates have whole-second precision
        return message.date < int(self.start_time)

    def in_scope(self, chat_id: int, chat_ids: List[int]) -> bool:
        """Scope test for catch-all and audio handlers; never reports."""
        if chat_id in chat_ids:
            return True
        return not chat_ids and chat_id in self.chats

    async def is_authorized(
        self, message: ChatMessage, chat_ids: List[int], pattern_mode: bool = False
    ) -> bool:
        if self.is_stale(message):
            self.diagnostics.record(
                DiagnosticKind.STALE_EVENT, "Not executing queued up command",
                chat_id=message.chat_id,
            )
            return False

        chat_id = message.chat_id
        valid = chat_id in self.chats

        if chat_id in chat_ids:
            return True
        if valid and not chat_ids:
            return True
        if valid and pattern_mode:
            return False

        handled = False
        if not valid:
            for route in list(self.invalid_routes):
                handled = bool(await call_handler(route.callback, message, handled)) or handled

        if not handled:
            await self.report_unauthorized(message, valid)
        return False

    async def report_unauthorized(self, message: ChatMessage, valid_chat: bool) -> None:
        if valid_chat:
            user = message.from_user.describe() if message.from_user else "Unknown"
            text = (
                "Received command from a chat that doesn't support it: "
                f"{message.chat.to_json()}\nUser: {user}\nMessage: {message.text}"
            )
        else:
            text = (
                "Received message from unregistered chat: "
                f"{message.chat.to_json()}\nMessage: {message.text}"
            )
        await self.diagnostics.report(
            DiagnosticKind.UNAUTHORIZED_EVENT, text, chat_id=message.chat_id, silent=False
        )
