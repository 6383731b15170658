"""
Dispatcher — Runs the handlers matching one inbound event.

Message path, in order:

1. stale messages (sent before start) are dropped;
2. an exact command runs if the leading ``/token`` is registered;
3. otherwise every matching pattern runs, in registration order;
4. voice / audio messages run every audio handler in scope;
5. every catch-all handler in scope runs with the final ``handled`` flag.

Callback path: the button bridge resolves the callback data; unknown data
deletes the stale message and posts a short-lived error notice. The
callback is always answered so the client stops its loading indicator.

Exceptions never escape: they are reported to the diagnostic channel and
the dispatcher keeps serving the next event.
"""

import asyncio
import logging
import re
from typing import Callable, Optional, Set

from telewrapper.diagnostics import DiagnosticKind, Diagnostics
from telewrapper.events import CallbackEvent, ChatMessage, User
from telewrapper.messaging import Messenger
from telewrapper.routing.auth import AuthorizationGate
from telewrapper.routing.handlers import HandlerDescriptor, HandlerKind, call_handler
from telewrapper.routing.registry import HandlerRegistry, extract_command_token
from telewrapper.structured_logging import set_event_context

logger = logging.getLogger(__name__)

_LEADING_TOKEN = re.compile(r"^[^ ]+ ?")


def command_content(text: str) -> str:
    """Text after the command token and one separating space."""
    return _LEADING_TOKEN.sub("", text, count=1)


class Dispatcher:
    def __init__(
        self,
        registry: HandlerRegistry,
        gate: AuthorizationGate,
        messenger: Messenger,
        diagnostics: Diagnostics,
        bot_user: Optional[Callable[[], Optional[User]]] = None,
        button_error_text: str = "Sorry, an error has occurred",
        button_error_grace_seconds: float = 3.0,
    ):
        self.registry = registry
        self.gate = gate
        self.messenger = messenger
        self.diagnostics = diagnostics
        self._bot_user = bot_user or (lambda: None)
        self.button_error_text = button_error_text
        self.button_error_grace_seconds = button_error_grace_seconds
        self._tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def handle_message(self, message: ChatMessage) -> bool:
        """Route one message. Returns whether a command or pattern matched."""
        set_event_context(chat_id=message.chat_id, message_id=message.message_id)
        try:
            return await self._route_message(message)
        except Exception as e:
            await self.diagnostics.send_error("message error", e)
            return False

    async def handle_callback(self, query: CallbackEvent) -> None:
        """Route one button press and always answer it."""
        set_event_context(chat_id=query.chat_id, callback_id=query.callback_id)
        answer: Optional[str] = None
        try:
            route = self.registry.buttons.get(query.data)
            if route is not None:
                result = await self._invoke(route, query)
                if isinstance(result, str):
                    answer = result
            else:
                await self._handle_unknown_button(query)
        except Exception as e:
            await self.diagnostics.send_error(f"query error with button {query.data}", e)
        finally:
            await self._answer(query, answer)

    def submit(self, event) -> asyncio.Task:
        """Schedule an event without waiting for its handlers to finish."""
        if isinstance(event, CallbackEvent):
            coro = self.handle_callback(event)
        else:
            coro = self.handle_message(event)
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait until every submitted event has been processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # ------------------------------------------------------------------
    # Message path
    # ------------------------------------------------------------------

    async def _route_message(self, message: ChatMessage) -> bool:
        if self.gate.is_stale(message):
            self.diagnostics.record(
                DiagnosticKind.STALE_EVENT,
                "Not executing queued up message",
                chat_id=message.chat_id,
            )
            return False

        handled = False
        text = message.text

        token = extract_command_token(text or "").lower()
        command = self.registry.commands.get(token) if text and token else None
        if command is not None:
            await self.delete_if_mentioned(message)
            await self._invoke(command, message)
            handled = True

        if text and not handled:
            for route, match in self.registry.matching_patterns(text):
                await self.delete_if_mentioned(message)
                await self._invoke(route, message, handled, match)
                handled = True

        if message.has_audio:
            for route in list(self.registry.audio):
                if self.gate.in_scope(message.chat_id, route.chat_ids):
                    await self._invoke(route, message, handled)

        for route in list(self.registry.catch_alls):
            if self.gate.in_scope(message.chat_id, route.chat_ids):
                await self._invoke(route, message, handled)

        return handled

    async def _invoke(self, route: HandlerDescriptor, event, handled: bool = False, match=None):
        kind = route.kind
        if kind == HandlerKind.COMMAND:
            if not await self.gate.is_authorized(event, route.chat_ids):
                return None
            return await call_handler(route.callback, event, command_content(event.text or ""))
        if kind == HandlerKind.PATTERN:
            if not await self.gate.is_authorized(event, route.chat_ids, pattern_mode=True):
                return None
            return await call_handler(route.callback, event, handled, match)
        if kind in (HandlerKind.AUDIO, HandlerKind.CATCH_ALL):
            return await call_handler(route.callback, event, handled)
        if kind == HandlerKind.BUTTON:
            return await call_handler(route.callback, event)
        raise ValueError(f"Handler kind {kind} cannot be invoked for an event")

    async def delete_if_mentioned(self, message: ChatMessage) -> None:
        """Delete messages that @mention the bot or reply to it."""
        bot = self._bot_user()
        if bot is None or not bot.username:
            return
        mentioned = bool(message.text) and f"@{bot.username}" in message.text
        replied = (
            message.reply_to is not None
            and message.reply_to.from_user is not None
            and message.reply_to.from_user.username == bot.username
        )
        if mentioned or replied:
            await self.messenger.delete_quietly(message)

    # ------------------------------------------------------------------
    # Callback path
    # ------------------------------------------------------------------

    async def _handle_unknown_button(self, query: CallbackEvent) -> None:
        logger.info(f"[ROUTER] Unknown button {query.data!r}")
        await self.messenger.delete_quietly(query.message)

        if query.chat_id is not None:
            notice = await self.messenger.send_message(self.button_error_text, query.chat_id)
        else:
            notice = await self.diagnostics.send_error(
                f"{self.button_error_text} in an unknown query"
            )

        if notice is not None:
            await asyncio.sleep(self.button_error_grace_seconds)
            await self.messenger.delete_quietly(notice)

    async def _answer(self, query: CallbackEvent, answer: Optional[str]) -> None:
        text = None
        show_alert = False
        if answer:
            show_alert = answer.startswith("!")
            text = answer[1:] if show_alert else answer
        try:
            await self.messenger.client.answer_callback_query(
                query.callback_id, text=text, show_alert=show_alert
            )
        except Exception as e:
            await self.diagnostics.send_error(f"could not answer button {query.data}", e)
