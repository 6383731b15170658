"""
Handler Registry — Stores every handler descriptor.

Registration happens at startup. Commands are keyed by their case-folded
token and never replaced; patterns, catch-alls and audio handlers keep
registration order. Registering a scoped handler authorizes its chats
unless the caller manages authorization explicitly.
"""

import logging
import re
from typing import Dict, Iterable, List, Optional, Union

from telewrapper.buttons import ButtonBridge
from telewrapper.diagnostics import DiagnosticKind, Diagnostics
from telewrapper.events import ChatMessage
from telewrapper.routing.auth import AuthorizedChatSet, ChatScope, normalize_chat_ids
from telewrapper.routing.handlers import (
    AnyCallback,
    AudioRoute,
    ButtonCallback,
    ButtonRoute,
    CatchAllRoute,
    CommandCallback,
    CommandRoute,
    InvalidCallback,
    InvalidRoute,
    PatternCallback,
    PatternRoute,
)

logger = logging.getLogger(__name__)

_COMMAND_TOKEN = re.compile(r"^/(\w+)", re.ASCII)
_ILLEGAL_TOKEN_CHARS = re.compile(r"\W", re.ASCII)


def extract_command_token(text: Optional[str]) -> str:
    """Return the leading ``/word`` of ``text`` without the slash, or ``""``."""
    if not text:
        return ""
    match = _COMMAND_TOKEN.match(text)
    return match.group(1) if match else ""


class HandlerRegistry:
    """All handler descriptors known to the dispatcher."""

    def __init__(self, chats: AuthorizedChatSet, diagnostics: Diagnostics):
        self.chats = chats
        self.diagnostics = diagnostics
        self.commands: Dict[str, CommandRoute] = {}
        self.patterns: List[PatternRoute] = []
        self.catch_alls: List[CatchAllRoute] = []
        self.audio: List[AudioRoute] = []
        self.invalid: List[InvalidRoute] = []
        self.buttons = ButtonBridge()

    def _authorize(self, chat_ids: List[int]) -> None:
        for chat_id in chat_ids:
            if chat_id not in self.chats:
                self.chats.add(chat_id)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_command(
        self,
        token: str,
        chat_ids: ChatScope,
        callback: CommandCallback,
        description: Optional[str] = None,
        *,
        authorize: bool = True,
    ) -> Optional[CommandRoute]:
        """Register ``/token``. Returns ``None`` if the token is illegal or taken."""
        if not token or _ILLEGAL_TOKEN_CHARS.search(token):
            self.diagnostics.record(
                DiagnosticKind.MALFORMED_REGISTRATION,
                f"Command '{token}' has illegal characters",
            )
            return None
        key = token.lower()
        if key in self.commands:
            self.diagnostics.record(
                DiagnosticKind.MALFORMED_REGISTRATION,
                f"Command '{token}' already exists",
            )
            return None

        ids = normalize_chat_ids(chat_ids)
        if authorize:
            self._authorize(ids)
        route = CommandRoute(
            token=token,
            callback=callback,
            chat_ids=ids,
            description=description or "(empty)",
        )
        self.commands[key] = route
        logger.debug(f"[ROUTER] Registered command /{key} for chats {ids or 'all'}")
        return route

    def register_pattern(
        self,
        pattern: Union[str, "re.Pattern[str]"],
        chat_ids: ChatScope,
        callback: PatternCallback,
        description: str = "",
        *,
        authorize: bool = True,
    ) -> PatternRoute:
        compiled = re.compile(pattern) if isinstance(pattern, str) else pattern
        ids = normalize_chat_ids(chat_ids)
        if authorize:
            self._authorize(ids)
        route = PatternRoute(
            pattern=compiled, callback=callback, chat_ids=ids, description=description
        )
        self.patterns.append(route)
        logger.debug(f"[ROUTER] Registered pattern {compiled.pattern!r}")
        return route

    def register_catch_all(
        self, chat_ids: ChatScope, callback: AnyCallback, *, authorize: bool = True
    ) -> CatchAllRoute:
        ids = normalize_chat_ids(chat_ids)
        if authorize:
            self._authorize(ids)
        route = CatchAllRoute(callback=callback, chat_ids=ids)
        self.catch_alls.append(route)
        return route

    def register_audio(
        self, chat_ids: ChatScope, callback: AnyCallback, *, authorize: bool = True
    ) -> AudioRoute:
        ids = normalize_chat_ids(chat_ids)
        if authorize:
            self._authorize(ids)
        route = AudioRoute(callback=callback, chat_ids=ids)
        self.audio.append(route)
        return route

    def register_invalid(self, callback: InvalidCallback) -> InvalidRoute:
        route = InvalidRoute(callback=callback)
        self.invalid.append(route)
        return route

    def register_button(self, button_id: str, callback: ButtonCallback) -> ButtonRoute:
        return self.buttons.register(button_id, callback)

    # ------------------------------------------------------------------
    # Lookup / introspection
    # ------------------------------------------------------------------

    def find_command(self, text: Optional[str]) -> Optional[CommandRoute]:
        token = extract_command_token(text).lower()
        if not token:
            return None
        return self.commands.get(token)

    def matching_patterns(self, text: Optional[str]) -> Iterable[tuple]:
        """Yield ``(route, match)`` for every pattern found in ``text``, in order."""
        if not text:
            return
        for route in list(self.patterns):
            match = route.pattern.search(text)
            if match:
                yield route, match

    def is_command(self, message: ChatMessage) -> bool:
        return bool(message.text) and self.find_command(message.text) is not None

    def is_pattern(self, message: ChatMessage) -> bool:
        return any(True for _ in self.matching_patterns(message.text))

    def command_descriptions(self) -> Dict[str, str]:
        return {key: route.description for key, route in self.commands.items()}
