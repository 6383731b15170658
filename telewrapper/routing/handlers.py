"""
Handler Descriptors — One dataclass per handler kind.

The set of kinds is closed: ``HandlerKind`` names every case and each
descriptor carries its kind, so the dispatcher can switch on it. Callbacks
may be plain functions or coroutine functions; awaitable results are
awaited by :func:`call_handler`.
"""

from __future__ import annotations

import inspect
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, List, Optional, Union

from telewrapper.events import CallbackEvent, ChatMessage

CommandCallback = Callable[[ChatMessage, str], Any]
PatternCallback = Callable[[ChatMessage, bool, "re.Match[str]"], Any]
AnyCallback = Callable[[ChatMessage, bool], Any]
InvalidCallback = Callable[[ChatMessage, bool], Union[bool, Awaitable[bool]]]
ButtonCallback = Callable[[CallbackEvent], Union[None, str, Awaitable[Optional[str]]]]


class HandlerKind(str, Enum):
    COMMAND = "command"
    PATTERN = "pattern"
    CATCH_ALL = "catch_all"
    AUDIO = "audio"
    INVALID = "invalid"
    BUTTON = "button"


@dataclass
class CommandRoute:
    """Exact ``/token`` command."""
    token: str
    callback: CommandCallback
    chat_ids: List[int] = field(default_factory=list)
    description: str = "(empty)"
    kind: HandlerKind = field(default=HandlerKind.COMMAND, init=False)


@dataclass
class PatternRoute:
    """Regular expression searched in the message text."""
    pattern: "re.Pattern[str]"
    callback: PatternCallback
    chat_ids: List[int] = field(default_factory=list)
    description: str = ""
    kind: HandlerKind = field(default=HandlerKind.PATTERN, init=False)


@dataclass
class CatchAllRoute:
    """Runs for every message in scope, handled or not."""
    callback: AnyCallback
    chat_ids: List[int] = field(default_factory=list)
    kind: HandlerKind = field(default=HandlerKind.CATCH_ALL, init=False)


@dataclass
class AudioRoute:
    """Runs for every voice / audio message in scope."""
    callback: AnyCallback
    chat_ids: List[int] = field(default_factory=list)
    kind: HandlerKind = field(default=HandlerKind.AUDIO, init=False)


@dataclass
class InvalidRoute:
    """Runs when a message comes from an unauthorized chat."""
    callback: InvalidCallback
    kind: HandlerKind = field(default=HandlerKind.INVALID, init=False)


@dataclass
class ButtonRoute:
    """Inline button press keyed by callback data."""
    button_id: str
    callback: ButtonCallback
    kind: HandlerKind = field(default=HandlerKind.BUTTON, init=False)


HandlerDescriptor = Union[
    CommandRoute, PatternRoute, CatchAllRoute, AudioRoute, InvalidRoute, ButtonRoute
]


async def call_handler(callback: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async handler and return its (awaited) result."""
    result = callback(*args)
    if inspect.isawaitable(result):
        result = await result
    return result
