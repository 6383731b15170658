"""
telewrapper — Chat event routing for Telegram bots.

Routes inbound messages, audio notes and button callbacks to registered
handlers with per-chat authorization, stale-event filtering and a bounded
history of sent messages.
"""

from telewrapper.config import Settings, get_settings
from telewrapper.errors import InvalidChatTarget, TeleWrapperError, TransportFailure
from telewrapper.events import CallbackEvent, Chat, ChatMessage, User
from telewrapper.wrapper import TeleWrapper

__all__ = [
    "CallbackEvent",
    "Chat",
    "ChatMessage",
    "InvalidChatTarget",
    "Settings",
    "TeleWrapper",
    "TeleWrapperError",
    "TransportFailure",
    "User",
    "get_settings",
]
