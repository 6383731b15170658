"""Exceptions raised by telewrapper."""

from typing import Optional


class TeleWrapperError(Exception):
    """Base class for all telewrapper errors."""


class TransportFailure(TeleWrapperError):
    """A send / edit / delete call against the chat platform failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"{operation} failed{detail}")


class InvalidChatTarget(TeleWrapperError):
    """An outbound message targeted a chat that is not authorized."""

    def __init__(self, chat_id: int):
        self.chat_id = chat_id
        super().__init__(f"Invalid chat id when sending message: {chat_id}")
