"""
Diagnostics — Error reporting for the router.

Every reportable problem is written to the log and kept in a bounded
history. When a debug chat is configured (non-zero id) the report is also
mirrored to that chat, with the stack trace when one is available.

Usage:
    diagnostics = Diagnostics(client, outbox, debug_chat_id=-100123)
    await diagnostics.send_error("message error", exc)
    diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)
"""

import asyncio
import logging
import time
import traceback
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, List, Optional, Set

from telewrapper.client import ChatClient
from telewrapper.errors import TransportFailure
from telewrapper.events import ChatMessage
from telewrapper.outbox import OutboxHistory
from telewrapper.structured_logging import Subsystem, get_subsystem_logger

log = get_subsystem_logger(Subsystem.DIAGNOSTICS)

# Telegram rejects longer texts
MAX_MESSAGE_LENGTH = 4096


class DiagnosticKind(str, Enum):
    MALFORMED_REGISTRATION = "malformed_registration"
    UNAUTHORIZED_EVENT = "unauthorized_event"
    STALE_EVENT = "stale_event"
    DISPATCH_FAILURE = "dispatch_failure"
    TRANSPORT_FAILURE = "transport_failure"
    INVALID_CHAT_TARGET = "invalid_chat_target"
    SOFT_ERROR = "soft_error"


_LEVELS = {
    DiagnosticKind.STALE_EVENT: logging.INFO,
    DiagnosticKind.MALFORMED_REGISTRATION: logging.WARNING,
    DiagnosticKind.SOFT_ERROR: logging.WARNING,
    DiagnosticKind.UNAUTHORIZED_EVENT: logging.WARNING,
}


@dataclass
class Diagnostic:
    """A single recorded report."""
    kind: DiagnosticKind
    message: str
    chat_id: Optional[int] = None
    error: Optional[str] = None
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "chat_id": self.chat_id,
            "error": self.error,
            "timestamp": self.timestamp,
        }


def format_error(error: Any) -> str:
    """Render an exception with its traceback, or any other value as text."""
    if error is None:
        return ""
    if isinstance(error, BaseException):
        if error.__traceback__ is not None:
            return "".join(
                traceback.format_exception(type(error), error, error.__traceback__)
            ).rstrip()
        return f"{type(error).__name__}: {error}"
    return str(error)


class Diagnostics:
    """Dual-sink diagnostic channel: log + optional debug chat."""

    def __init__(
        self,
        client: ChatClient,
        outbox: OutboxHistory,
        debug_chat_id: int = 0,
        history_size: int = 100,
    ):
        self.client = client
        self.outbox = outbox
        self.debug_chat_id = debug_chat_id
        self._history: Deque[Diagnostic] = deque(maxlen=history_size)
        self._pending: Set[asyncio.Task] = set()

    def record(
        self,
        kind: DiagnosticKind,
        message: str,
        error: Any = None,
        chat_id: Optional[int] = None,
    ) -> Diagnostic:
        """Log a report and keep it in history without mirroring it."""
        entry = Diagnostic(
            kind=kind,
            message=message,
            chat_id=chat_id,
            error=format_error(error) or None,
        )
        self._history.append(entry)
        level = _LEVELS.get(kind, logging.ERROR)
        exc_info = error if isinstance(error, BaseException) and level >= logging.ERROR else None
        log.log(level, f"[{kind.value}] {message}", {"chat_id": chat_id} if chat_id else None,
                exc_info=exc_info)
        return entry

    async def report(
        self,
        kind: DiagnosticKind,
        message: str,
        error: Any = None,
        chat_id: Optional[int] = None,
        silent: bool = True,
    ) -> Optional[ChatMessage]:
        """Record a report and mirror it to the debug chat when one is set."""
        entry = self.record(kind, message, error=error, chat_id=chat_id)
        if not self.debug_chat_id:
            return None
        text = message
        if entry.error:
            text += "\n\n" + entry.error
        return await self._mirror(text, silent)

    async def send_error(self, text: str, error: Any = None) -> Optional[ChatMessage]:
        """Report a failure as ``Error: <text>``."""
        kind = DiagnosticKind.DISPATCH_FAILURE
        if isinstance(error, TransportFailure):
            kind = DiagnosticKind.TRANSPORT_FAILURE
        return await self.report(kind, "Error: " + text, error=error)

    def report_nowait(self, kind: DiagnosticKind, message: str, error: Any = None) -> None:
        """Report from synchronous code; mirroring runs in the background if a loop is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self.record(kind, message, error=error)
            return
        task = loop.create_task(self.report(kind, message, error=error))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait for background reports to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _mirror(self, text: str, silent: bool) -> Optional[ChatMessage]:
        if len(text) > MAX_MESSAGE_LENGTH:
            text = text[: MAX_MESSAGE_LENGTH - 1] + "…"
        try:
            msg = await self.client.send_message(
                self.debug_chat_id, text, disable_notification=silent
            )
        except Exception as e:
            # The debug chat itself is unreachable, the log is all we have
            log.error(f"[DIAG] Could not mirror report to debug chat {self.debug_chat_id}: {e}")
            return None
        self.outbox.append(msg)
        return msg

    def records(self, kind: Optional[DiagnosticKind] = None) -> List[Diagnostic]:
        """List recorded reports, optionally filtered by kind."""
        entries = list(self._history)
        if kind is not None:
            entries = [e for e in entries if e.kind == kind]
        return entries
