"""
Outbox History — Messages the bot itself has sent.

A bounded list used by ``clear_messages`` to retract what the bot posted.
Eviction is by bulk compaction: once the list grows past its capacity it is
cut down to the most recent tenth, so most appends are a plain push.
"""

import logging
import math
from typing import Iterable, List, Optional, Set

from telewrapper.events import ChatMessage

logger = logging.getLogger(__name__)


class OutboxHistory:
    """Bounded, insertion-ordered history of sent messages."""

    def __init__(self, capacity: int = 1000):
        if capacity < 1:
            raise ValueError("Outbox capacity must be positive")
        self.capacity = capacity
        self._entries: List[ChatMessage] = []

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(list(self._entries))

    @property
    def retained_after_compaction(self) -> int:
        return math.ceil(self.capacity / 10)

    def append(self, entry: ChatMessage) -> None:
        self._entries.append(entry)
        if len(self._entries) > self.capacity:
            keep = self.retained_after_compaction
            dropped = len(self._entries) - keep
            self._entries = self._entries[-keep:]
            logger.debug(f"[OUTBOX] Compacted history, dropped {dropped} oldest entries")

    def entries(self, chat_ids: Optional[Iterable[int]] = None) -> List[ChatMessage]:
        """Snapshot of stored entries, optionally limited to some chats."""
        if chat_ids is None:
            return list(self._entries)
        wanted = set(chat_ids)
        return [e for e in self._entries if e.chat_id in wanted]

    def discard(self, keys: Set[tuple]) -> int:
        """Drop every entry whose (chat_id, message_id) is in ``keys``."""
        before = len(self._entries)
        self._entries = [e for e in self._entries if e.key not in keys]
        return before - len(self._entries)

    def clear(self) -> None:
        self._entries = []
