"""
Outbox tests — bounded history and bulk compaction.
"""

import math

import pytest

from telewrapper.events import Chat, ChatMessage
from telewrapper.outbox import OutboxHistory


def sent(chat_id, message_id):
    return ChatMessage(chat=Chat(id=chat_id), message_id=message_id)


class TestOutboxHistory:
    def test_rejects_non_positive_capacity(self):
        with pytest.raises(ValueError):
            OutboxHistory(0)

    def test_appends_below_capacity(self):
        outbox = OutboxHistory(5)
        for i in range(5):
            outbox.append(sent(1, i))
        assert [m.message_id for m in outbox] == [0, 1, 2, 3, 4]

    @pytest.mark.parametrize("capacity", [1, 7, 10, 25, 1000])
    def test_compacts_to_most_recent_tenth(self, capacity):
        outbox = OutboxHistory(capacity)
        for i in range(capacity + 1):
            outbox.append(sent(1, i))
        keep = math.ceil(capacity / 10)
        assert len(outbox) == keep
        assert [m.message_id for m in outbox] == list(range(capacity + 1 - keep, capacity + 1))

    def test_entries_filtered_by_chat(self):
        outbox = OutboxHistory()
        outbox.append(sent(1, 10))
        outbox.append(sent(2, 20))
        outbox.append(sent(1, 11))
        assert [m.message_id for m in outbox.entries([1])] == [10, 11]
        assert len(outbox.entries()) == 3

    def test_discard_by_key(self):
        outbox = OutboxHistory()
        outbox.append(sent(1, 10))
        outbox.append(sent(2, 10))
        assert outbox.discard({(1, 10)}) == 1
        assert [m.key for m in outbox] == [(2, 10)]
        outbox.clear()
        assert len(outbox) == 0
