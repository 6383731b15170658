"""
Authorization tests — chat set, stale events, scopes, invalid handlers.
"""

import pytest

from telewrapper.diagnostics import DiagnosticKind

from tests.conftest import make_message


# ── Authorized chat set ─────────────────────────────

class TestAuthorizedChatSet:
    def test_add_and_remove(self, bot):
        assert bot.add_valid_chat(100) is True
        assert bot.add_valid_chat(200) is True
        assert bot.get_valid_chats() == [100, 200]
        assert bot.remove_valid_chat(100) is True
        assert bot.get_valid_chats() == [200]

    def test_zero_is_ignored(self, bot):
        assert bot.add_valid_chat(0) is False
        assert bot.get_valid_chats() == []

    def test_duplicate_add_is_soft_error(self, bot):
        bot.add_valid_chat(100)
        assert bot.add_valid_chat(100) is False
        errors = bot.diagnostics.records(DiagnosticKind.SOFT_ERROR)
        assert [e.message for e in errors] == ["Error: tried to add duplicate valid chat"]
        assert bot.get_valid_chats() == [100]

    def test_remove_missing_is_soft_error(self, bot):
        assert bot.remove_valid_chat(555) is False
        errors = bot.diagnostics.records(DiagnosticKind.SOFT_ERROR)
        assert errors[0].message == "Error: tried to remove non-existing valid chat"

    def test_debug_chat_is_implicit(self, bot):
        bot.add_valid_chat(100)
        bot.set_debug_chat(-500)
        assert bot.debug_chat == -500
        assert bot.get_valid_chats() == [-500, 100]
        assert -500 in bot.chats
        assert len(bot.chats) == 2

    @pytest.mark.asyncio
    async def test_soft_error_mirrored_to_debug_chat(self, bot, client):
        bot.set_debug_chat(-500)
        bot.add_valid_chat(100)
        bot.add_valid_chat(100)
        await bot.diagnostics.drain()
        assert client.texts_to(-500) == ["Error: tried to add duplicate valid chat"]


# ── Gate ─────────────────────────────────────────────

class TestAuthorizationGate:
    def test_stale_detection(self, bot):
        old = make_message(100, "/ping", date=bot.start_time - 60)
        fresh = make_message(100, "/ping")
        assert bot.gate.is_stale(old)
        assert not bot.gate.is_stale(fresh)

    def test_same_second_as_start_is_fresh(self, bot):
        bot.gate.start_time = 1_700_000_000.6
        assert not bot.gate.is_stale(make_message(100, date=1_700_000_000.0))
        assert bot.gate.is_stale(make_message(100, date=1_699_999_999.0))

    def test_in_scope(self, bot):
        bot.add_valid_chat(100)
        assert bot.gate.in_scope(300, [300])
        assert bot.gate.in_scope(100, [])
        assert not bot.gate.in_scope(999, [])
        assert not bot.gate.in_scope(100, [300])

    @pytest.mark.asyncio
    async def test_stale_is_not_authorized(self, bot):
        old = make_message(100, "/ping", date=bot.start_time - 60)
        assert await bot.gate.is_authorized(old, [100]) is False
        assert bot.diagnostics.records(DiagnosticKind.STALE_EVENT)
        assert bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT) == []

    @pytest.mark.asyncio
    async def test_listed_chat_allowed_even_if_not_authorized(self, bot):
        assert await bot.gate.is_authorized(make_message(300), [300]) is True

    @pytest.mark.asyncio
    async def test_empty_scope_allows_authorized_chats(self, bot):
        bot.add_valid_chat(100)
        assert await bot.gate.is_authorized(make_message(100), []) is True

    @pytest.mark.asyncio
    async def test_unregistered_chat_reported(self, bot):
        assert await bot.gate.is_authorized(make_message(999, "hi"), []) is False
        [record] = bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)
        assert record.message.startswith("Received message from unregistered chat: ")
        assert '"id": 999' in record.message
        assert record.message.endswith("\nMessage: hi")
        assert record.chat_id == 999

    @pytest.mark.asyncio
    async def test_authorized_chat_outside_command_scope_reported(self, bot):
        bot.add_valid_chat(100)
        assert await bot.gate.is_authorized(make_message(100, "/secret"), [300]) is False
        [record] = bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)
        assert record.message.startswith("Received command from a chat that doesn't support it: ")
        assert "\nUser: Ada (no surname) | ada\n" in record.message

    @pytest.mark.asyncio
    async def test_pattern_mode_silent_for_authorized_chats(self, bot):
        bot.add_valid_chat(100)
        assert await bot.gate.is_authorized(make_message(100, "x"), [300], pattern_mode=True) is False
        assert bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT) == []

    @pytest.mark.asyncio
    async def test_pattern_mode_reports_unregistered_chats(self, bot):
        assert await bot.gate.is_authorized(make_message(999, "x"), [300], pattern_mode=True) is False
        assert len(bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)) == 1

    @pytest.mark.asyncio
    async def test_unauthorized_report_not_silent(self, bot, client):
        bot.set_debug_chat(-500)
        await bot.gate.is_authorized(make_message(999, "hi"), [])
        [call] = [c for c in client.calls if c[0] == "send_message"]
        assert call[1] == -500
        assert call[3]["disable_notification"] is False


# ── Invalid handlers ─────────────────────────────────

class TestInvalidHandlers:
    @pytest.mark.asyncio
    async def test_claiming_handler_suppresses_report(self, bot):
        seen = []

        def claim(message, handled):
            seen.append((message.chat_id, handled))
            return True

        bot.on_invalid(claim)
        assert await bot.gate.is_authorized(make_message(999), []) is False
        assert seen == [(999, False)]
        assert bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT) == []

    @pytest.mark.asyncio
    async def test_handlers_see_running_flag(self, bot):
        flags = []

        async def first(message, handled):
            flags.append(handled)
            return True

        async def second(message, handled):
            flags.append(handled)
            return False

        bot.on_invalid(first)
        bot.on_invalid(second)
        await bot.gate.is_authorized(make_message(999), [])
        assert flags == [False, True]
        assert bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT) == []

    @pytest.mark.asyncio
    async def test_declining_handler_still_reports(self, bot):
        bot.on_invalid(lambda message, handled: False)
        await bot.gate.is_authorized(make_message(999), [])
        assert len(bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)) == 1

    @pytest.mark.asyncio
    async def test_not_called_for_authorized_chats(self, bot):
        calls = []
        bot.on_invalid(lambda message, handled: calls.append(message) or True)
        bot.add_valid_chat(100)
        await bot.gate.is_authorized(make_message(100, "/x"), [300])
        assert calls == []
        assert len(bot.diagnostics.records(DiagnosticKind.UNAUTHORIZED_EVENT)) == 1
