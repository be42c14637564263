"""Degraded behavior when the store is unreachable or queries fail.

Best-effort operations return their defined fallbacks; safety-critical
operations raise ``bad_request:database`` with a generic client message.
"""

import asyncio
import logging
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.errors import GENERIC_MESSAGE, ChatError
from chatledger.domain.models import Visibility
from chatledger.modules.persistence import (
    ChatRepository,
    MessageRepository,
    QuotaCounter,
    StreamLedger,
    VoteRepository,
)

from conftest import make_message


@pytest.fixture(params=["offline", "schemaless"])
def failing_connections(request, offline_connections, schemaless_connections):
    """A store that is either unreachable or fails every query."""
    if request.param == "offline":
        return offline_connections
    return schemaless_connections


class TestBestEffort:
    @pytest.mark.asyncio
    async def test_create_chat_echoes_inputs(self, failing_connections):
        chat = await ChatRepository(failing_connections).create_chat(
            chat_id="chat-1", owner_id="u1", title="Hello", visibility="public"
        )
        assert chat.id == "chat-1"
        assert chat.owner_id == "u1"
        assert chat.visibility == Visibility.PUBLIC
        assert chat.created_at is not None

    @pytest.mark.asyncio
    async def test_reads_return_fallbacks(self, failing_connections):
        assert await ChatRepository(failing_connections).get_chat("chat-1") is None
        assert await MessageRepository(failing_connections).list_messages_by_chat("chat-1") == []
        assert await VoteRepository(failing_connections).list_votes_by_chat("chat-1") == []
        assert await QuotaCounter(failing_connections).count_user_messages("u1") == 0

    @pytest.mark.asyncio
    async def test_writes_are_skipped(self, failing_connections):
        assert await VoteRepository(failing_connections).upsert_vote("chat-1", "m1", "up") is None
        assert await StreamLedger(failing_connections).record_stream("s1", "chat-1") is None
        assert await ChatRepository(failing_connections).update_last_context("chat-1", {"a": 1}) is None
        stored = await MessageRepository(failing_connections).append_messages(
            [make_message("m1", "chat-1")]
        )
        assert [m.id for m in stored] == ["m1"]

    @pytest.mark.asyncio
    async def test_fallback_lists_are_not_shared(self, failing_connections):
        repo = MessageRepository(failing_connections)
        first = await repo.list_messages_by_chat("chat-1")
        first.append("junk")
        assert await repo.list_messages_by_chat("chat-1") == []


class TestSafetyCritical:
    @pytest.mark.asyncio
    async def test_raises_database_error(self, failing_connections):
        with pytest.raises(ChatError) as exc_info:
            await ChatRepository(failing_connections).update_visibility("chat-1", "public")
        error = exc_info.value
        assert error.kind == "bad_request:database"
        assert error.cause == "Failed to update chat visibility by id"
        assert error.to_dict() == {"code": "", "message": GENERIC_MESSAGE}


class TestLogging:
    @pytest.mark.asyncio
    async def test_query_failure_is_logged(self, schemaless_connections, caplog):
        caplog.set_level(logging.ERROR)
        await ChatRepository(schemaless_connections).get_chat("chat-1")
        assert any("returning degraded result" in r.getMessage() for r in caplog.records)

    @pytest.mark.asyncio
    async def test_unavailable_is_logged(self, offline_connections, caplog):
        caplog.set_level(logging.WARNING)
        await ChatRepository(offline_connections).get_chat("chat-1")
        assert any("database unavailable" in r.getMessage() for r in caplog.records)


def failing_session(error):
    """Make every session query raise ``error``."""
    return patch.multiple(
        AsyncSession,
        execute=AsyncMock(side_effect=error),
        get=AsyncMock(side_effect=error),
    )


class TestTransientFailures:
    @pytest.mark.asyncio
    async def test_failed_query_degrades_then_recovers(self, connections, chats):
        await chats.create_chat(chat_id="chat-1", owner_id="u1", title="t")
        failure = OperationalError("SELECT", {}, Exception("server closed the connection"))

        with failing_session(failure):
            assert await chats.get_chat("chat-1") is None
            assert await QuotaCounter(connections).count_user_messages("u1") == 0
            with pytest.raises(ChatError) as exc_info:
                await chats.delete_chat("chat-1")
            assert exc_info.value.kind == "bad_request:database"

        # A failed query does not mark the store unavailable
        assert (await chats.get_chat("chat-1")).id == "chat-1"

    @pytest.mark.asyncio
    async def test_timeout_degrades(self, connections, chats):
        with failing_session(asyncio.TimeoutError()):
            page = await chats.list_chats_by_owner("u1", limit=10)
            assert page.chats == []
            assert page.has_more is False
            assert await MessageRepository(connections).list_messages_by_chat("chat-1") == []
