"""Tests for chat turns: quota enforcement, first-turn creation, rewinds."""

import pytest

from chatledger.application.chat.resumption import ResumptionCoordinator
from chatledger.application.chat.turns import ChatTurnService
from chatledger.domain.errors import ChatError
from chatledger.domain.models import MessageRole, Visibility
from chatledger.infrastructure.streams.in_memory_stream_store import InMemoryStreamStore
from chatledger.modules.config import AppSettings, ConfigManager
from chatledger.modules.persistence.models import ID_LENGTH

from conftest import at, make_message


@pytest.fixture
def config_manager(tmp_path):
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    (config_dir / "entitlements.yml").write_text(
        "user_types:\n"
        "  guest:\n"
        "    max_messages_per_day: 2\n"
        "  regular:\n"
        "    max_messages_per_day: 100\n"
    )
    settings = AppSettings(app_config_dir=str(config_dir), quota_window_hours=24)
    return ConfigManager(app_settings=settings)


@pytest.fixture
def coordinator(ledger, messages):
    return ResumptionCoordinator(
        stream_ledger=ledger,
        message_repository=messages,
        stream_store=InMemoryStreamStore(),
    )


@pytest.fixture
def turns(chats, messages, quota, coordinator, config_manager):
    return ChatTurnService(
        chat_repository=chats,
        message_repository=messages,
        quota_counter=quota,
        coordinator=coordinator,
        config_manager=config_manager,
    )


class TestStartTurn:
    @pytest.mark.asyncio
    async def test_first_turn_creates_chat(self, turns, chats, messages, ledger):
        stream_id = await turns.start_turn(
            chat_id="chat-1",
            user_id="u1",
            user_type="regular",
            message=make_message("m1", "chat-1"),
            title="Trip planning",
            visibility=Visibility.PUBLIC,
        )

        chat = await chats.get_chat("chat-1")
        assert chat.owner_id == "u1"
        assert chat.title == "Trip planning"
        assert chat.visibility == Visibility.PUBLIC
        assert [m.id for m in await messages.list_messages_by_chat("chat-1")] == ["m1"]
        assert await ledger.list_stream_ids("chat-1") == [stream_id]

    @pytest.mark.asyncio
    async def test_later_turn_keeps_chat(self, turns, coordinator, chats):
        first = await turns.start_turn("chat-1", "u1", "regular", make_message("m1", "chat-1"), title="One")
        await coordinator.finish_generation("chat-1", first)
        await turns.start_turn("chat-1", "u1", "regular", make_message("m2", "chat-1"), title="Two")
        assert (await chats.get_chat("chat-1")).title == "One"

    @pytest.mark.asyncio
    async def test_other_users_chat_is_forbidden(self, turns, coordinator):
        stream_id = await turns.start_turn("chat-1", "u1", "regular", make_message("m1", "chat-1"))
        await coordinator.finish_generation("chat-1", stream_id)
        with pytest.raises(ChatError) as exc_info:
            await turns.start_turn("chat-1", "u2", "regular", make_message("m2", "chat-1"))
        assert exc_info.value.kind == "forbidden:chat"

    @pytest.mark.asyncio
    async def test_running_generation_blocks_new_turn(self, turns, messages):
        await turns.start_turn("chat-1", "u1", "regular", make_message("m1", "chat-1"))
        with pytest.raises(ChatError) as exc_info:
            await turns.start_turn("chat-1", "u1", "regular", make_message("m2", "chat-1"))
        assert exc_info.value.kind == "conflict:stream"
        assert [m.id for m in await messages.list_messages_by_chat("chat-1")] == ["m1"]

    @pytest.mark.asyncio
    async def test_rejects_non_user_message(self, turns):
        with pytest.raises(ChatError) as exc_info:
            await turns.start_turn(
                "chat-1", "u1", "regular", make_message("a1", "chat-1", role=MessageRole.ASSISTANT)
            )
        assert exc_info.value.kind == "bad_request:api"

    @pytest.mark.asyncio
    async def test_rejects_ids_longer_than_columns(self, turns, chats):
        long_id = "c" * (ID_LENGTH + 1)
        with pytest.raises(ChatError) as exc_info:
            await turns.start_turn(long_id, "u1", "regular", make_message("m1", long_id))
        assert exc_info.value.kind == "bad_request:api"
        assert await chats.get_chat(long_id) is None

    @pytest.mark.asyncio
    async def test_accepts_ids_at_column_width(self, turns, chats):
        chat_id = "c" * ID_LENGTH
        await turns.start_turn(chat_id, "u1", "regular", make_message("m1", chat_id))
        assert (await chats.get_chat(chat_id)).owner_id == "u1"


class TestQuota:
    @pytest.mark.asyncio
    async def test_guest_limit(self, turns, coordinator):
        for i in range(2):
            stream_id = await turns.start_turn(f"chat-{i}", "g1", "guest", make_message(f"m{i}", f"chat-{i}"))
            await coordinator.finish_generation(f"chat-{i}", stream_id)

        with pytest.raises(ChatError) as exc_info:
            await turns.start_turn("chat-9", "g1", "guest", make_message("m9", "chat-9"))
        assert exc_info.value.kind == "rate_limit:chat"
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    async def test_regular_users_have_more_room(self, turns, coordinator):
        for i in range(3):
            stream_id = await turns.start_turn(f"chat-{i}", "u1", "regular", make_message(f"m{i}", f"chat-{i}"))
            await coordinator.finish_generation(f"chat-{i}", stream_id)


class TestRewind:
    @pytest.mark.asyncio
    async def test_rewind_drops_message_and_after(self, turns, chats, messages):
        await chats.create_chat(chat_id="chat-1", owner_id="u1", title="T")
        await messages.append_messages([
            make_message(f"m{i}", "chat-1", created_at=at(i)) for i in range(4)
        ])

        assert await turns.rewind_to_message("chat-1", "u1", "m2") == 2
        assert [m.id for m in await messages.list_messages_by_chat("chat-1")] == ["m0", "m1"]

    @pytest.mark.asyncio
    async def test_rewind_other_users_chat(self, turns, chats, messages):
        await chats.create_chat(chat_id="chat-1", owner_id="u1", title="T")
        await messages.append_messages([make_message("m0", "chat-1", created_at=at(0))])
        with pytest.raises(ChatError) as exc_info:
            await turns.rewind_to_message("chat-1", "u2", "m0")
        assert exc_info.value.kind == "forbidden:chat"

    @pytest.mark.asyncio
    async def test_rewind_unknown_message(self, turns):
        with pytest.raises(ChatError) as exc_info:
            await turns.rewind_to_message("chat-1", "u1", "missing")
        assert exc_info.value.kind == "not_found:chat"
