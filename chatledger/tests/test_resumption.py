"""Tests for resumable delivery and the per-chat writer token."""

import asyncio
from datetime import timedelta

import pytest

from chatledger.application.chat.resumption import ResumptionCoordinator, StreamState
from chatledger.domain.errors import ChatError, StreamConflictError
from chatledger.domain.models import MessageRole, utc_now
from chatledger.infrastructure.streams.in_memory_stream_store import InMemoryStreamStore
from chatledger.modules.persistence import MessageRepository, StreamLedger

from conftest import FakeClock, make_message


async def _collect(iterator):
    return [chunk async for chunk in iterator]


@pytest.fixture
def store():
    return InMemoryStreamStore()


@pytest.fixture
def coordinator(ledger, messages, store):
    return ResumptionCoordinator(
        stream_ledger=ledger,
        message_repository=messages,
        stream_store=store,
    )


class TestResolve:
    @pytest.mark.asyncio
    async def test_no_stream(self, coordinator):
        status = await coordinator.resolve("chat-1")
        assert status.state is StreamState.NO_STREAM
        assert status.stream_id is None
        assert await coordinator.resume("chat-1") is None

    @pytest.mark.asyncio
    async def test_active_stream(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        status = await coordinator.resolve("chat-1")
        assert status.state is StreamState.ACTIVE
        assert status.stream_id == "s1"

    @pytest.mark.asyncio
    async def test_latest_stream_wins(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        await coordinator.finish_generation("chat-1", "s1")
        await asyncio.sleep(0.001)
        await coordinator.begin_generation("chat-1", "s2")
        assert (await coordinator.resolve("chat-1")).stream_id == "s2"

    @pytest.mark.asyncio
    async def test_persisted_answer_means_nothing_to_resume(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        await coordinator.persist_assistant_messages(
            "chat-1", "s1", [make_message("a1", "chat-1", role=MessageRole.ASSISTANT)]
        )
        await coordinator.finish_generation("chat-1", "s1")

        assert (await coordinator.resolve("chat-1")).state is StreamState.NO_STREAM

    @pytest.mark.asyncio
    async def test_older_answer_does_not_hide_new_stream(self, coordinator, messages):
        await messages.append_messages([
            make_message(
                "a0",
                "chat-1",
                role=MessageRole.ASSISTANT,
                created_at=utc_now() - timedelta(minutes=1),
            )
        ])
        await coordinator.begin_generation("chat-1", "s1")
        assert (await coordinator.resolve("chat-1")).state is StreamState.ACTIVE

    @pytest.mark.asyncio
    async def test_stream_lost_from_memory(self, coordinator, ledger):
        # Recorded in the ledger, but this process holds no buffer for it
        await ledger.record_stream("s-gone", "chat-1")
        assert (await coordinator.resolve("chat-1")).state is StreamState.NO_STREAM

    @pytest.mark.asyncio
    async def test_ledger_offline_raises(self, offline_connections, store):
        coordinator = ResumptionCoordinator(
            stream_ledger=StreamLedger(offline_connections),
            message_repository=MessageRepository(offline_connections),
            stream_store=store,
        )
        with pytest.raises(ChatError) as exc_info:
            await coordinator.resolve("chat-1")
        assert exc_info.value.kind == "bad_request:database"


class TestResume:
    @pytest.mark.asyncio
    async def test_resume_from_offset_without_duplicates(self, coordinator):
        stream = await coordinator.begin_generation("chat-1", "s1")
        for chunk in ("The ", "quick ", "brown ", "fox"):
            await stream.publish(chunk)
        await coordinator.finish_generation("chat-1", "s1")

        received = ["The ", "quick "]
        reader = await coordinator.resume("chat-1", offset=len(received))
        received.extend(await _collect(reader))
        assert "".join(received) == "The quick brown fox"

    @pytest.mark.asyncio
    async def test_resume_follows_live_generation(self, coordinator):
        stream = await coordinator.begin_generation("chat-1", "s1")
        await stream.publish("one")

        reader = await coordinator.resume("chat-1")
        task = asyncio.create_task(_collect(reader))
        await asyncio.sleep(0)
        await stream.publish("two")
        await coordinator.finish_generation("chat-1", "s1")

        assert await asyncio.wait_for(task, timeout=2) == ["one", "two"]

    @pytest.mark.asyncio
    async def test_cancelled_generation_is_truncated(self, coordinator, messages):
        stream = await coordinator.begin_generation("chat-1", "s1")
        await stream.publish("partial")
        # Client cancelled: finish without persisting an answer
        await coordinator.finish_generation("chat-1", "s1")

        reader = await coordinator.resume("chat-1")
        assert await _collect(reader) == ["partial"]
        assert await messages.list_messages_by_chat("chat-1") == []

    @pytest.mark.asyncio
    async def test_negative_offset(self, coordinator):
        with pytest.raises(ChatError) as exc_info:
            await coordinator.resume("chat-1", offset=-1)
        assert exc_info.value.kind == "bad_request:api"


class TestWriterToken:
    @pytest.mark.asyncio
    async def test_second_writer_rejected(self, coordinator, ledger):
        await coordinator.begin_generation("chat-1", "s1")
        with pytest.raises(StreamConflictError) as exc_info:
            await coordinator.begin_generation("chat-1", "s2")
        assert exc_info.value.status_code == 409
        assert exc_info.value.holder == "s1"
        assert await ledger.list_stream_ids("chat-1") == ["s1"]

    @pytest.mark.asyncio
    async def test_writer_released_on_finish(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        await coordinator.finish_generation("chat-1", "s1")
        assert await coordinator.current_writer("chat-1") is None
        await coordinator.begin_generation("chat-1", "s2")
        assert await coordinator.current_writer("chat-1") == "s2"

    @pytest.mark.asyncio
    async def test_chats_do_not_block_each_other(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        await coordinator.begin_generation("chat-2", "s2")
        assert await coordinator.current_writer("chat-2") == "s2"

    @pytest.mark.asyncio
    async def test_concurrent_begins_admit_one(self, coordinator):
        results = await asyncio.gather(
            coordinator.begin_generation("chat-1", "s1"),
            coordinator.begin_generation("chat-1", "s2"),
            return_exceptions=True,
        )
        conflicts = [r for r in results if isinstance(r, StreamConflictError)]
        assert len(conflicts) == 1

    @pytest.mark.asyncio
    async def test_only_writer_persists(self, coordinator, messages):
        await coordinator.begin_generation("chat-1", "s1")
        with pytest.raises(StreamConflictError):
            await coordinator.persist_assistant_messages(
                "chat-1", "intruder", [make_message("a1", "chat-1", role=MessageRole.ASSISTANT)]
            )
        assert await messages.list_messages_by_chat("chat-1") == []

        await coordinator.persist_assistant_messages(
            "chat-1", "s1", [make_message("a1", "chat-1", role=MessageRole.ASSISTANT)]
        )
        assert [m.id for m in await messages.list_messages_by_chat("chat-1")] == ["a1"]

    @pytest.mark.asyncio
    async def test_messages_must_belong_to_chat(self, coordinator):
        await coordinator.begin_generation("chat-1", "s1")
        with pytest.raises(ChatError) as exc_info:
            await coordinator.persist_assistant_messages(
                "chat-1", "s1", [make_message("a1", "chat-2", role=MessageRole.ASSISTANT)]
            )
        assert exc_info.value.kind == "bad_request:api"

    @pytest.mark.asyncio
    async def test_repeated_begin_keeps_live_stream(self, coordinator, ledger):
        stream = await coordinator.begin_generation("chat-1", "s1")
        await stream.publish("one")
        reader = asyncio.create_task(_collect(await coordinator.resume("chat-1")))
        await asyncio.sleep(0)

        again = await coordinator.begin_generation("chat-1", "s1")
        assert again is stream
        await again.publish("two")
        await coordinator.finish_generation("chat-1", "s1")

        assert await asyncio.wait_for(reader, timeout=2) == ["one", "two"]
        assert stream.chunks == ["one", "two"]
        assert await ledger.list_stream_ids("chat-1") == ["s1"]


class TestAbandonedGeneration:
    @pytest.mark.asyncio
    async def test_stale_writer_is_released(self, ledger, messages):
        clock = FakeClock()
        store = InMemoryStreamStore(retention_seconds=60, max_age_seconds=600, clock=clock)
        coordinator = ResumptionCoordinator(
            stream_ledger=ledger, message_repository=messages, stream_store=store
        )
        orphan = await coordinator.begin_generation("chat-1", "s1")
        await orphan.publish("partial")

        clock.now = 300
        with pytest.raises(StreamConflictError):
            await coordinator.begin_generation("chat-1", "s2")

        clock.now = 600
        await coordinator.begin_generation("chat-1", "s2")
        assert orphan.done is True
        assert await coordinator.current_writer("chat-1") == "s2"

        clock.now = 700
        assert await store.get("s1") is None
        assert len(store) == 1

    @pytest.mark.asyncio
    async def test_generation_block_releases_on_error(self, coordinator):
        with pytest.raises(RuntimeError):
            async with coordinator.generation("chat-1", "s1") as stream:
                await stream.publish("partial")
                raise RuntimeError("model crashed")

        assert stream.done is True
        assert await coordinator.current_writer("chat-1") is None
        assert await _collect(await coordinator.resume("chat-1")) == ["partial"]
        async with coordinator.generation("chat-1", "s2") as retry:
            await retry.publish("full answer")
        assert retry.done is True
