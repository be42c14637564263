"""Resumable delivery of in-flight responses.

A generation is recorded in the stream ledger (durable) and buffered in the
live stream store (in process). A reconnecting client asks ``resolve``
whether there is anything to resume, then reads the remainder with
``resume``. Only one unfinished generation may write to a chat at a time.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional

from chatledger.core.log_sanitizer import sanitize_for_logging
from chatledger.domain.errors import ChatError, StreamConflictError
from chatledger.domain.models import Message, MessageRole
from chatledger.interfaces.streams import LiveStream, LiveStreamStore
from chatledger.modules.persistence.message_repository import MessageRepository
from chatledger.modules.persistence.stream_ledger import StreamLedger

logger = logging.getLogger(__name__)


class StreamState(str, Enum):
    NO_STREAM = "no_stream"
    ACTIVE = "active"


@dataclass
class ResumeStatus:
    state: StreamState
    stream_id: Optional[str] = None


class ResumptionCoordinator:
    """Decides whether a chat has a resumable stream and hands out readers."""

    def __init__(
        self,
        stream_ledger: StreamLedger,
        message_repository: MessageRepository,
        stream_store: LiveStreamStore,
    ):
        self.stream_ledger = stream_ledger
        self.message_repository = message_repository
        self.stream_store = stream_store
        self._writers: Dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def current_writer(self, chat_id: str) -> Optional[str]:
        """Stream id of the unfinished generation holding the chat, if any."""
        holder = self._writers.get(chat_id)
        if holder is None:
            return None
        stream = await self.stream_store.get(holder)
        if stream is None or stream.done:
            return None
        return holder

    async def begin_generation(self, chat_id: str, stream_id: str) -> LiveStream:
        """Take the chat's writer token and open a live stream.

        Repeating the call with the current holder's id returns the live
        stream it already has.
        """
        async with self._lock:
            holder = await self.current_writer(chat_id)
            if holder == stream_id:
                existing = await self.stream_store.get(stream_id)
                if existing is not None and not existing.done:
                    return existing
            elif holder is not None:
                logger.warning(
                    "Rejected stream %s for chat %s: held by %s",
                    sanitize_for_logging(stream_id),
                    sanitize_for_logging(chat_id),
                    holder,
                )
                raise StreamConflictError(chat_id, holder)

            await self.stream_ledger.record_stream(stream_id=stream_id, chat_id=chat_id)
            stream = await self.stream_store.create(stream_id, chat_id)
            self._writers[chat_id] = stream_id
        return stream

    async def persist_assistant_messages(
        self, chat_id: str, stream_id: str, messages: List[Message]
    ) -> List[Message]:
        """Persist the generation's output. Only the current writer may do this."""
        holder = self._writers.get(chat_id)
        if holder != stream_id:
            raise StreamConflictError(chat_id, holder or "none")
        if any(m.chat_id != chat_id for m in messages):
            raise ChatError("bad_request:api", "Messages must belong to the generating chat")
        return await self.message_repository.append_messages(messages)

    async def finish_generation(self, chat_id: str, stream_id: str) -> None:
        """Close the live stream and release the writer token.

        Also used on cancellation: whatever was buffered stays replayable,
        nothing is rolled back.
        """
        stream = await self.stream_store.get(stream_id)
        if stream is not None:
            await stream.complete()
        if self._writers.get(chat_id) == stream_id:
            del self._writers[chat_id]

    @asynccontextmanager
    async def generation(self, chat_id: str, stream_id: str) -> AsyncIterator[LiveStream]:
        """Hold the writer token for the body of the block.

        The stream is finished on exit however the producer ends, so a
        failed or cancelled generation never keeps the chat locked.
        """
        stream = await self.begin_generation(chat_id, stream_id)
        try:
            yield stream
        finally:
            await self.finish_generation(chat_id, stream_id)

    async def resolve(self, chat_id: str) -> ResumeStatus:
        streams = await self.stream_ledger.list_streams(chat_id=chat_id)
        if not streams:
            return ResumeStatus(StreamState.NO_STREAM)
        latest = streams[-1]

        messages = await self.message_repository.list_messages_by_chat(chat_id=chat_id)
        assistant = [m for m in messages if m.role == MessageRole.ASSISTANT]
        if assistant and assistant[-1].created_at >= latest.created_at:
            # Output of the latest generation is already persisted
            return ResumeStatus(StreamState.NO_STREAM)

        if await self.stream_store.get(latest.id) is None:
            return ResumeStatus(StreamState.NO_STREAM)

        return ResumeStatus(StreamState.ACTIVE, latest.id)

    async def resume(self, chat_id: str, offset: int = 0) -> Optional[AsyncIterator[str]]:
        """Reader over the remainder of the chat's active stream, or None."""
        if offset < 0:
            raise ChatError("bad_request:api", "Offset must not be negative")
        status = await self.resolve(chat_id)
        if status.state is StreamState.NO_STREAM:
            return None
        stream = await self.stream_store.get(status.stream_id)
        if stream is None:
            return None
        logger.info("Resuming stream %s at offset %d", status.stream_id, offset)
        return stream.subscribe(offset)
