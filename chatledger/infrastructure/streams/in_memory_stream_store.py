"""In-memory live stream store implementation."""

import asyncio
import logging
import time
from typing import AsyncIterator, Callable, Dict, List, Optional

from chatledger.domain.errors import StreamClosedError

logger = logging.getLogger(__name__)


class ResumableStream:
    """Buffers every chunk of one generation so readers can join at any offset."""

    def __init__(self, stream_id: str, chat_id: str, clock: Callable[[], float] = time.monotonic):
        self.id = stream_id
        self.chat_id = chat_id
        self._clock = clock
        self._chunks: List[str] = []
        self._done = False
        self._condition = asyncio.Condition()
        self.created_at = clock()
        self.finished_at: Optional[float] = None

    @property
    def done(self) -> bool:
        return self._done

    @property
    def chunks(self) -> List[str]:
        return list(self._chunks)

    async def publish(self, chunk: str) -> None:
        async with self._condition:
            if self._done:
                raise StreamClosedError(
                    f"Stream {self.id} is already finished",
                    code="STREAM_CLOSED",
                )
            self._chunks.append(chunk)
            self._condition.notify_all()

    async def complete(self) -> None:
        """Mark the stream finished. Idempotent."""
        async with self._condition:
            if self._done:
                return
            self._done = True
            self.finished_at = self._clock()
            self._condition.notify_all()

    async def subscribe(self, offset: int = 0) -> AsyncIterator[str]:
        position = max(offset, 0)
        while True:
            async with self._condition:
                await self._condition.wait_for(
                    lambda: position < len(self._chunks) or self._done
                )
                pending = self._chunks[position:]
                finished = self._done
            for chunk in pending:
                yield chunk
            position += len(pending)
            if finished:
                return


class InMemoryStreamStore:
    """
    In-memory implementation of LiveStreamStore.

    Finished streams stay replayable for ``retention_seconds`` and are
    purged lazily on access. Streams whose producer never finished are
    completed once they are older than ``max_age_seconds``. Suitable for
    single-instance deployments; a restart loses every in-flight stream.
    """

    def __init__(
        self,
        retention_seconds: float = 300,
        max_age_seconds: float = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._streams: Dict[str, ResumableStream] = {}
        self._retention_seconds = retention_seconds
        self._max_age_seconds = max_age_seconds
        self._clock = clock

    async def _purge_expired(self) -> None:
        now = self._clock()
        abandoned = [
            stream
            for stream in self._streams.values()
            if not stream.done and now - stream.created_at >= self._max_age_seconds
        ]
        for stream in abandoned:
            logger.warning("Completing abandoned stream %s for chat %s", stream.id, stream.chat_id)
            await stream.complete()

        expired = [
            stream_id
            for stream_id, stream in self._streams.items()
            if stream.done and stream.finished_at is not None
            and now - stream.finished_at >= self._retention_seconds
        ]
        for stream_id in expired:
            del self._streams[stream_id]
        if expired:
            logger.debug("Purged %d expired streams", len(expired))

    async def create(self, stream_id: str, chat_id: str) -> ResumableStream:
        """Open a stream, or return the live one already held under ``stream_id``."""
        await self._purge_expired()
        existing = self._streams.get(stream_id)
        if existing is not None and not existing.done:
            return existing
        stream = ResumableStream(stream_id, chat_id, clock=self._clock)
        self._streams[stream_id] = stream
        logger.info(f"Created stream {stream_id} for chat {chat_id}")
        return stream

    async def get(self, stream_id: str) -> Optional[ResumableStream]:
        await self._purge_expired()
        return self._streams.get(stream_id)

    async def delete(self, stream_id: str) -> bool:
        stream = self._streams.pop(stream_id, None)
        if stream is None:
            return False
        await stream.complete()
        logger.info(f"Deleted stream {stream_id}")
        return True

    def __len__(self) -> int:
        return len(self._streams)
