"""Live stream store interface."""

from typing import AsyncIterator, Optional, Protocol


class LiveStream(Protocol):
    """A buffered, replayable sequence of response chunks."""

    id: str
    chat_id: str

    @property
    def done(self) -> bool:
        """True once the producer has finished or was cancelled."""
        ...

    async def publish(self, chunk: str) -> None:
        ...

    async def complete(self) -> None:
        ...

    def subscribe(self, offset: int = 0) -> AsyncIterator[str]:
        """
        Replay chunks from ``offset`` and follow new ones until done.

        Args:
            offset: Number of chunks the reader already has

        Returns:
            Async iterator over the remaining chunks
        """
        ...


class LiveStreamStore(Protocol):
    """
    Port for in-flight response streams.

    Abstracts where partially generated responses are buffered so a
    reconnecting client can pick up where it left off.
    """

    async def create(self, stream_id: str, chat_id: str) -> LiveStream:
        """
        Open a new stream.

        Args:
            stream_id: Ledger id of the generation attempt
            chat_id: Chat the stream belongs to

        Returns:
            The created stream
        """
        ...

    async def get(self, stream_id: str) -> Optional[LiveStream]:
        """
        Retrieve a stream that is still live or retained.

        Args:
            stream_id: Stream identifier

        Returns:
            LiveStream if held, None otherwise
        """
        ...

    async def delete(self, stream_id: str) -> bool:
        ...
