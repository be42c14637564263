"""Append-only ledger of generation attempts per chat.

The newest entry for a chat names its current stream. Reads are
safety-critical because the resumption decision depends on them.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.models import StreamRecord, as_utc, utc_now

from .models import StreamRecordRow, stream_from_record
from .policy import BaseRepository, best_effort, safety_critical


class StreamLedger(BaseRepository):

    @best_effort(None)
    async def record_stream(
        self,
        session: AsyncSession,
        stream_id: str,
        chat_id: str,
        created_at: Optional[datetime] = None,
    ) -> None:
        session.add(
            StreamRecordRow(
                id=stream_id,
                chat_id=chat_id,
                created_at=as_utc(created_at) or utc_now(),
            )
        )

    @safety_critical("Failed to get streams by chat id")
    async def list_streams(self, session: AsyncSession, chat_id: str) -> List[StreamRecord]:
        """Ledger entries for a chat, oldest first."""
        result = await session.execute(
            select(StreamRecordRow)
            .where(StreamRecordRow.chat_id == chat_id)
            .order_by(StreamRecordRow.created_at.asc())
        )
        return [stream_from_record(r) for r in result.scalars().all()]

    @safety_critical("Failed to get stream ids by chat id")
    async def list_stream_ids(self, session: AsyncSession, chat_id: str) -> List[str]:
        result = await session.execute(
            select(StreamRecordRow.id)
            .where(StreamRecordRow.chat_id == chat_id)
            .order_by(StreamRecordRow.created_at.asc())
        )
        return list(result.scalars().all())
