"""Repository for message votes. One vote per (chat, message)."""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.errors import ChatError
from chatledger.domain.models import Vote

from .models import VoteRecord, vote_from_record
from .policy import BaseRepository, best_effort

logger = logging.getLogger(__name__)

VOTE_TYPES = {"up": True, "down": False}


class VoteRepository(BaseRepository):

    async def upsert_vote(self, chat_id: str, message_id: str, vote_type: str) -> None:
        """Record an up or down vote, replacing any previous vote on the message."""
        if vote_type not in VOTE_TYPES:
            raise ChatError("bad_request:api", f"Invalid vote type: {vote_type}")
        await self._upsert(
            chat_id=chat_id,
            message_id=message_id,
            is_upvoted=VOTE_TYPES[vote_type],
        )

    @best_effort(None)
    async def _upsert(
        self, session: AsyncSession, chat_id: str, message_id: str, is_upvoted: bool
    ) -> None:
        existing = await session.get(VoteRecord, (chat_id, message_id))
        if existing is not None:
            existing.is_upvoted = is_upvoted
        else:
            session.add(VoteRecord(chat_id=chat_id, message_id=message_id, is_upvoted=is_upvoted))

    @best_effort([])
    async def list_votes_by_chat(self, session: AsyncSession, chat_id: str) -> List[Vote]:
        result = await session.execute(select(VoteRecord).where(VoteRecord.chat_id == chat_id))
        return [vote_from_record(r) for r in result.scalars().all()]
