"""Repository for message persistence operations.

Messages are append-only. The only removal path is
``delete_messages_after``, used when a user edits an earlier message and the
conversation is rewound.
"""

import json
import logging
from dataclasses import replace
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.models import Message, as_utc, utc_now

from .models import MessageRecord, VoteRecord, message_from_record
from .policy import BaseRepository, best_effort, safety_critical

logger = logging.getLogger(__name__)


def _stamp(messages: List[Message]) -> List[Message]:
    """Give messages without a timestamp strictly increasing ones."""
    base = utc_now()
    stamped = []
    for i, message in enumerate(messages):
        if message.created_at is None:
            created_at = base + timedelta(microseconds=i)
        else:
            created_at = as_utc(message.created_at)
        stamped.append(replace(message, created_at=created_at))
    return stamped


def _echo_messages(messages):
    return list(messages)


class MessageRepository(BaseRepository):
    """Append, list and rewind chat messages."""

    async def append_messages(self, messages: List[Message]) -> List[Message]:
        """Persist a batch of messages, returning them with timestamps filled in."""
        if not messages:
            return []
        return await self._insert(messages=_stamp(messages))

    @best_effort(_echo_messages)
    async def _insert(self, session: AsyncSession, messages: List[Message]) -> List[Message]:
        for message in messages:
            session.add(
                MessageRecord(
                    id=message.id,
                    chat_id=message.chat_id,
                    role=message.role.value,
                    parts_json=json.dumps(message.parts),
                    attachments_json=json.dumps(message.attachments),
                    created_at=message.created_at,
                )
            )
        return list(messages)

    @best_effort([])
    async def list_messages_by_chat(self, session: AsyncSession, chat_id: str) -> List[Message]:
        """All messages of a chat, oldest first."""
        result = await session.execute(
            select(MessageRecord)
            .where(MessageRecord.chat_id == chat_id)
            .order_by(MessageRecord.created_at.asc())
        )
        return [message_from_record(r) for r in result.scalars().all()]

    @safety_critical("Failed to get message by id")
    async def get_message_by_id(self, session: AsyncSession, message_id: str) -> Optional[Message]:
        record = await session.get(MessageRecord, message_id)
        return message_from_record(record) if record else None

    @safety_critical("Failed to delete messages by chat id after timestamp")
    async def delete_messages_after(
        self, session: AsyncSession, chat_id: str, timestamp: datetime
    ) -> int:
        """Delete messages created at or after ``timestamp`` and their votes."""
        result = await session.execute(
            select(MessageRecord.id).where(
                MessageRecord.chat_id == chat_id,
                MessageRecord.created_at >= as_utc(timestamp),
            )
        )
        message_ids = list(result.scalars().all())
        if not message_ids:
            return 0

        await session.execute(
            delete(VoteRecord).where(
                VoteRecord.chat_id == chat_id,
                VoteRecord.message_id.in_(message_ids),
            )
        )
        await session.execute(
            delete(MessageRecord).where(
                MessageRecord.chat_id == chat_id,
                MessageRecord.id.in_(message_ids),
            )
        )
        logger.info("Deleted %d messages from chat %s", len(message_ids), chat_id)
        return len(message_ids)
