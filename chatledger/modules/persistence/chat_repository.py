"""Repository for chat persistence operations.

Referential integrity is enforced here rather than via database FK
constraints: deleting a chat removes its votes, messages and stream ids in
the same transaction.
"""

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, update
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.models import Chat, ChatPage, Visibility, as_utc, utc_now

from .models import ChatRecord, MessageRecord, StreamRecordRow, VoteRecord, chat_from_record
from .pagination import resolve_page, validate_cursors
from .policy import BaseRepository, best_effort, safety_critical

logger = logging.getLogger(__name__)


def _echo_chat(chat_id, owner_id, title, visibility, created_at):
    return Chat(
        id=chat_id,
        owner_id=owner_id,
        title=title,
        visibility=Visibility(visibility),
        created_at=as_utc(created_at) or utc_now(),
    )


def _empty_page(**_):
    return ChatPage()


class ChatRepository(BaseRepository):
    """Chat CRUD, history pages and cascading deletes."""

    @best_effort(_echo_chat)
    async def create_chat(
        self,
        session: AsyncSession,
        chat_id: str,
        owner_id: str,
        title: str,
        visibility: Visibility = Visibility.PRIVATE,
        created_at: Optional[datetime] = None,
    ) -> Chat:
        """Insert a chat. Degrades to an unsaved echo of the inputs."""
        record = ChatRecord(
            id=chat_id,
            owner_id=owner_id,
            title=title,
            visibility=Visibility(visibility).value,
            created_at=as_utc(created_at) or utc_now(),
        )
        session.add(record)
        await session.flush()
        return chat_from_record(record)

    @best_effort(None)
    async def get_chat(self, session: AsyncSession, chat_id: str) -> Optional[Chat]:
        record = await session.get(ChatRecord, chat_id)
        return chat_from_record(record) if record else None

    async def list_chats_by_owner(
        self,
        owner_id: str,
        limit: int,
        starting_after: Optional[str] = None,
        ending_before: Optional[str] = None,
    ) -> ChatPage:
        """One page of the owner's chats, newest first.

        Raises ``bad_request:api`` for conflicting cursors and
        ``not_found:database`` when the cursor chat does not exist. Degrades
        to an empty page when the store is unavailable.
        """
        validate_cursors(limit, starting_after, ending_before)
        return await self._load_page(
            owner_id=owner_id,
            limit=limit,
            starting_after=starting_after,
            ending_before=ending_before,
        )

    @best_effort(_empty_page)
    async def _load_page(
        self,
        session: AsyncSession,
        owner_id: str,
        limit: int,
        starting_after: Optional[str],
        ending_before: Optional[str],
    ) -> ChatPage:
        return await resolve_page(session, owner_id, limit, starting_after, ending_before)

    @safety_critical("Failed to delete chat by id")
    async def delete_chat(self, session: AsyncSession, chat_id: str) -> Optional[Chat]:
        """Delete a chat with its votes, messages and stream ids."""
        record = await session.get(ChatRecord, chat_id)
        if record is None:
            return None
        deleted = chat_from_record(record)

        await session.execute(delete(VoteRecord).where(VoteRecord.chat_id == chat_id))
        await session.execute(delete(MessageRecord).where(MessageRecord.chat_id == chat_id))
        await session.execute(delete(StreamRecordRow).where(StreamRecordRow.chat_id == chat_id))
        await session.delete(record)
        logger.info("Deleted chat %s", chat_id)
        return deleted

    @safety_critical("Failed to update chat visibility by id")
    async def update_visibility(
        self, session: AsyncSession, chat_id: str, visibility: Visibility
    ) -> Optional[Chat]:
        record = await session.get(ChatRecord, chat_id)
        if record is None:
            return None
        record.visibility = Visibility(visibility).value
        return chat_from_record(record)

    @safety_critical("Failed to update chat title by id")
    async def update_title(self, session: AsyncSession, chat_id: str, title: str) -> Optional[Chat]:
        record = await session.get(ChatRecord, chat_id)
        if record is None:
            return None
        record.title = title
        return chat_from_record(record)

    @best_effort(None)
    async def update_last_context(
        self, session: AsyncSession, chat_id: str, context: Dict[str, Any]
    ) -> None:
        """Store the latest usage snapshot; failures are logged and ignored."""
        await session.execute(
            update(ChatRecord)
            .where(ChatRecord.id == chat_id)
            .values(last_context_json=json.dumps(context))
        )

