"""Cursor pagination over a user's chat history.

Cursors are chat ids. The anchor chat's created_at bounds the page:
``starting_after`` selects strictly newer chats, ``ending_before`` strictly
older ones. Pages are always ordered newest first.
"""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.errors import ChatError
from chatledger.domain.models import ChatPage

from .models import ChatRecord, chat_from_record


def validate_cursors(
    limit: int,
    starting_after: Optional[str] = None,
    ending_before: Optional[str] = None,
) -> None:
    """Reject malformed requests before any storage access."""
    if starting_after and ending_before:
        raise ChatError("bad_request:api", "Only one of starting_after or ending_before can be provided.")
    if limit < 1:
        raise ChatError("bad_request:api", "Parameter limit must be a positive integer.")


async def resolve_page(
    session: AsyncSession,
    owner_id: str,
    limit: int,
    starting_after: Optional[str] = None,
    ending_before: Optional[str] = None,
) -> ChatPage:
    stmt = select(ChatRecord).where(ChatRecord.owner_id == owner_id)

    cursor = starting_after or ending_before
    if cursor:
        anchor = await session.get(ChatRecord, cursor)
        if anchor is None:
            raise ChatError("not_found:database", f"Chat with id {cursor} not found")
        if starting_after:
            stmt = stmt.where(ChatRecord.created_at > anchor.created_at)
        else:
            stmt = stmt.where(ChatRecord.created_at < anchor.created_at)

    stmt = stmt.order_by(ChatRecord.created_at.desc()).limit(limit + 1)
    rows = (await session.execute(stmt)).scalars().all()

    return ChatPage(
        chats=[chat_from_record(r) for r in rows[:limit]],
        has_more=len(rows) > limit,
    )
