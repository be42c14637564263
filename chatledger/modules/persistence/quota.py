"""Per-user message quota counting."""

from datetime import timedelta

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.models import MessageRole, utc_now

from .models import ChatRecord, MessageRecord
from .policy import BaseRepository, best_effort


class QuotaCounter(BaseRepository):
    """Counts a user's own messages over a trailing window.

    Fails open: an unavailable store reports zero so users are not locked
    out by an outage.
    """

    @best_effort(0)
    async def count_user_messages(
        self, session: AsyncSession, user_id: str, window_hours: int = 24
    ) -> int:
        since = utc_now() - timedelta(hours=window_hours)
        stmt = (
            select(func.count(MessageRecord.id))
            .select_from(MessageRecord)
            .join(ChatRecord, ChatRecord.id == MessageRecord.chat_id)
            .where(
                ChatRecord.owner_id == user_id,
                MessageRecord.role == MessageRole.USER.value,
                MessageRecord.created_at >= since,
            )
        )
        result = await session.execute(stmt)
        return int(result.scalar_one() or 0)
