"""Repository for document artifacts and their suggestions.

Every save adds a new version of a document, keyed by (id, created_at).
All operations are safety-critical: a silently dropped document edit would
lose user work.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from chatledger.domain.models import ArtifactKind, Document, Suggestion, as_utc, utc_now

from .models import (
    DocumentRecord,
    SuggestionRecord,
    document_from_record,
    suggestion_from_record,
)
from .policy import BaseRepository, safety_critical

logger = logging.getLogger(__name__)


class DocumentRepository(BaseRepository):
    """Document versions and suggestions."""

    @safety_critical("Failed to save document")
    async def save_document(
        self,
        session: AsyncSession,
        document_id: str,
        title: str,
        kind: ArtifactKind,
        content: Optional[str],
        user_id: str,
        created_at: Optional[datetime] = None,
    ) -> Document:
        record = DocumentRecord(
            id=document_id,
            created_at=as_utc(created_at) or utc_now(),
            title=title,
            kind=ArtifactKind(kind).value,
            content=content,
            user_id=user_id,
        )
        session.add(record)
        await session.flush()
        return document_from_record(record)

    @safety_critical("Failed to get documents by id")
    async def get_documents_by_id(self, session: AsyncSession, document_id: str) -> List[Document]:
        """All versions of a document, oldest first."""
        result = await session.execute(
            select(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .order_by(DocumentRecord.created_at.asc())
        )
        return [document_from_record(r) for r in result.scalars().all()]

    @safety_critical("Failed to get document by id")
    async def get_document_by_id(self, session: AsyncSession, document_id: str) -> Optional[Document]:
        """Latest version of a document."""
        result = await session.execute(
            select(DocumentRecord)
            .where(DocumentRecord.id == document_id)
            .order_by(DocumentRecord.created_at.desc())
            .limit(1)
        )
        record = result.scalars().first()
        return document_from_record(record) if record else None

    @safety_critical("Failed to delete documents by id after timestamp")
    async def delete_documents_after(
        self, session: AsyncSession, document_id: str, timestamp: datetime
    ) -> List[Document]:
        """Drop versions newer than ``timestamp`` along with their suggestions."""
        cutoff = as_utc(timestamp)
        await session.execute(
            delete(SuggestionRecord).where(
                SuggestionRecord.document_id == document_id,
                SuggestionRecord.document_created_at > cutoff,
            )
        )
        result = await session.execute(
            select(DocumentRecord).where(
                DocumentRecord.id == document_id,
                DocumentRecord.created_at > cutoff,
            )
        )
        records = list(result.scalars().all())
        deleted = [document_from_record(r) for r in records]
        for record in records:
            await session.delete(record)
        if deleted:
            logger.info("Deleted %d versions of document %s", len(deleted), document_id)
        return deleted

    @safety_critical("Failed to save suggestions")
    async def save_suggestions(self, session: AsyncSession, suggestions: List[Suggestion]) -> None:
        for suggestion in suggestions:
            session.add(
                SuggestionRecord(
                    id=suggestion.id,
                    document_id=suggestion.document_id,
                    document_created_at=as_utc(suggestion.document_created_at),
                    original_text=suggestion.original_text,
                    suggested_text=suggestion.suggested_text,
                    description=suggestion.description,
                    is_resolved=suggestion.is_resolved,
                    user_id=suggestion.user_id,
                    created_at=as_utc(suggestion.created_at),
                )
            )

    @safety_critical("Failed to get suggestions by document id")
    async def get_suggestions_by_document_id(
        self, session: AsyncSession, document_id: str
    ) -> List[Suggestion]:
        result = await session.execute(
            select(SuggestionRecord)
            .where(SuggestionRecord.document_id == document_id)
            .order_by(SuggestionRecord.created_at.asc())
        )
        return [suggestion_from_record(r) for r in result.scalars().all()]
