"""SQLAlchemy models for chat persistence.

Uses String(ID_LENGTH) ids and Text for JSON payloads so the same schema runs on
SQLite (local/tests) and PostgreSQL (production). No database-level foreign
key constraints; cascades are performed by the repositories.
"""

import json
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Index,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase

from chatledger.domain.models import (
    ArtifactKind,
    Chat,
    Document,
    Message,
    MessageRole,
    StreamRecord,
    Suggestion,
    Visibility,
    Vote,
    as_utc,
)

# Ids are caller supplied (chat ids, message ids, stream ids)
ID_LENGTH = 255


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


def _now_utc():
    return datetime.now(timezone.utc)


class ChatRecord(Base):
    """A conversation."""

    __tablename__ = "chats"

    id = Column(String(ID_LENGTH), primary_key=True)
    owner_id = Column(String(255), nullable=False, index=True)
    title = Column(Text, nullable=False)
    visibility = Column(String(16), nullable=False, default="private")
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)
    last_context_json = Column(Text, nullable=True)

    __table_args__ = (
        Index("ix_chats_owner_created", "owner_id", "created_at"),
    )


class MessageRecord(Base):
    """A single message within a chat."""

    __tablename__ = "messages"

    id = Column(String(ID_LENGTH), primary_key=True)
    chat_id = Column(String(ID_LENGTH), nullable=False, index=True)
    role = Column(String(20), nullable=False)
    parts_json = Column(Text, nullable=False, default="[]")
    attachments_json = Column(Text, nullable=False, default="[]")
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)

    __table_args__ = (
        Index("ix_messages_chat_created", "chat_id", "created_at"),
    )


class VoteRecord(Base):
    """One vote per (chat, message)."""

    __tablename__ = "votes"

    chat_id = Column(String(ID_LENGTH), primary_key=True)
    message_id = Column(String(ID_LENGTH), primary_key=True)
    is_upvoted = Column(Boolean, nullable=False)


class StreamRecordRow(Base):
    """Ledger of generation attempts per chat."""

    __tablename__ = "streams"

    id = Column(String(ID_LENGTH), primary_key=True)
    chat_id = Column(String(ID_LENGTH), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)

    __table_args__ = (
        Index("ix_streams_chat_created", "chat_id", "created_at"),
    )


class DocumentRecord(Base):
    """A document version; (id, created_at) identifies one version."""

    __tablename__ = "documents"

    id = Column(String(ID_LENGTH), primary_key=True)
    created_at = Column(DateTime(timezone=True), primary_key=True, default=_now_utc)
    title = Column(Text, nullable=False)
    content = Column(Text, nullable=True)
    kind = Column(String(16), nullable=False, default="text")
    user_id = Column(String(255), nullable=False)


class SuggestionRecord(Base):
    """A suggested edit against a document version."""

    __tablename__ = "suggestions"

    id = Column(String(ID_LENGTH), primary_key=True)
    document_id = Column(String(ID_LENGTH), nullable=False, index=True)
    document_created_at = Column(DateTime(timezone=True), nullable=False)
    original_text = Column(Text, nullable=False)
    suggested_text = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    is_resolved = Column(Boolean, nullable=False, default=False)
    user_id = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), default=_now_utc, nullable=False)


def _loads(raw, default):
    return json.loads(raw) if raw else default


def chat_from_record(record: ChatRecord) -> Chat:
    return Chat(
        id=record.id,
        owner_id=record.owner_id,
        title=record.title,
        visibility=Visibility(record.visibility),
        created_at=as_utc(record.created_at),
        last_context=_loads(record.last_context_json, None),
    )


def message_from_record(record: MessageRecord) -> Message:
    return Message(
        id=record.id,
        chat_id=record.chat_id,
        role=MessageRole(record.role),
        parts=_loads(record.parts_json, []),
        attachments=_loads(record.attachments_json, []),
        created_at=as_utc(record.created_at),
    )


def vote_from_record(record: VoteRecord) -> Vote:
    return Vote(
        chat_id=record.chat_id,
        message_id=record.message_id,
        is_upvoted=bool(record.is_upvoted),
    )


def stream_from_record(record: StreamRecordRow) -> StreamRecord:
    return StreamRecord(id=record.id, chat_id=record.chat_id, created_at=as_utc(record.created_at))


def document_from_record(record: DocumentRecord) -> Document:
    return Document(
        id=record.id,
        title=record.title,
        kind=ArtifactKind(record.kind),
        content=record.content,
        user_id=record.user_id,
        created_at=as_utc(record.created_at),
    )


def suggestion_from_record(record: SuggestionRecord) -> Suggestion:
    return Suggestion(
        id=record.id,
        document_id=record.document_id,
        document_created_at=as_utc(record.document_created_at),
        original_text=record.original_text,
        suggested_text=record.suggested_text,
        user_id=record.user_id,
        description=record.description,
        is_resolved=bool(record.is_resolved),
        created_at=as_utc(record.created_at),
    )
