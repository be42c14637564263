"""Domain models for chats, messages, votes, streams and documents."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on the way back)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class Visibility(str, Enum):
    """Chat visibility."""
    PRIVATE = "private"
    PUBLIC = "public"


class MessageRole(str, Enum):
    """Message role enumeration."""
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


class ArtifactKind(str, Enum):
    """Kinds of document artifacts."""
    TEXT = "text"
    CODE = "code"
    IMAGE = "image"
    SHEET = "sheet"


@dataclass
class Chat:
    """A conversation owned by a single user."""
    id: str
    owner_id: str
    title: str
    visibility: Visibility = Visibility.PRIVATE
    created_at: datetime = field(default_factory=utc_now)
    last_context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.owner_id,
            "title": self.title,
            "visibility": self.visibility.value,
            "createdAt": _iso(self.created_at),
            "lastContext": self.last_context,
        }


@dataclass
class Message:
    """Domain model for a chat message. Messages are never mutated."""
    id: str
    chat_id: str
    role: MessageRole = MessageRole.USER
    parts: List[Dict[str, Any]] = field(default_factory=list)
    attachments: List[Dict[str, Any]] = field(default_factory=list)
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "chatId": self.chat_id,
            "role": self.role.value,
            "parts": self.parts,
            "attachments": self.attachments,
            "createdAt": _iso(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Message":
        created_at = data.get("createdAt")
        return cls(
            id=data["id"],
            chat_id=data["chatId"],
            role=MessageRole(data.get("role", "user")),
            parts=list(data.get("parts") or []),
            attachments=list(data.get("attachments") or []),
            created_at=datetime.fromisoformat(created_at) if created_at else None,
        )


@dataclass
class Vote:
    """A thumbs up/down on one assistant message."""
    chat_id: str
    message_id: str
    is_upvoted: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chatId": self.chat_id,
            "messageId": self.message_id,
            "isUpvoted": self.is_upvoted,
        }


@dataclass
class StreamRecord:
    """Ledger entry for one generation attempt."""
    id: str
    chat_id: str
    created_at: datetime


@dataclass
class ChatPage:
    """One page of a user's chat history."""
    chats: List[Chat] = field(default_factory=list)
    has_more: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "chats": [c.to_dict() for c in self.chats],
            "hasMore": self.has_more,
        }


@dataclass
class Document:
    """A versioned artifact; each save adds a version keyed by created_at."""
    id: str
    title: str
    kind: ArtifactKind
    content: Optional[str]
    user_id: str
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "kind": self.kind.value,
            "content": self.content,
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
        }


@dataclass
class Suggestion:
    """An edit proposed against a specific document version."""
    id: str
    document_id: str
    document_created_at: datetime
    original_text: str
    suggested_text: str
    user_id: str
    description: Optional[str] = None
    is_resolved: bool = False
    created_at: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "documentId": self.document_id,
            "documentCreatedAt": _iso(self.document_created_at),
            "originalText": self.original_text,
            "suggestedText": self.suggested_text,
            "description": self.description,
            "isResolved": self.is_resolved,
            "userId": self.user_id,
            "createdAt": _iso(self.created_at),
        }
