"""Chat persistence module using async SQLAlchemy with SQLite/PostgreSQL."""

from .chat_repository import ChatRepository
from .database import ConnectionManager, DatabaseHandle
from .document_repository import DocumentRepository
from .message_repository import MessageRepository
from .models import Base, ChatRecord, MessageRecord, StreamRecordRow, VoteRecord
from .quota import QuotaCounter
from .stream_ledger import StreamLedger
from .vote_repository import VoteRepository

__all__ = [
    "ConnectionManager",
    "DatabaseHandle",
    "ChatRepository",
    "MessageRepository",
    "VoteRepository",
    "QuotaCounter",
    "StreamLedger",
    "DocumentRepository",
    "Base",
    "ChatRecord",
    "MessageRecord",
    "StreamRecordRow",
    "VoteRecord",
]
