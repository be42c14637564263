"""Domain layer - pure business models and logic."""

from .errors import (
    AuthenticationError,
    AuthorizationError,
    ChatError,
    ConfigurationError,
    DomainError,
    StreamClosedError,
    StreamConflictError,
    ValidationError,
)
from .models import (
    ArtifactKind,
    Chat,
    ChatPage,
    Document,
    Message,
    MessageRole,
    StreamRecord,
    Suggestion,
    Visibility,
    Vote,
)

__all__ = [
    # Errors
    "DomainError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "ChatError",
    "StreamConflictError",
    "StreamClosedError",
    # Models
    "ArtifactKind",
    "Chat",
    "ChatPage",
    "Document",
    "Message",
    "MessageRole",
    "StreamRecord",
    "Suggestion",
    "Visibility",
    "Vote",
]
