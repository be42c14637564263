"""Domain-level errors and exceptions."""

from typing import Any, Dict, Optional


class DomainError(Exception):
    """Base domain error."""
    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class ValidationError(DomainError):
    """Validation error."""
    pass


class AuthenticationError(DomainError):
    """Authentication error."""
    pass


class AuthorizationError(DomainError):
    """Authorization error."""
    pass


class ConfigurationError(DomainError):
    """Configuration error."""
    pass


# Error type -> HTTP status code
STATUS_BY_TYPE: Dict[str, int] = {
    "bad_request": 400,
    "unauthorized": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "rate_limit": 429,
    "offline": 503,
}

# Surfaces whose details are logged but never shown to the client
LOG_ONLY_SURFACES = frozenset({"database"})

GENERIC_MESSAGE = "Something went wrong. Please try again later."

DEFAULT_MESSAGES: Dict[str, str] = {
    "bad_request:api": "The request couldn't be processed. Please check your input and try again.",
    "unauthorized:auth": "You need to sign in before continuing.",
    "forbidden:auth": "Your account does not have access to this feature.",
    "rate_limit:chat": "You have exceeded your maximum number of messages for the day. Please try again later.",
    "not_found:chat": "The requested chat was not found. Please check the chat ID and try again.",
    "forbidden:chat": "This chat belongs to another user. Please check the chat ID and try again.",
    "unauthorized:chat": "You need to sign in to view this chat. Please sign in and try again.",
    "conflict:stream": "A response is already being generated for this chat.",
    "offline:chat": "We're having trouble sending your message. Please check your internet connection and try again.",
    "unauthorized:vote": "You need to sign in before voting.",
    "forbidden:vote": "This chat belongs to another user.",
    "not_found:document": "The requested document was not found. Please check the document ID and try again.",
    "forbidden:document": "This document belongs to another user. Please check the document ID and try again.",
    "unauthorized:document": "You need to sign in to view this document. Please sign in and try again.",
    "bad_request:document": "The request to create or update the document was invalid. Please check your input and try again.",
}


class ChatError(DomainError):
    """Typed error carrying a stable ``<type>:<surface>`` kind.

    The kind determines the HTTP status code at the boundary layer. Errors on
    log-only surfaces (the database) keep their detail for the logs and show
    the client a generic message instead.
    """

    def __init__(self, kind: str, cause: Optional[str] = None):
        error_type, _, surface = kind.partition(":")
        if error_type not in STATUS_BY_TYPE or not surface:
            raise ValueError(f"Unknown error kind: {kind}")
        message = DEFAULT_MESSAGES.get(kind, GENERIC_MESSAGE)
        super().__init__(message, code=kind)
        self.kind = kind
        self.type = error_type
        self.surface = surface
        self.cause = cause
        self.status_code = STATUS_BY_TYPE[error_type]

    @property
    def is_log_only(self) -> bool:
        return self.surface in LOG_ONLY_SURFACES

    def to_dict(self) -> Dict[str, Any]:
        """Client-facing payload."""
        if self.is_log_only:
            return {"code": "", "message": GENERIC_MESSAGE}
        return {"code": self.kind, "message": self.message, "cause": self.cause}

    def __str__(self) -> str:
        if self.cause:
            return f"{self.kind}: {self.cause}"
        return self.kind


class StreamConflictError(ChatError):
    """Raised when a second generation tries to write to a chat that already has one."""

    def __init__(self, chat_id: str, holder: str):
        super().__init__(
            "conflict:stream",
            f"Chat {chat_id} is held by stream {holder}",
        )
        self.chat_id = chat_id
        self.holder = holder


class StreamClosedError(DomainError):
    """Raised when publishing to a stream that has already finished."""
    pass
