"""Caller identity.

Identity is established upstream by a trusted reverse proxy and forwarded
in request headers. This module only reads it; routes decide when a
missing identity is an error.
"""

import logging
from typing import Optional

from fastapi import Request

from chatledger.domain.errors import ChatError

logger = logging.getLogger(__name__)


def get_user_from_header(header_value: Optional[str]) -> Optional[str]:
    """Extract the user id from the authentication header value."""
    if not header_value:
        return None
    value = header_value.strip()
    return value or None


def get_current_user(request: Request) -> Optional[str]:
    """User id set on the request by AuthMiddleware, if any."""
    return getattr(request.state, "user_id", None)


def get_current_user_type(request: Request) -> Optional[str]:
    return getattr(request.state, "user_type", None)


def require_user(request: Request, surface: str) -> str:
    """Return the caller's user id or raise ``unauthorized:<surface>``."""
    user_id = get_current_user(request)
    if not user_id:
        raise ChatError(f"unauthorized:{surface}")
    return user_id
