"""FastAPI middleware for authentication and logging."""

import logging

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from chatledger.core.auth import get_user_from_header

logger = logging.getLogger(__name__)


class AuthMiddleware(BaseHTTPMiddleware):
    """Attach the caller identity to ``request.state``.

    Requests without an identity are passed through with ``user_id`` set to
    None so that routes can validate input before rejecting them.
    """

    def __init__(
        self,
        app,
        debug_mode: bool = False,
        auth_header_name: str = "X-User-Id",
        user_type_header_name: str = "X-User-Type",
        test_user: str = "test-user",
        default_user_type: str = "regular",
    ):
        super().__init__(app)
        self.debug_mode = debug_mode
        self.auth_header_name = auth_header_name
        self.user_type_header_name = user_type_header_name
        self.test_user = test_user
        self.default_user_type = default_user_type

    async def dispatch(self, request: Request, call_next) -> Response:
        logger.debug("Request: %s %s", request.method, request.url.path)

        user_id = get_user_from_header(request.headers.get(self.auth_header_name))
        if not user_id and self.debug_mode:
            # In debug mode fall back to the configured test user
            user_id = self.test_user

        user_type = get_user_from_header(request.headers.get(self.user_type_header_name))

        request.state.user_id = user_id
        request.state.user_type = user_type or self.default_user_type

        return await call_next(request)
