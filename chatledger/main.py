"""
Chat persistence and resumable delivery backend.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from chatledger.core.logging_config import setup_logging
from chatledger.core.middleware import AuthMiddleware
from chatledger.domain.errors import ChatError
from chatledger.infrastructure.app_factory import AppFactory
from chatledger.modules.config import ConfigManager
from chatledger.routes.chat_routes import router as chat_router
from chatledger.routes.health_routes import router as health_router
from chatledger.routes.stream_routes import router as stream_router
from chatledger.routes.vote_routes import router as vote_router
from chatledger.version import VERSION

load_dotenv()

logger = logging.getLogger(__name__)


async def chat_error_handler(request: Request, exc: ChatError) -> JSONResponse:
    """Render a ChatError; database details stay in the logs."""
    if exc.is_log_only:
        logger.error("Database error on %s %s: %s", request.method, request.url.path, exc)
    elif exc.status_code >= 500:
        logger.warning("Request failed: %s", exc)
    else:
        logger.debug("Request rejected: %s", exc)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ChatError("bad_request:api", "Invalid request parameters")
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def create_app(factory: Optional[AppFactory] = None) -> FastAPI:
    """Build the FastAPI application around an AppFactory."""
    factory = factory or AppFactory()
    settings = factory.config_manager.app_settings

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting chatledger backend")
        await factory.initialize()
        yield
        logger.info("Shutting down chatledger backend")
        await factory.shutdown()

    app = FastAPI(
        title="Chatledger",
        description="Chat persistence and resumable response delivery",
        version=VERSION,
        lifespan=lifespan,
    )
    app.state.app_factory = factory

    app.add_middleware(
        AuthMiddleware,
        debug_mode=settings.debug_mode,
        auth_header_name=settings.auth_user_header,
        user_type_header_name=settings.auth_user_type_header,
        test_user=settings.test_user,
        default_user_type=settings.default_user_type,
    )

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(health_router)
    app.include_router(chat_router)
    app.include_router(vote_router)
    app.include_router(stream_router)
    return app


config_manager = ConfigManager()

# Structured JSON logging to logs/app.jsonl
logging_config = setup_logging(config_manager.app_settings, service_version=VERSION)

app = create_app(AppFactory(config_manager=config_manager))


if __name__ == "__main__":
    import os

    import uvicorn

    # Use environment variable for host binding, default to localhost for security
    host = os.getenv("CHATLEDGER_HOST", "127.0.0.1")
    port = int(os.getenv("PORT", 8000))

    uvicorn.run(app, host=host, port=port)
