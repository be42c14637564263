"""Application factory for dependency injection and wiring."""

import logging
from typing import Optional

from chatledger.application.chat.resumption import ResumptionCoordinator
from chatledger.application.chat.turns import ChatTurnService
from chatledger.infrastructure.streams.in_memory_stream_store import InMemoryStreamStore
from chatledger.modules.config import ConfigManager
from chatledger.modules.persistence import (
    ChatRepository,
    ConnectionManager,
    DocumentRepository,
    MessageRepository,
    QuotaCounter,
    StreamLedger,
    VoteRepository,
)

logger = logging.getLogger(__name__)


class AppFactory:
    """Application factory that wires dependencies (simple in-memory DI)."""

    def __init__(
        self,
        config_manager: Optional[ConfigManager] = None,
        connection_manager: Optional[ConnectionManager] = None,
    ) -> None:
        # Configuration
        self.config_manager = config_manager or ConfigManager()
        settings = self.config_manager.app_settings

        # Backing store; connects lazily on first use
        self.connection_manager = connection_manager or ConnectionManager.from_settings(settings)

        # Repositories share the connection manager
        self.chat_repository = ChatRepository(self.connection_manager)
        self.message_repository = MessageRepository(self.connection_manager)
        self.vote_repository = VoteRepository(self.connection_manager)
        self.quota_counter = QuotaCounter(self.connection_manager)
        self.stream_ledger = StreamLedger(self.connection_manager)
        self.document_repository = DocumentRepository(self.connection_manager)

        # Live streams are process-local
        self.stream_store = InMemoryStreamStore(
            retention_seconds=settings.stream_retention_seconds,
            max_age_seconds=settings.stream_max_age_seconds,
        )
        self.resumption_coordinator = ResumptionCoordinator(
            stream_ledger=self.stream_ledger,
            message_repository=self.message_repository,
            stream_store=self.stream_store,
        )

        logger.info("AppFactory initialized")

    async def initialize(self) -> None:
        """Connect to the backing store. Failure leaves the app in offline mode."""
        if await self.connection_manager.init() is None:
            logger.warning("Chat store unavailable; serving degraded results")
        else:
            logger.info("AppFactory async initialization complete")

    async def shutdown(self) -> None:
        await self.connection_manager.close()

    def create_chat_turn_service(self) -> ChatTurnService:
        return ChatTurnService(
            chat_repository=self.chat_repository,
            message_repository=self.message_repository,
            quota_counter=self.quota_counter,
            coordinator=self.resumption_coordinator,
            config_manager=self.config_manager,
        )


def get_app_factory(request) -> AppFactory:
    """The AppFactory the running application was created with."""
    return request.app.state.app_factory
