"""Chat turn orchestration: quota, first-turn chat creation, rewinds."""

import logging
import uuid
from typing import Optional

from chatledger.core.log_sanitizer import sanitize_for_logging
from chatledger.domain.errors import ChatError
from chatledger.domain.models import Message, MessageRole, Visibility
from chatledger.modules.config.config_manager import ConfigManager
from chatledger.modules.persistence.chat_repository import ChatRepository
from chatledger.modules.persistence.message_repository import MessageRepository
from chatledger.modules.persistence.models import ID_LENGTH
from chatledger.modules.persistence.quota import QuotaCounter

from .resumption import ResumptionCoordinator

logger = logging.getLogger(__name__)


class ChatTurnService:
    """Accepts a user's message and opens the generation that answers it."""

    def __init__(
        self,
        chat_repository: ChatRepository,
        message_repository: MessageRepository,
        quota_counter: QuotaCounter,
        coordinator: ResumptionCoordinator,
        config_manager: ConfigManager,
    ):
        self.chat_repository = chat_repository
        self.message_repository = message_repository
        self.quota_counter = quota_counter
        self.coordinator = coordinator
        self.config_manager = config_manager

    async def start_turn(
        self,
        chat_id: str,
        user_id: str,
        user_type: Optional[str],
        message: Message,
        title: str = "New chat",
        visibility: Visibility = Visibility.PRIVATE,
        stream_id: Optional[str] = None,
    ) -> str:
        """Store the user's message and begin a generation.

        Returns:
            The id of the stream the response will be delivered on

        Raises:
            ChatError: rate_limit:chat over quota, forbidden:chat for another
                user's chat, conflict:stream while a generation is running
        """
        if message.chat_id != chat_id or message.role != MessageRole.USER:
            raise ChatError("bad_request:api", "Expected a user message for this chat")
        if any(len(value) > ID_LENGTH for value in (chat_id, message.id, stream_id or "")):
            raise ChatError("bad_request:api", f"Ids must be at most {ID_LENGTH} characters")

        settings = self.config_manager.app_settings
        entitlement = self.config_manager.entitlements_for(user_type)
        count = await self.quota_counter.count_user_messages(
            user_id=user_id, window_hours=settings.quota_window_hours
        )
        if count >= entitlement.max_messages_per_day:
            logger.info(
                "User %s reached message quota (%d/%d)",
                sanitize_for_logging(user_id),
                count,
                entitlement.max_messages_per_day,
            )
            raise ChatError("rate_limit:chat")

        chat = await self.chat_repository.get_chat(chat_id=chat_id)
        if chat is None:
            await self.chat_repository.create_chat(
                chat_id=chat_id,
                owner_id=user_id,
                title=title,
                visibility=visibility,
            )
        elif chat.owner_id != user_id:
            raise ChatError("forbidden:chat")

        stream_id = stream_id or str(uuid.uuid4())
        await self.coordinator.begin_generation(chat_id, stream_id)
        await self.message_repository.append_messages([message])
        return stream_id

    async def rewind_to_message(self, chat_id: str, user_id: str, message_id: str) -> int:
        """Drop ``message_id`` and everything after it, for edits and regenerations."""
        message = await self.message_repository.get_message_by_id(message_id=message_id)
        if message is None or message.chat_id != chat_id:
            raise ChatError("not_found:chat", f"Message {message_id} not found in chat {chat_id}")

        chat = await self.chat_repository.get_chat(chat_id=chat_id)
        if chat is not None and chat.owner_id != user_id:
            raise ChatError("forbidden:chat")

        return await self.message_repository.delete_messages_after(
            chat_id=chat_id, timestamp=message.created_at
        )
