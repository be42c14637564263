"""REST API routes for chat history management."""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from chatledger.core.auth import get_current_user, require_user
from chatledger.core.log_sanitizer import sanitize_for_logging
from chatledger.domain.errors import ChatError
from chatledger.domain.models import Visibility
from chatledger.infrastructure.app_factory import get_app_factory
from chatledger.modules.persistence.pagination import validate_cursors

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["chats"])


class UpdateVisibilityRequest(BaseModel):
    visibility: Visibility


@router.get("/history")
async def list_history(
    request: Request,
    limit: int = Query(default=10),
    starting_after: Optional[str] = Query(default=None),
    ending_before: Optional[str] = Query(default=None),
):
    """One page of the caller's chats, newest first."""
    validate_cursors(limit, starting_after, ending_before)
    user_id = require_user(request, "chat")

    factory = get_app_factory(request)
    max_limit = factory.config_manager.app_settings.history_page_limit_max
    page = await factory.chat_repository.list_chats_by_owner(
        owner_id=user_id,
        limit=min(limit, max_limit),
        starting_after=starting_after,
        ending_before=ending_before,
    )
    return page.to_dict()


async def _get_owned_chat(request: Request, chat_id: str):
    user_id = require_user(request, "chat")
    factory = get_app_factory(request)
    chat = await factory.chat_repository.get_chat(chat_id=chat_id)
    if chat is None:
        raise ChatError("not_found:chat")
    if chat.owner_id != user_id:
        raise ChatError("forbidden:chat")
    return chat


@router.delete("/chat/{chat_id}")
async def delete_chat(chat_id: str, request: Request):
    """Delete a chat with its messages, votes and stream ids."""
    await _get_owned_chat(request, chat_id)
    deleted = await get_app_factory(request).chat_repository.delete_chat(chat_id=chat_id)
    if deleted is None:
        raise ChatError("not_found:chat")
    logger.info("Chat %s deleted by owner", sanitize_for_logging(chat_id))
    return deleted.to_dict()


@router.patch("/chat/{chat_id}/visibility")
async def update_visibility(chat_id: str, request: Request):
    try:
        body = UpdateVisibilityRequest.model_validate(await request.json())
    except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError) as e:
        raise ChatError("bad_request:api", "Parameter visibility must be 'private' or 'public'.") from e

    await _get_owned_chat(request, chat_id)
    updated = await get_app_factory(request).chat_repository.update_visibility(
        chat_id=chat_id, visibility=body.visibility
    )
    if updated is None:
        raise ChatError("not_found:chat")
    return updated.to_dict()


@router.get("/chat/{chat_id}/messages")
async def list_messages(chat_id: str, request: Request):
    """Messages of a chat. Public chats are readable by anyone."""
    factory = get_app_factory(request)
    chat = await factory.chat_repository.get_chat(chat_id=chat_id)
    if chat is None:
        raise ChatError("not_found:chat")

    if chat.visibility != Visibility.PUBLIC:
        user_id = get_current_user(request)
        if not user_id:
            raise ChatError("unauthorized:chat")
        if chat.owner_id != user_id:
            raise ChatError("forbidden:chat")

    messages = await factory.message_repository.list_messages_by_chat(chat_id=chat_id)
    return {
        "chat": chat.to_dict(),
        "messages": [m.to_dict() for m in messages],
    }
