"""Message vote routes."""

import json
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Query, Request
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from chatledger.core.auth import require_user
from chatledger.core.log_sanitizer import sanitize_for_logging
from chatledger.domain.errors import ChatError
from chatledger.infrastructure.app_factory import get_app_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["votes"])


class VoteRequest(BaseModel):
    chatId: str = Field(min_length=1)
    messageId: str = Field(min_length=1)
    type: Literal["up", "down"]


async def _parse_vote_request(request: Request) -> VoteRequest:
    try:
        payload = await request.json()
        return VoteRequest.model_validate(payload)
    except (json.JSONDecodeError, UnicodeDecodeError, PydanticValidationError) as e:
        raise ChatError(
            "bad_request:api",
            "Parameters chatId, messageId, and type are required.",
        ) from e


@router.get("/vote")
async def get_votes(
    request: Request,
    chat_id: Optional[str] = Query(default=None, alias="chatId"),
):
    """List the votes on a chat the caller owns."""
    if not chat_id:
        raise ChatError("bad_request:api", "Parameter chatId is required.")

    user_id = require_user(request, "vote")
    factory = get_app_factory(request)

    chat = await factory.chat_repository.get_chat(chat_id=chat_id)
    if chat is None:
        # Unknown chat (or store offline): nothing to show
        return []
    if chat.owner_id != user_id:
        raise ChatError("forbidden:vote")

    votes = await factory.vote_repository.list_votes_by_chat(chat_id=chat_id)
    return [v.to_dict() for v in votes]


@router.patch("/vote")
async def vote_message(request: Request):
    """Record an up or down vote on a message."""
    body = await _parse_vote_request(request)

    user_id = require_user(request, "vote")
    factory = get_app_factory(request)

    chat = await factory.chat_repository.get_chat(chat_id=body.chatId)
    if chat is None:
        logger.info(
            "Vote on unknown chat %s accepted without storing",
            sanitize_for_logging(body.chatId),
        )
        return PlainTextResponse("Message voted (offline mode)")
    if chat.owner_id != user_id:
        raise ChatError("forbidden:vote")

    await factory.vote_repository.upsert_vote(
        chat_id=body.chatId,
        message_id=body.messageId,
        vote_type=body.type,
    )
    return PlainTextResponse("Message voted")
