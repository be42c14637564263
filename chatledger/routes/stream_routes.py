"""Resumable stream route.

A client that lost its connection mid-response reconnects here with the
number of chunks it already received and gets the rest as server-sent
events.
"""

import json
import logging
from typing import AsyncIterator

from fastapi import APIRouter, Query, Request
from fastapi.responses import Response, StreamingResponse

from chatledger.core.auth import get_current_user
from chatledger.domain.errors import ChatError
from chatledger.domain.models import Visibility
from chatledger.infrastructure.app_factory import get_app_factory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["streams"])


async def _as_events(reader: AsyncIterator[str]) -> AsyncIterator[str]:
    async for chunk in reader:
        yield f"data: {json.dumps(chunk)}\n\n"
    yield "event: end\ndata: {}\n\n"


@router.get("/chat/{chat_id}/stream")
async def resume_stream(
    chat_id: str,
    request: Request,
    offset: int = Query(default=0, ge=0),
):
    """Resume the chat's in-flight response, or 204 when there is none."""
    user_id = get_current_user(request)
    if not user_id:
        raise ChatError("unauthorized:chat")

    factory = get_app_factory(request)
    chat = await factory.chat_repository.get_chat(chat_id=chat_id)
    if chat is None:
        raise ChatError("not_found:chat")
    if chat.visibility != Visibility.PUBLIC and chat.owner_id != user_id:
        raise ChatError("forbidden:chat")

    reader = await factory.resumption_coordinator.resume(chat_id, offset=offset)
    if reader is None:
        return Response(status_code=204)

    return StreamingResponse(
        _as_events(reader),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache"},
    )
