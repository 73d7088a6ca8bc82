"""Conversations API: inbox listing, message history, read marking, close, bot status."""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.db import get_db
from app.exceptions import StorageUnavailableError
from app.schemas.conversation import BotStatusUpdate
from app.services.conversation_service import ConversationService
from app.services.notification_service import (
    EVENT_BOT_STATUS_CHANGED,
    EVENT_CONVERSATION_CLOSED,
    NotificationService,
)

logger = logging.getLogger(__name__)

conversations_router = APIRouter(prefix="/conversations", tags=["Conversation"])


def _unavailable(error: StorageUnavailableError) -> HTTPException:
    return HTTPException(status_code=503, detail=error.message)


@conversations_router.get("", response_model=None)
def list_conversations(
    channel: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> Any:
    """List conversations, most recent first, with unread counts.

    When the database is unreachable the inbox degrades to an empty list
    with a 503 status instead of failing outright.
    """
    try:
        conversations = ConversationService(db).list_conversations(channel=channel)
    except StorageUnavailableError as e:
        return JSONResponse(
            status_code=503,
            content={"conversations": [], "degraded": True, "detail": e.message},
        )
    return {"conversations": [c.model_dump(mode="json") for c in conversations]}


@conversations_router.get("/{participant_id}/messages")
def list_conversation_messages(
    participant_id: str,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Message history for one participant, oldest first."""
    try:
        messages = ConversationService(db).get_messages(participant_id)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    return {"messages": [m.model_dump(mode="json") for m in messages]}


@conversations_router.patch("/{participant_id}/read")
def mark_conversation_read(
    participant_id: str,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Mark every unread inbound message of the conversation as read."""
    try:
        updated = ConversationService(db).mark_read(participant_id)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    return {"ok": True, "updated": updated}


@conversations_router.post("/{participant_id}/close")
def close_conversation(
    participant_id: str,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Close a conversation. It reopens on the next recorded message."""
    try:
        found = ConversationService(db).close_conversation(participant_id)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    if not found:
        raise HTTPException(status_code=404, detail="Conversation not found")
    NotificationService().dispatch(
        EVENT_CONVERSATION_CLOSED, participant_id=participant_id
    )
    return {"ok": True}


@conversations_router.put("/{participant_id}/bot-status")
def set_conversation_bot_status(
    participant_id: str,
    body: BotStatusUpdate,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Enable or pause the automated assistant for one conversation."""
    try:
        found = ConversationService(db).set_bot_status(participant_id, body.bot_status)
    except StorageUnavailableError as e:
        raise _unavailable(e) from e
    if not found:
        raise HTTPException(status_code=404, detail="Conversation not found")
    NotificationService().dispatch(
        EVENT_BOT_STATUS_CHANGED,
        participant_id=participant_id,
        bot_status=body.bot_status,
    )
    return {"ok": True, "bot_status": body.bot_status}
