"""
Command to send an outbound WhatsApp message.

Validates the request, sends via the WhatsApp adapter, and on success records
the message as an already-read outbound entry in the conversation.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.adapters.whatsapp import normalize_recipient
from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.exceptions import (
    ConfigurationError,
    PayloadValidationError,
    StorageUnavailableError,
    UpstreamProviderError,
)
from app.schemas.outbound import (
    OutboundMessage,
    OutboundSendResult,
    OutboundType,
    SendMessageRequest,
)
from app.services.conversation_service import ConversationService

logger = logging.getLogger(__name__)

IMAGE_PREVIEW = "Image"
AUDIO_PREVIEW = "Audio"


def _to_outbound(body: SendMessageRequest, to: str, text: str) -> OutboundMessage:
    if body.type == OutboundType.IMAGE:
        return OutboundMessage(
            to=to,
            type=OutboundType.IMAGE,
            link=body.image_url or body.media_url,
            media_id=body.media_id,
            caption=body.caption,
        )
    if body.type == OutboundType.AUDIO:
        return OutboundMessage(
            to=to,
            type=OutboundType.AUDIO,
            link=body.audio_url or body.media_url,
            media_id=body.media_id,
        )
    return OutboundMessage(to=to, type=OutboundType.TEXT, text=text)


def _preview(body: SendMessageRequest, text: str) -> str:
    if body.type == OutboundType.IMAGE:
        return (body.caption or "").strip() or IMAGE_PREVIEW
    if body.type == OutboundType.AUDIO:
        return AUDIO_PREVIEW
    return text


class SendOutboundCommand(BaseWhatsAppCommand):
    """
    Command to send an outbound message to a WhatsApp participant.
    Sends via the Cloud API, persists on success.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self._adapter = self.get_whatsapp_adapter()
        self.conversation_service = ConversationService(db)

    async def execute(self, body: SendMessageRequest) -> dict[str, Any]:
        """
        Send the message and persist it.

        Args:
            body: Outbound request (recipient, type, content, attribution).

        Returns:
            dict: {"ok": True, "to", "type", "message_id"}; message_id may be None.

        Raises:
            HTTPException: 400 on invalid input, provider status on provider
                failure, 500 when credentials are not configured, 503 when
                the message was sent but could not be stored.
        """
        wa_id = body.wa_id.strip()
        text = body.message.strip()
        if not wa_id:
            raise HTTPException(status_code=400, detail="wa_id/to is required")
        if body.type == OutboundType.TEXT and not text:
            raise HTTPException(
                status_code=400, detail="message/text is required for type=text"
            )

        try:
            participant_id = normalize_recipient(wa_id)
            result: OutboundSendResult = await self._adapter.send(
                _to_outbound(body, participant_id, text)
            )
        except PayloadValidationError as e:
            raise HTTPException(status_code=400, detail=e.message) from e
        except ConfigurationError as e:
            raise self.configuration_error(e) from e
        except UpstreamProviderError as e:
            raise HTTPException(status_code=e.status_code, detail=str(e)) from e

        try:
            self.conversation_service.record_outbound(
                participant_id=participant_id,
                body=_preview(body, text),
                message_id=result.platform_message_id,
                display_name=body.name,
                sender_type=body.sender_type,
                source=body.source,
            )
        except StorageUnavailableError as e:
            logger.error(
                "Message %s to %s sent but not stored: %s",
                result.platform_message_id,
                participant_id,
                e.message,
            )
            raise HTTPException(status_code=503, detail=e.message) from e

        return {
            "ok": True,
            "to": participant_id,
            "type": body.type.value,
            "message_id": result.platform_message_id,
        }
