"""
Outbound message contracts.

``SendMessageRequest`` is the body accepted by ``POST /outbound``; it keeps
the loose field aliases automation callers already send (wa_id/to/phone,
message/text/body, camelCase media fields).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class OutboundType(str, Enum):
    TEXT = "text"
    IMAGE = "image"
    AUDIO = "audio"


class SendMessageRequest(BaseModel):
    """Request to send a WhatsApp message to one participant."""

    model_config = ConfigDict(populate_by_name=True)

    wa_id: str = Field(
        default="", validation_alias=AliasChoices("wa_id", "waId", "to", "phone")
    )
    message: str = Field(
        default="", validation_alias=AliasChoices("message", "text", "body")
    )
    type: OutboundType = OutboundType.TEXT
    name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("name", "nombre")
    )
    image_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("image_url", "imageUrl")
    )
    audio_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("audio_url", "audioUrl")
    )
    media_url: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("media_url", "mediaUrl")
    )
    media_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("media_id", "mediaId")
    )
    caption: Optional[str] = None
    sender_type: str = Field(
        default="ia", validation_alias=AliasChoices("sender_type", "senderType")
    )
    source: str = "n8n"


class OutboundMessage(BaseModel):
    """Normalized outbound message (command -> adapter)."""

    to: str
    type: OutboundType = OutboundType.TEXT
    text: Optional[str] = None
    link: Optional[str] = None
    media_id: Optional[str] = None
    caption: Optional[str] = None


class OutboundSendResult(BaseModel):
    """Provider acknowledgement; the message id may be absent."""

    platform_message_id: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)
