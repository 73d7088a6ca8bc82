"""Pydantic schemas for conversation listings and message history."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict

SenderType = Literal["ia", "humano", "cliente", "sistema"]
InterventionStatus = Literal["activo", "inactivo"]


class ConversationSummary(BaseModel):
    """One row of the conversation inbox."""

    model_config = ConfigDict(from_attributes=True)

    participant_id: str
    display_name: str
    channel: str
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None
    unread_count: int = 0
    status: str
    bot_status: str


class ConversationMessageRead(BaseModel):
    """A stored message as shown in the conversation detail view."""

    message_id: str
    direction: Literal["inbound", "outbound"]
    body: Optional[str] = None
    timestamp: datetime
    read_at: Optional[datetime] = None
    sender_type: SenderType
    intervention_status: Optional[InterventionStatus] = None
    source: str = "meta"


class BotStatusUpdate(BaseModel):
    bot_status: Literal["active", "inactive"]
