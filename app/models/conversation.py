"""Conversation model: one row per participant (WhatsApp wa_id)."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from app.db import Base

DEFAULT_CHANNEL = "WhatsApp"

STATUS_OPEN = "open"
STATUS_CLOSED = "closed"

BOT_ACTIVE = "active"
BOT_INACTIVE = "inactive"


class Conversation(Base):
    """
    Most-recent-activity summary for one participant.

    last_message / last_message_at are overwritten by every recorded message,
    in arrival order rather than event order.
    """

    __tablename__ = "meta_conversations"

    participant_id = Column(String(64), primary_key=True)
    display_name = Column(Text, nullable=False)
    channel = Column(String(32), nullable=False, default=DEFAULT_CHANNEL)
    last_message = Column(Text, nullable=True)
    last_message_at = Column(DateTime(timezone=True), nullable=True, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    status = Column(String(16), nullable=False, default=STATUS_OPEN)
    closed_at = Column(DateTime(timezone=True), nullable=True)
    bot_status = Column(String(16), nullable=False, default=BOT_ACTIVE)

    messages = relationship(
        "Message",
        back_populates="conversation",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Message.timestamp",
    )
