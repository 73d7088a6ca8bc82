"""Message model: one row per provider message id, inbound or outbound."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from app.db import Base
from app.models.types import JSONType

DIRECTION_INBOUND = "inbound"
DIRECTION_OUTBOUND = "outbound"


class Message(Base):
    """
    Immutable except for read_at, which only goes NULL -> timestamp and only
    for inbound rows. Outbound rows are created already read.
    """

    __tablename__ = "meta_messages"

    __table_args__ = (
        Index("ix_meta_messages_participant_timestamp", "participant_id", "timestamp"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    participant_id = Column(
        String(64),
        ForeignKey("meta_conversations.participant_id", ondelete="CASCADE"),
        nullable=False,
    )
    message_id = Column(String(255), unique=True, nullable=False)
    direction = Column(String(16), nullable=False)  # 'inbound' | 'outbound'
    body = Column(Text, nullable=True)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    raw = Column(JSONType, nullable=True)
    read_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    conversation = relationship("Conversation", back_populates="messages")
