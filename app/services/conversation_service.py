"""
Idempotent persistence of WhatsApp conversations and messages.

Correctness under concurrent webhook deliveries relies only on atomic
conflict-aware statements keyed on participant_id and message_id. A message
is inserted (conflict ignored) against a conversation row that is created if
missing; the conversation summary is overwritten only when the message was
new, so a redelivered message changes nothing. No locks are taken.

Known gap: the conversation's last_message fields follow arrival order, so an
older event delivered after a newer one becomes the displayed last message.
"""

from __future__ import annotations

import logging
import re
import secrets
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterable, Iterator, List, Optional

from sqlalchemy import func, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import (
    DBAPIError,
    DisconnectionError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm import Session

from app.core.normalizer import NormalizedEntry
from app.exceptions import ConfigurationError, StorageUnavailableError
from app.models.conversation import (
    BOT_ACTIVE,
    DEFAULT_CHANNEL,
    STATUS_CLOSED,
    STATUS_OPEN,
    Conversation,
)
from app.models.message import DIRECTION_INBOUND, DIRECTION_OUTBOUND, Message
from app.schemas.conversation import ConversationMessageRead, ConversationSummary

logger = logging.getLogger(__name__)

CONVERSATION_LIST_LIMIT = 200
MESSAGE_HISTORY_LIMIT = 500

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}

_SENDER_TYPE_KEYS = (
    "senderType",
    "sender_type",
    "actor",
    "sender",
    "role",
    "source",
    "intervenedBy",
)
_INTERVENTION_KEYS = (
    "interventionStatus",
    "intervention_status",
    "agentStatus",
    "agent_status",
    "status",
    "estado",
    "mode",
)
_SENDER_PATTERNS = (
    ("ia", re.compile(r"ia|ai|bot|assistant")),
    ("humano", re.compile(r"humano|human|agent|asesor|admin")),
    ("cliente", re.compile(r"cliente|client|user|contacto")),
    ("sistema", re.compile(r"system|sistema")),
)
# inactive before active: "inactivo" contains "activo"
_INTERVENTION_PATTERNS = (
    ("inactivo", re.compile(r"inactiv|off|disabled|paused")),
    ("activo", re.compile(r"activ|\bon\b|enabled")),
)


def _is_connectivity_error(error: SQLAlchemyError) -> bool:
    if isinstance(
        error, (OperationalError, InterfaceError, DisconnectionError, PoolTimeoutError)
    ):
        return True
    return isinstance(error, DBAPIError) and bool(error.connection_invalidated)


def _first_string(raw: Optional[dict[str, Any]], keys: Iterable[str]) -> Optional[str]:
    if not raw:
        return None
    for key in keys:
        value = raw.get(key)
        if isinstance(value, str):
            return value.lower()
    return None


def infer_sender_type(raw: Optional[dict[str, Any]], direction: str) -> str:
    """Who authored a message: bot ('ia'), staff ('humano'), contact or system."""
    candidate = _first_string(raw, _SENDER_TYPE_KEYS)
    if candidate:
        for label, pattern in _SENDER_PATTERNS:
            if pattern.search(candidate):
                return label
    return "cliente" if direction == DIRECTION_INBOUND else "ia"


def infer_intervention_status(raw: Optional[dict[str, Any]]) -> Optional[str]:
    candidate = _first_string(raw, _INTERVENTION_KEYS)
    if not candidate:
        return None
    for label, pattern in _INTERVENTION_PATTERNS:
        if pattern.search(candidate):
            return label
    return None


def create_local_message_id() -> str:
    """Placeholder id for outbound messages the provider did not identify."""
    return f"local-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


class ConversationService:
    """Conversation inbox store. Messages are insert-only apart from read_at."""

    def __init__(self, db: Session) -> None:
        self.db = db

    @contextmanager
    def _storage_guard(self, action: str) -> Iterator[None]:
        try:
            yield
        except SQLAlchemyError as e:
            self.db.rollback()
            if _is_connectivity_error(e):
                logger.error("Database unavailable while %s: %s", action, e)
                raise StorageUnavailableError(
                    f"Database unavailable while {action}"
                ) from e
            raise

    def _insert(self, table):
        dialect = self.db.get_bind().dialect.name
        try:
            return _INSERT_BY_DIALECT[dialect](table)
        except KeyError:
            raise ConfigurationError(
                f"Conflict-aware inserts are not supported on {dialect}"
            ) from None

    def _ensure_conversation(
        self, participant_id: str, display_name: Optional[str], channel: Optional[str]
    ) -> None:
        """Create the conversation row if missing; an existing row is left as is."""
        stmt = self._insert(Conversation.__table__).values(
            participant_id=participant_id,
            display_name=display_name or participant_id,
            channel=channel or DEFAULT_CHANNEL,
            status=STATUS_OPEN,
            bot_status=BOT_ACTIVE,
        )
        self.db.execute(stmt.on_conflict_do_nothing(index_elements=["participant_id"]))

    def _upsert_conversation(
        self,
        participant_id: str,
        last_message: Optional[str],
        last_message_at: datetime,
        display_name: Optional[str],
        channel: Optional[str],
    ) -> None:
        stmt = self._insert(Conversation.__table__).values(
            participant_id=participant_id,
            display_name=display_name or participant_id,
            channel=channel or DEFAULT_CHANNEL,
            last_message=last_message,
            last_message_at=last_message_at,
            status=STATUS_OPEN,
            closed_at=None,
            bot_status=BOT_ACTIVE,
        )
        overwrite = {
            "last_message": stmt.excluded.last_message,
            "last_message_at": stmt.excluded.last_message_at,
            "status": STATUS_OPEN,
            "closed_at": None,
        }
        if display_name:
            overwrite["display_name"] = stmt.excluded.display_name
        if channel:
            overwrite["channel"] = stmt.excluded.channel
        self.db.execute(
            stmt.on_conflict_do_update(
                index_elements=["participant_id"], set_=overwrite
            )
        )

    def _insert_message(
        self,
        participant_id: str,
        message_id: str,
        direction: str,
        body: Optional[str],
        timestamp: datetime,
        raw: Optional[dict[str, Any]],
    ) -> bool:
        read_at = (
            datetime.now(timezone.utc) if direction == DIRECTION_OUTBOUND else None
        )
        stmt = (
            self._insert(Message.__table__)
            .values(
                participant_id=participant_id,
                message_id=message_id,
                direction=direction,
                body=body,
                timestamp=timestamp,
                raw=raw,
                read_at=read_at,
            )
            .on_conflict_do_nothing(index_elements=["message_id"])
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1

    def record_entry(self, entry: NormalizedEntry) -> bool:
        """
        Insert the message and, only if it is new, overwrite the conversation
        summary (and reopen it), all in one transaction. Returns False when
        the message id was already stored; nothing is changed then.
        """
        with self._storage_guard("recording a message"):
            self._ensure_conversation(
                entry.participant_id, entry.contact_name, DEFAULT_CHANNEL
            )
            inserted = self._insert_message(
                participant_id=entry.participant_id,
                message_id=entry.message_id,
                direction=entry.direction,
                body=entry.preview,
                timestamp=entry.timestamp,
                raw=entry.raw_message,
            )
            if inserted:
                self._upsert_conversation(
                    participant_id=entry.participant_id,
                    last_message=entry.preview,
                    last_message_at=entry.timestamp,
                    display_name=entry.contact_name,
                    channel=DEFAULT_CHANNEL,
                )
            self.db.commit()
        if not inserted:
            logger.info(
                "Duplicate delivery of message %s for %s ignored",
                entry.message_id,
                entry.participant_id,
            )
        return inserted

    def record_entries(self, entries: Iterable[NormalizedEntry]) -> int:
        """Record each entry; returns how many were new."""
        return sum(1 for entry in entries if self.record_entry(entry))

    def record_outbound(
        self,
        participant_id: str,
        body: str,
        message_id: Optional[str] = None,
        display_name: Optional[str] = None,
        sender_type: str = "ia",
        source: str = "n8n",
    ) -> str:
        """Persist a sent message as already read. Returns the stored message id."""
        participant_id = participant_id.strip()
        display_name = (display_name or "").strip() or None
        message_id = message_id or create_local_message_id()
        now = datetime.now(timezone.utc)
        with self._storage_guard("recording an outbound message"):
            self._ensure_conversation(participant_id, display_name, None)
            inserted = self._insert_message(
                participant_id=participant_id,
                message_id=message_id,
                direction=DIRECTION_OUTBOUND,
                body=body,
                timestamp=now,
                raw={
                    "senderType": sender_type,
                    "source": source,
                    "persistedBy": "meta-inbox",
                },
            )
            if inserted:
                self._upsert_conversation(
                    participant_id=participant_id,
                    last_message=body,
                    last_message_at=now,
                    display_name=display_name,
                    channel=None,
                )
            self.db.commit()
        return message_id

    def list_conversations(
        self, channel: Optional[str] = None
    ) -> List[ConversationSummary]:
        """Most recently active first (never-active last), with unread counts."""
        unread = (
            select(
                Message.participant_id,
                func.count().label("unread_count"),
            )
            .where(
                Message.direction == DIRECTION_INBOUND,
                Message.read_at.is_(None),
            )
            .group_by(Message.participant_id)
            .subquery()
        )
        with self._storage_guard("listing conversations"):
            query = self.db.query(
                Conversation,
                func.coalesce(unread.c.unread_count, 0),
            ).outerjoin(unread, unread.c.participant_id == Conversation.participant_id)
            if channel:
                query = query.filter(Conversation.channel == channel)
            rows = (
                query.order_by(Conversation.last_message_at.desc().nulls_last())
                .limit(CONVERSATION_LIST_LIMIT)
                .all()
            )
        return [
            ConversationSummary(
                participant_id=conversation.participant_id,
                display_name=conversation.display_name,
                channel=conversation.channel,
                last_message=conversation.last_message,
                last_message_at=conversation.last_message_at,
                unread_count=int(unread_count or 0),
                status=conversation.status,
                bot_status=conversation.bot_status,
            )
            for conversation, unread_count in rows
        ]

    def get_conversation(self, participant_id: str) -> Optional[Conversation]:
        with self._storage_guard("loading a conversation"):
            return self.db.get(Conversation, participant_id)

    def get_messages(self, participant_id: str) -> List[ConversationMessageRead]:
        """Message history for one participant, oldest first."""
        with self._storage_guard("loading messages"):
            rows = (
                self.db.query(Message)
                .filter(Message.participant_id == participant_id)
                .order_by(Message.timestamp.asc(), Message.id.asc())
                .limit(MESSAGE_HISTORY_LIMIT)
                .all()
            )
        return [
            ConversationMessageRead(
                message_id=row.message_id,
                direction=row.direction,
                body=row.body,
                timestamp=row.timestamp,
                read_at=row.read_at,
                sender_type=infer_sender_type(row.raw, row.direction),
                intervention_status=infer_intervention_status(row.raw),
            )
            for row in rows
        ]

    def mark_read(self, participant_id: str) -> int:
        """Stamp every unread inbound message; returns how many changed."""
        with self._storage_guard("marking messages read"):
            updated = (
                self.db.query(Message)
                .filter(
                    Message.participant_id == participant_id,
                    Message.direction == DIRECTION_INBOUND,
                    Message.read_at.is_(None),
                )
                .update(
                    {Message.read_at: datetime.now(timezone.utc)},
                    synchronize_session=False,
                )
            )
            self.db.commit()
        return updated

    def close_conversation(self, participant_id: str) -> bool:
        with self._storage_guard("closing a conversation"):
            conversation = self.db.get(Conversation, participant_id)
            if conversation is None:
                return False
            conversation.status = STATUS_CLOSED
            conversation.closed_at = datetime.now(timezone.utc)
            self.db.commit()
        return True

    def set_bot_status(self, participant_id: str, bot_status: str) -> bool:
        with self._storage_guard("updating bot status"):
            conversation = self.db.get(Conversation, participant_id)
            if conversation is None:
                return False
            conversation.bot_status = bot_status
            self.db.commit()
        return True
