"""
Flatten WhatsApp webhook documents into conversation entries.

Each message in each change becomes one ``NormalizedEntry``. Messages that
cannot be attributed to a participant (no ``from`` and no ``to``) are
dropped, as are status-only changes which carry no messages at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from app.models.message import DIRECTION_INBOUND, DIRECTION_OUTBOUND
from app.schemas.meta_webhook import Contact, WebhookMessage, parse_envelope

logger = logging.getLogger(__name__)

DOCUMENT_PREVIEW_PREFIX = "File: "
GENERIC_PREVIEW = "Message"


@dataclass(frozen=True)
class NormalizedEntry:
    participant_id: str
    direction: str
    message_id: str
    event_type: Optional[str]
    raw_message: dict[str, Any]
    contact_name: str
    timestamp: datetime
    preview: str


def extract_preview(message: WebhookMessage) -> str:
    """Preview text for a message. First matching rule wins."""
    kind = message.type
    if kind == "text" and message.text and message.text.body:
        return message.text.body
    if kind == "button" and message.button and message.button.text:
        return message.button.text
    if kind == "interactive" and message.interactive:
        if message.interactive.button_reply and message.interactive.button_reply.title:
            return message.interactive.button_reply.title
        if message.interactive.list_reply and message.interactive.list_reply.title:
            return message.interactive.list_reply.title
    if kind == "image" and message.image and message.image.caption:
        return message.image.caption
    if kind == "document" and message.document and message.document.filename:
        return f"{DOCUMENT_PREVIEW_PREFIX}{message.document.filename}"
    if kind:
        return f"{kind.capitalize()} message"
    return GENERIC_PREVIEW


def parse_timestamp(value: Any) -> datetime:
    """
    Epoch seconds (number or numeric string) or an ISO-8601 string.
    Anything else, including None, yields the current instant in UTC.
    """
    if value is None or value == "":
        return datetime.now(timezone.utc)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_epoch(float(value))
    text = str(value).strip()
    try:
        return _from_epoch(float(text))
    except ValueError:
        pass
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Unparseable webhook timestamp %r, using now", value)
        return datetime.now(timezone.utc)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _from_epoch(seconds: float) -> datetime:
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        logger.warning("Out-of-range epoch timestamp %r, using now", seconds)
        return datetime.now(timezone.utc)


def _contact_name(contacts: list[Contact], participant_id: str) -> str:
    contact = next((c for c in contacts if c.wa_id == participant_id), None)
    if contact is None and contacts:
        contact = contacts[0]
    if contact is not None and contact.profile and contact.profile.name:
        return contact.profile.name
    return participant_id


def normalize_payload(document: Any) -> list[NormalizedEntry]:
    """Normalize any supported webhook envelope into conversation entries."""
    entries: list[NormalizedEntry] = []
    for change in parse_envelope(document):
        value = change.value
        if value is None or not value.messages:
            continue
        for message in value.messages:
            participant_id = message.from_ or message.to
            if not participant_id:
                continue
            if not message.id:
                logger.warning(
                    "Dropping webhook message without id for participant %s",
                    participant_id,
                )
                continue
            entries.append(
                NormalizedEntry(
                    participant_id=participant_id,
                    direction=(
                        DIRECTION_INBOUND if message.from_ else DIRECTION_OUTBOUND
                    ),
                    message_id=message.id,
                    event_type=message.type,
                    raw_message=message.model_dump(by_alias=True, exclude_unset=True),
                    contact_name=_contact_name(value.contacts, participant_id),
                    timestamp=parse_timestamp(message.timestamp),
                    preview=extract_preview(message),
                )
            )
    return entries
