"""
Meta WhatsApp Cloud API webhook envelopes.

The provider has delivered two shapes over time:

- ``EntryEnvelope``: ``{"object": ..., "entry": [{"id": ..., "changes": [{field, value}]}]}``
- ``ChangeEnvelope``: a bare change, ``{"field": "messages", "value": {...}}``

Both reduce to a list of ``Change`` objects via ``parse_envelope``.
Unknown keys are preserved so a message can be stored verbatim.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from app.exceptions import PayloadValidationError


class _Lenient(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)


class ContactProfile(_Lenient):
    name: Optional[str] = None


class Contact(_Lenient):
    wa_id: Optional[str] = None
    profile: Optional[ContactProfile] = None


class TextContent(_Lenient):
    body: Optional[str] = None


class ButtonContent(_Lenient):
    text: Optional[str] = None


class ReplyTitle(_Lenient):
    id: Optional[str] = None
    title: Optional[str] = None


class InteractiveContent(_Lenient):
    type: Optional[str] = None
    button_reply: Optional[ReplyTitle] = None
    list_reply: Optional[ReplyTitle] = None


class ImageContent(_Lenient):
    id: Optional[str] = None
    caption: Optional[str] = None
    mime_type: Optional[str] = None


class DocumentContent(_Lenient):
    id: Optional[str] = None
    filename: Optional[str] = None
    caption: Optional[str] = None
    mime_type: Optional[str] = None


class WebhookMessage(_Lenient):
    """A single message object from ``value.messages[]``."""

    id: Optional[str] = None
    from_: Optional[str] = Field(default=None, alias="from")
    to: Optional[str] = None
    timestamp: Optional[str | int | float] = None
    type: Optional[str] = None
    text: Optional[TextContent] = None
    button: Optional[ButtonContent] = None
    interactive: Optional[InteractiveContent] = None
    image: Optional[ImageContent] = None
    document: Optional[DocumentContent] = None


class ChangeValue(_Lenient):
    messaging_product: Optional[str] = None
    contacts: list[Contact] = Field(default_factory=list)
    messages: list[WebhookMessage] = Field(default_factory=list)
    statuses: list[dict[str, Any]] = Field(default_factory=list)


class Change(_Lenient):
    field: Optional[str] = None
    value: Optional[ChangeValue] = None


class Entry(_Lenient):
    id: Optional[str] = None
    changes: list[Change] = Field(default_factory=list)


class EntryEnvelope(_Lenient):
    """Standard shape: ``entry[].changes[]``."""

    object: Optional[str] = None
    entry: list[Entry] = Field(default_factory=list)

    def changes(self) -> list[Change]:
        return [change for entry in self.entry for change in entry.changes]


class ChangeEnvelope(Change):
    """Flat shape: a single ``{field, value}`` change at the top level."""

    def changes(self) -> list[Change]:
        if self.field == "messages" and self.value is not None:
            return [Change(field=self.field, value=self.value)]
        return []


def parse_envelope(document: Any) -> list[Change]:
    """
    Convert a decoded webhook document into its changes.

    A document may carry both shapes at once; changes from ``entry`` come
    first. Raises PayloadValidationError for non-object documents or when a
    recognised shape has the wrong types.
    """
    if not isinstance(document, dict):
        raise PayloadValidationError("Webhook body must be a JSON object")

    variants: list[EntryEnvelope | ChangeEnvelope] = []
    try:
        if isinstance(document.get("entry"), list):
            variants.append(EntryEnvelope.model_validate(document))
        if "field" in document and "value" in document:
            variants.append(ChangeEnvelope.model_validate(document))
    except ValueError as e:
        raise PayloadValidationError(f"Invalid webhook envelope: {e}") from e

    changes: list[Change] = []
    for variant in variants:
        changes.extend(variant.changes())
    return changes
