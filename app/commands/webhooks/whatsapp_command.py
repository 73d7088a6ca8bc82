"""
Commands for the WhatsApp Cloud API webhook.

``WhatsAppVerifyCommand`` answers Meta's subscription handshake.
``WhatsAppWebhookCommand`` authenticates a delivery against the raw body,
normalizes every envelope shape into conversation entries and persists them
idempotently. Nothing is persisted unless the signature and JSON are valid.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Optional

from fastapi import HTTPException
from sqlalchemy.orm import Session

from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.config import get_settings
from app.core.signature import verify_subscription
from app.exceptions import AuthenticationError, PayloadValidationError, StorageUnavailableError
from app.services.conversation_service import ConversationService


class WhatsAppVerifyCommand:
    """Echo hub.challenge when hub.mode and hub.verify_token match."""

    def __init__(self) -> None:
        self.settings = get_settings()
        self.logger = logging.getLogger(__name__)

    def execute(
        self,
        mode: Optional[str],
        token: Optional[str],
        challenge: Optional[str],
    ) -> str:
        """
        Raises:
            HTTPException: 403 when the handshake does not match.
        """
        try:
            return verify_subscription(
                mode, token, challenge, self.settings.meta_verify_token
            )
        except AuthenticationError as e:
            self.logger.warning("%s", e.message)
            raise HTTPException(
                status_code=403,
                detail={
                    "error": "Webhook verification failed",
                    "hint": "Set META_VERIFY_TOKEN and use the same value in the Meta app",
                },
            ) from e


class WhatsAppWebhookCommand(BaseWhatsAppCommand):
    """
    Command to handle WhatsApp webhook deliveries.
    Validates X-Hub-Signature-256, parses the envelope, persists messages.
    """

    def __init__(self, db: Session) -> None:
        self.db = db
        self.settings = get_settings()
        self._adapter = self.get_whatsapp_adapter()
        self.conversation_service = ConversationService(db)
        self.logger = logging.getLogger(__name__)

    async def execute(
        self, raw_body: bytes, signature_header: Optional[str]
    ) -> dict[str, Any]:
        """
        Execute the webhook: verify signature, decode, normalize, persist.

        Args:
            raw_body: Exact request body bytes (the signature covers these).
            signature_header: Value of X-Hub-Signature-256, if sent.

        Returns:
            dict: {"received": True, "persisted": <new messages>}.

        Raises:
            HTTPException: 401 on invalid signature, 400 on invalid JSON or
                envelope, 503 when the database is unreachable.
        """
        if not self.settings.meta_app_secret:
            self.logger.warning(
                "META_APP_SECRET not set; accepting unsigned webhook delivery"
            )
        if not self._adapter.verify_webhook(raw_body, signature_header):
            self.logger.warning("WhatsApp webhook rejected: invalid signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

        try:
            document = json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            self.logger.warning("WhatsApp webhook invalid JSON: %s", e)
            raise HTTPException(status_code=400, detail="Invalid JSON body") from e

        try:
            entries = self._adapter.parse_webhook(document)
        except PayloadValidationError as e:
            self.logger.warning("WhatsApp webhook parse error: %s", e.message)
            raise HTTPException(status_code=400, detail=e.message) from e

        try:
            persisted = self.conversation_service.record_entries(entries)
        except StorageUnavailableError as e:
            raise HTTPException(status_code=503, detail=e.message) from e

        self.logger.info(
            "WhatsApp webhook processed: %d entries, %d new", len(entries), persisted
        )
        return {"received": True, "persisted": persisted}
