"""
Webhook routes for inbound WhatsApp Cloud API deliveries.

Meta calls GET once to verify the subscription, then POSTs signed event
batches. The POST body is read raw because the signature covers its bytes.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session

from app.commands.webhooks import WhatsAppVerifyCommand, WhatsAppWebhookCommand
from app.core.signature import SIGNATURE_HEADER
from app.db import get_db

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.get("/whatsapp", response_class=PlainTextResponse)
def verify_whatsapp_webhook(
    mode: Optional[str] = Query(None, alias="hub.mode"),
    token: Optional[str] = Query(None, alias="hub.verify_token"),
    challenge: Optional[str] = Query(None, alias="hub.challenge"),
) -> str:
    """Subscription handshake: echo hub.challenge when the verify token matches."""
    return WhatsAppVerifyCommand().execute(mode, token, challenge)


@router.post("/whatsapp")
async def whatsapp_webhook(
    request: Request,
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Receive WhatsApp webhook deliveries. Verify signature, persist messages, return 200.
    """
    raw_body = await request.body()
    command = WhatsAppWebhookCommand(db)
    return await command.execute(raw_body, request.headers.get(SIGNATURE_HEADER))
