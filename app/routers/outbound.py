"""
Outbound API: send WhatsApp messages on behalf of automations and staff.

Callers POST a message; we send it through the Cloud API, record it in the
conversation as already read, and return the provider message id.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.commands.outbound.send_outbound_command import SendOutboundCommand
from app.db import get_db
from app.routers.utils.dependencies import require_inbound_token
from app.schemas.outbound import SendMessageRequest

router = APIRouter(prefix="/outbound", tags=["outbound"])


@router.post("", response_model=dict[str, Any])
async def send_outbound(
    body: SendMessageRequest,
    _authorized: None = Depends(require_inbound_token),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """
    Send a text, image or audio message to a participant.
    Return {"ok": True, "to", "type", "message_id"}.
    """
    return await SendOutboundCommand(db).execute(body)
