"""Webhook command handlers."""

from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.commands.webhooks.whatsapp_command import (
    WhatsAppVerifyCommand,
    WhatsAppWebhookCommand,
)

__all__ = ["BaseWhatsAppCommand", "WhatsAppVerifyCommand", "WhatsAppWebhookCommand"]
