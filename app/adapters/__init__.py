"""Platform adapters for chat integrations."""

from app.adapters.base import BasePlatformAdapter, ResolvedMedia
from app.adapters.whatsapp import WhatsAppCloudAdapter

__all__ = ["BasePlatformAdapter", "ResolvedMedia", "WhatsAppCloudAdapter"]
