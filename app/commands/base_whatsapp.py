"""
Base command for WhatsApp-related operations.

Provides a shared way to obtain a configured WhatsAppCloudAdapter for use
across webhook, outbound and media commands.
"""

from __future__ import annotations

from fastapi import HTTPException

from app.adapters.whatsapp import WhatsAppCloudAdapter
from app.config import get_settings
from app.exceptions import ConfigurationError


class BaseWhatsAppCommand:
    """
    Base for WhatsApp-related commands.
    Provides a shared way to obtain a configured WhatsAppCloudAdapter.
    """

    @staticmethod
    def get_whatsapp_adapter() -> WhatsAppCloudAdapter:
        """Adapter built from current settings. Missing credentials fail at first use."""
        settings = get_settings()
        return WhatsAppCloudAdapter(
            access_token=settings.meta_access_token,
            phone_number_id=settings.meta_phone_number_id,
            app_secret=settings.meta_app_secret,
            api_url=settings.graph_api_url,
            timeout=settings.http_timeout_seconds,
        )

    @staticmethod
    def configuration_error(error: ConfigurationError) -> HTTPException:
        return HTTPException(status_code=500, detail=error.message)
