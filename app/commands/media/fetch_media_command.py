"""
Command to serve a WhatsApp media object.

Resolves and downloads the media through the adapter, transcoding audio to
the canonical encoding when needed.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException

from app.adapters.base import ResolvedMedia
from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.config import get_settings
from app.exceptions import ConfigurationError, MediaResolutionError
from app.services.audio_transcoder import AudioTranscoder
from app.services.media_service import MediaService


class FetchMediaCommand(BaseWhatsAppCommand):
    """Command returning the bytes and content type for one media id."""

    def __init__(self) -> None:
        settings = get_settings()
        self.media_service = MediaService(
            adapter=self.get_whatsapp_adapter(),
            transcoder=AudioTranscoder(
                ffmpeg_path=settings.ffmpeg_path,
                timeout=settings.transcode_timeout_seconds,
            ),
        )
        self.logger = logging.getLogger(__name__)

    async def execute(self, media_id: str) -> ResolvedMedia:
        """
        Raises:
            HTTPException: 400 for an empty id, 500 when the access token is
                not configured, the provider's status when resolution or both
                download attempts fail.
        """
        media_id = (media_id or "").strip()
        if not media_id:
            raise HTTPException(status_code=400, detail="media_id is required")
        try:
            return await self.media_service.get_media(media_id)
        except ConfigurationError as e:
            raise self.configuration_error(e) from e
        except MediaResolutionError as e:
            self.logger.warning(
                "Media %s unavailable: HTTP %s %s", media_id, e.status_code, e.message
            )
            raise HTTPException(status_code=e.status_code, detail=e.message) from e
