"""Media retrieval: resolve and download, then normalize audio when needed."""

from __future__ import annotations

import logging

from app.adapters.base import BasePlatformAdapter, ResolvedMedia
from app.exceptions import TranscodeError
from app.infra.logging_config import LoggerAdapter
from app.services.audio_transcoder import (
    CANONICAL_AUDIO_TYPE,
    AudioTranscoder,
    needs_transcoding,
)

logger = logging.getLogger(__name__)


class MediaService:
    def __init__(
        self, adapter: BasePlatformAdapter, transcoder: AudioTranscoder
    ) -> None:
        self.adapter = adapter
        self.transcoder = transcoder

    async def get_media(self, media_id: str) -> ResolvedMedia:
        """
        Fetch media bytes for ``media_id``.

        Audio in a non-canonical encoding is transcoded; if that fails the
        original bytes and type are returned. MediaResolutionError from the
        adapter propagates.
        """
        log = LoggerAdapter(logger, {"media_id": media_id})
        media = await self.adapter.fetch_media(media_id)
        if not needs_transcoding(media.content_type):
            return media

        try:
            content = await self.transcoder.transcode(media.content)
        except TranscodeError as e:
            log.warning(
                "Audio transcode failed, serving original %s",
                media.content_type,
                context={"error": e.message},
            )
            return media

        log.info(
            "Transcoded %s to %s", media.content_type, CANONICAL_AUDIO_TYPE
        )
        return ResolvedMedia(
            content=content,
            content_type=CANONICAL_AUDIO_TYPE,
            declared_mime_type=media.declared_mime_type,
        )
