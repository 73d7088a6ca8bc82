"""Media proxy: stream WhatsApp media to the dashboard without exposing the token."""

from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import Response

from app.commands.media.fetch_media_command import FetchMediaCommand
from app.config import get_settings

router = APIRouter(prefix="/media", tags=["media"])


@router.get("/{media_id}")
async def get_media(media_id: str) -> Response:
    """Return media bytes with their resolved (or transcoded) content type."""
    media = await FetchMediaCommand().execute(media_id)
    max_age = get_settings().media_cache_max_age
    return Response(
        content=media.content,
        media_type=media.content_type,
        headers={"Cache-Control": f"private, max-age={max_age}"},
    )
