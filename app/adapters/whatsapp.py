"""
WhatsApp Cloud API adapter.

Parses webhook deliveries, sends messages through ``/{phone_number_id}/messages``
and downloads media. Media download URLs returned by the Graph API are short
lived and may carry a stale ``access_token``; the first attempt replaces it
with the current credential, and a single retry moves the credential into
the Authorization header for endpoints that refuse query credentials.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional
from urllib.parse import quote

import httpx

from app.adapters.base import BasePlatformAdapter, ResolvedMedia
from app.core.normalizer import NormalizedEntry, normalize_payload
from app.core.signature import verify_signature
from app.exceptions import (
    ConfigurationError,
    MediaResolutionError,
    PayloadValidationError,
    UpstreamProviderError,
)
from app.schemas.outbound import OutboundMessage, OutboundSendResult, OutboundType

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"
ACCESS_TOKEN_PARAM = "access_token"
MESSAGING_PRODUCT = "whatsapp"

_NON_DIGITS = re.compile(r"\D")


def normalize_recipient(value: str) -> str:
    """Strip everything but digits from a phone number / wa_id."""
    digits = _NON_DIGITS.sub("", value or "")
    if not digits:
        raise PayloadValidationError("Invalid destination number")
    return digits


def primary_content_type(value: Optional[str]) -> Optional[str]:
    """'audio/ogg; codecs=opus' -> 'audio/ogg'."""
    if not value:
        return None
    primary = value.split(";", 1)[0].strip().lower()
    return primary or None


def build_message_payload(outbound: OutboundMessage, to: str) -> dict[str, Any]:
    """Graph API body for a text, image or audio message."""
    base: dict[str, Any] = {
        "messaging_product": MESSAGING_PRODUCT,
        "recipient_type": "individual",
        "to": to,
    }
    if outbound.type == OutboundType.TEXT:
        text = (outbound.text or "").strip()
        if not text:
            raise PayloadValidationError("message/text is required for type=text")
        return {
            **base,
            "type": "text",
            "text": {"body": text, "preview_url": False},
        }

    media_id = (outbound.media_id or "").strip()
    link = (outbound.link or "").strip()
    if not media_id and not link:
        raise PayloadValidationError(
            f"media_id or a media URL is required for type={outbound.type.value}"
        )
    media: dict[str, Any] = {"id": media_id} if media_id else {"link": link}
    if outbound.type == OutboundType.IMAGE:
        caption = (outbound.caption or "").strip()
        if caption:
            media["caption"] = caption
    return {**base, "type": outbound.type.value, outbound.type.value: media}


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _provider_error_message(data: dict[str, Any], default: str) -> str:
    error = data.get("error")
    if isinstance(error, dict) and error.get("message"):
        return str(error["message"])
    return default


class WhatsAppCloudAdapter(BasePlatformAdapter):
    """Meta WhatsApp Cloud API: webhooks, text/media sends, media download."""

    def __init__(
        self,
        access_token: Optional[str],
        phone_number_id: Optional[str] = None,
        app_secret: Optional[str] = None,
        api_url: str = "https://graph.facebook.com/v21.0",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._access_token = access_token
        self._phone_number_id = phone_number_id
        self._app_secret = app_secret
        self._api_url = api_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            transport=self._transport,
            follow_redirects=True,
        )

    def _require_token(self) -> str:
        if not self._access_token:
            raise ConfigurationError("META_ACCESS_TOKEN is not configured")
        return self._access_token

    def _require_phone_number_id(self) -> str:
        if not self._phone_number_id:
            raise ConfigurationError("META_PHONE_NUMBER_ID is not configured")
        return self._phone_number_id

    def verify_webhook(self, body: bytes, signature_header: Optional[str]) -> bool:
        """Validate X-Hub-Signature-256 if an app secret is configured."""
        return verify_signature(body, signature_header, self._app_secret)

    def parse_webhook(self, raw_payload: Any) -> list[NormalizedEntry]:
        return normalize_payload(raw_payload)

    async def send(self, outbound: OutboundMessage) -> OutboundSendResult:
        """Send via the Graph API. Raises UpstreamProviderError on non-2xx."""
        token = self._require_token()
        phone_number_id = self._require_phone_number_id()
        to = normalize_recipient(outbound.to)
        payload = build_message_payload(outbound, to)

        url = f"{self._api_url}/{quote(phone_number_id, safe='')}/messages"
        try:
            async with self._client() as client:
                response = await client.post(
                    url,
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.HTTPError as e:
            logger.error("WhatsApp send to %s failed: %s", to, e)
            raise UpstreamProviderError(f"Could not reach provider: {e}") from e

        data = _json_or_empty(response)
        if not response.is_success:
            message = _provider_error_message(data, "Error sending message to provider")
            logger.warning(
                "WhatsApp send to %s rejected: HTTP %s %s",
                to,
                response.status_code,
                message,
            )
            raise UpstreamProviderError(message, response.status_code)

        messages = data.get("messages") or []
        first = messages[0] if messages and isinstance(messages[0], dict) else {}
        message_id = first.get("id")
        return OutboundSendResult(
            platform_message_id=str(message_id) if message_id else None,
            raw=data,
        )

    async def fetch_media(self, media_id: str) -> ResolvedMedia:
        """Resolve the download URL for ``media_id`` and fetch its bytes."""
        token = self._require_token()
        async with self._client() as client:
            info = await self._lookup_media(client, media_id, token)
            response = await self._download(client, info["url"], token)

        declared = info.get("mime_type")
        content_type = (
            primary_content_type(response.headers.get("content-type"))
            or primary_content_type(declared)
            or DEFAULT_CONTENT_TYPE
        )
        return ResolvedMedia(
            content=response.content,
            content_type=content_type,
            declared_mime_type=declared,
        )

    async def _lookup_media(
        self, client: httpx.AsyncClient, media_id: str, token: str
    ) -> dict[str, Any]:
        url = f"{self._api_url}/{quote(media_id, safe='')}"
        try:
            response = await client.get(
                url,
                params={"fields": "url,mime_type"},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            raise MediaResolutionError(f"Could not reach provider: {e}") from e

        data = _json_or_empty(response)
        if not response.is_success or not data.get("url"):
            message = _provider_error_message(
                data, "Could not resolve media URL from provider"
            )
            logger.warning(
                "Media lookup for %s failed: HTTP %s %s",
                media_id,
                response.status_code,
                message,
            )
            status_code = response.status_code if not response.is_success else 502
            raise MediaResolutionError(message, status_code, response.text)
        return data

    async def _download(
        self, client: httpx.AsyncClient, url: str, token: str
    ) -> httpx.Response:
        resolved = httpx.URL(url)

        query_url = resolved.copy_set_param(ACCESS_TOKEN_PARAM, token)
        try:
            response = await client.get(query_url)
            if response.is_success:
                return response
            logger.info(
                "Media download with query credential returned HTTP %s, retrying with header",
                response.status_code,
            )
        except httpx.HTTPError as e:
            logger.info("Media download with query credential failed (%s), retrying", e)

        header_url = resolved.copy_remove_param(ACCESS_TOKEN_PARAM)
        try:
            response = await client.get(
                header_url, headers={"Authorization": f"Bearer {token}"}
            )
        except httpx.HTTPError as e:
            raise MediaResolutionError(f"Media download failed: {e}") from e

        if not response.is_success:
            body = response.text
            raise MediaResolutionError(
                body or "Could not download media from provider",
                response.status_code,
                body,
            )
        return response
