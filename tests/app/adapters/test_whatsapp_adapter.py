"""Tests for WhatsAppCloudAdapter (Graph API replaced by httpx.MockTransport)."""

import json

import httpx
import pytest

from app.adapters.whatsapp import (
    WhatsAppCloudAdapter,
    build_message_payload,
    normalize_recipient,
    primary_content_type,
)
from app.core.signature import compute_signature
from app.exceptions import (
    ConfigurationError,
    MediaResolutionError,
    PayloadValidationError,
    UpstreamProviderError,
)
from app.schemas.outbound import OutboundMessage, OutboundType

API_URL = "https://graph.test/v21.0"
TOKEN = "current-token"
CDN_URL = "https://cdn.test/media/abc?access_token=stale-token&ext=1"


def make_adapter(handler, **kwargs):
    kwargs.setdefault("access_token", TOKEN)
    kwargs.setdefault("phone_number_id", "PHONE_ID")
    return WhatsAppCloudAdapter(
        api_url=API_URL, transport=httpx.MockTransport(handler), **kwargs
    )


class MediaGraph:
    """Graph lookup + CDN download, recording every request."""

    def __init__(self, cdn_responses, lookup=None):
        self.cdn_responses = list(cdn_responses)
        self.lookup = lookup or httpx.Response(
            200, json={"url": CDN_URL, "mime_type": "audio/ogg; codecs=opus"}
        )
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        if request.url.host == "graph.test":
            return self.lookup
        response = self.cdn_responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def downloads(self):
        return [r for r in self.requests if r.url.host == "cdn.test"]


def test_normalize_recipient():
    assert normalize_recipient("+52 1 (555) 000-1111") == "5215550001111"
    with pytest.raises(PayloadValidationError):
        normalize_recipient("no digits")


def test_primary_content_type():
    assert primary_content_type("audio/ogg; codecs=opus") == "audio/ogg"
    assert primary_content_type("Image/JPEG") == "image/jpeg"
    assert primary_content_type(None) is None
    assert primary_content_type("") is None


def test_build_text_payload():
    payload = build_message_payload(
        OutboundMessage(to="x", type=OutboundType.TEXT, text=" hola "), "521"
    )
    assert payload == {
        "messaging_product": "whatsapp",
        "recipient_type": "individual",
        "to": "521",
        "type": "text",
        "text": {"body": "hola", "preview_url": False},
    }


def test_build_image_payload_prefers_media_id_and_keeps_caption():
    payload = build_message_payload(
        OutboundMessage(
            to="x",
            type=OutboundType.IMAGE,
            media_id="M1",
            link="https://x/img.jpg",
            caption="menu",
        ),
        "521",
    )
    assert payload["type"] == "image"
    assert payload["image"] == {"id": "M1", "caption": "menu"}


def test_build_audio_payload_by_link():
    payload = build_message_payload(
        OutboundMessage(to="x", type=OutboundType.AUDIO, link="https://x/a.mp3"),
        "521",
    )
    assert payload["audio"] == {"link": "https://x/a.mp3"}


def test_build_media_payload_requires_source():
    with pytest.raises(PayloadValidationError):
        build_message_payload(OutboundMessage(to="x", type=OutboundType.IMAGE), "521")


def test_verify_webhook_uses_app_secret():
    adapter = WhatsAppCloudAdapter(access_token=TOKEN, app_secret="s3cret")
    body = b'{"entry":[]}'
    assert adapter.verify_webhook(body, compute_signature("s3cret", body)) is True
    assert adapter.verify_webhook(body, compute_signature("other", body)) is False
    assert adapter.verify_webhook(body, None) is False


@pytest.mark.asyncio
async def test_send_text_success():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(
            200, json={"messages": [{"id": "wamid.sent"}], "contacts": []}
        )

    adapter = make_adapter(handler)
    result = await adapter.send(
        OutboundMessage(to="+52 155 5000 1111", type=OutboundType.TEXT, text="hola")
    )

    assert result.platform_message_id == "wamid.sent"
    request = seen[0]
    assert str(request.url) == f"{API_URL}/PHONE_ID/messages"
    assert request.headers["Authorization"] == f"Bearer {TOKEN}"
    body = json.loads(request.content)
    assert body["to"] == "5215550001111"
    assert body["text"]["body"] == "hola"


@pytest.mark.asyncio
async def test_send_success_without_message_id():
    adapter = make_adapter(lambda request: httpx.Response(200, json={}))
    result = await adapter.send(OutboundMessage(to="521", text="hola"))
    assert result.platform_message_id is None


@pytest.mark.asyncio
async def test_send_provider_error_carries_status_and_message():
    def handler(request):
        return httpx.Response(
            400, json={"error": {"message": "Recipient not in allowed list"}}
        )

    adapter = make_adapter(handler)
    with pytest.raises(UpstreamProviderError) as exc:
        await adapter.send(OutboundMessage(to="521", text="hola"))
    assert exc.value.status_code == 400
    assert exc.value.message == "Recipient not in allowed list"


@pytest.mark.asyncio
async def test_send_transport_error_is_bad_gateway():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    adapter = make_adapter(handler)
    with pytest.raises(UpstreamProviderError) as exc:
        await adapter.send(OutboundMessage(to="521", text="hola"))
    assert exc.value.status_code == 502


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "kwargs", [{"access_token": None}, {"phone_number_id": None}]
)
async def test_send_requires_credentials(kwargs):
    adapter = make_adapter(lambda request: httpx.Response(200, json={}), **kwargs)
    with pytest.raises(ConfigurationError):
        await adapter.send(OutboundMessage(to="521", text="hola"))


@pytest.mark.asyncio
async def test_fetch_media_first_attempt_replaces_stale_token():
    graph = MediaGraph(
        [httpx.Response(200, content=b"OggS", headers={"Content-Type": "audio/ogg"})]
    )
    media = await make_adapter(graph).fetch_media("MEDIA_1")

    assert media.content == b"OggS"
    assert media.content_type == "audio/ogg"
    assert media.declared_mime_type == "audio/ogg; codecs=opus"

    lookup = graph.requests[0]
    assert lookup.url.path == "/v21.0/MEDIA_1"
    assert lookup.url.params["fields"] == "url,mime_type"
    assert lookup.headers["Authorization"] == f"Bearer {TOKEN}"

    (download,) = graph.downloads
    assert download.url.params["access_token"] == TOKEN
    assert download.url.params["ext"] == "1"
    assert "Authorization" not in download.headers


@pytest.mark.asyncio
async def test_fetch_media_retries_with_header_credential():
    graph = MediaGraph(
        [
            httpx.Response(401, text="token in query not allowed"),
            httpx.Response(200, content=b"\xff\xd8", headers={"Content-Type": "image/jpeg"}),
        ]
    )
    media = await make_adapter(graph).fetch_media("MEDIA_1")

    assert media.content == b"\xff\xd8"
    assert media.content_type == "image/jpeg"
    first, second = graph.downloads
    assert first.url.params["access_token"] == TOKEN
    assert "access_token" not in second.url.params
    assert second.url.params["ext"] == "1"
    assert second.headers["Authorization"] == f"Bearer {TOKEN}"


@pytest.mark.asyncio
async def test_fetch_media_retries_after_transport_error():
    graph = MediaGraph(
        [
            httpx.ReadTimeout("slow"),
            httpx.Response(200, content=b"data"),
        ]
    )
    media = await make_adapter(graph).fetch_media("MEDIA_1")
    assert media.content == b"data"
    assert len(graph.downloads) == 2


@pytest.mark.asyncio
async def test_fetch_media_content_type_falls_back_to_declared_then_default():
    graph = MediaGraph([httpx.Response(200, content=b"data")])
    media = await make_adapter(graph).fetch_media("MEDIA_1")
    assert media.content_type == "audio/ogg"

    graph = MediaGraph(
        [httpx.Response(200, content=b"data")],
        lookup=httpx.Response(200, json={"url": CDN_URL}),
    )
    media = await make_adapter(graph).fetch_media("MEDIA_1")
    assert media.content_type == "application/octet-stream"


@pytest.mark.asyncio
async def test_fetch_media_both_attempts_fail():
    graph = MediaGraph(
        [
            httpx.Response(403, text="denied"),
            httpx.Response(404, text="not found"),
        ]
    )
    with pytest.raises(MediaResolutionError) as exc:
        await make_adapter(graph).fetch_media("MEDIA_1")
    assert exc.value.status_code == 404
    assert exc.value.body == "not found"
    assert len(graph.downloads) == 2


@pytest.mark.asyncio
async def test_fetch_media_lookup_failure_not_downloaded():
    graph = MediaGraph(
        [],
        lookup=httpx.Response(
            400, json={"error": {"message": "Unsupported get request"}}
        ),
    )
    with pytest.raises(MediaResolutionError) as exc:
        await make_adapter(graph).fetch_media("BAD")
    assert exc.value.status_code == 400
    assert exc.value.message == "Unsupported get request"
    assert graph.downloads == []


@pytest.mark.asyncio
async def test_fetch_media_lookup_without_url_is_bad_gateway():
    graph = MediaGraph([], lookup=httpx.Response(200, json={"id": "MEDIA_1"}))
    with pytest.raises(MediaResolutionError) as exc:
        await make_adapter(graph).fetch_media("MEDIA_1")
    assert exc.value.status_code == 502


@pytest.mark.asyncio
async def test_fetch_media_requires_token():
    adapter = make_adapter(MediaGraph([]), access_token=None)
    with pytest.raises(ConfigurationError):
        await adapter.fetch_media("MEDIA_1")
