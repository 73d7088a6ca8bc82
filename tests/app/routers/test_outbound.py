"""Tests for outbound API."""

import json
from unittest.mock import patch

import httpx
import pytest
from fastapi.testclient import TestClient

from app.adapters.whatsapp import WhatsAppCloudAdapter
from app.commands.base_whatsapp import BaseWhatsAppCommand
from app.models.conversation import Conversation
from app.models.message import Message


class GraphStub:
    def __init__(self, response):
        self.response = response
        self.requests = []

    def __call__(self, request):
        self.requests.append(request)
        return self.response


@pytest.fixture
def graph():
    return GraphStub(httpx.Response(200, json={"messages": [{"id": "wamid.out.1"}]}))


@pytest.fixture
def whatsapp_adapter(graph):
    adapter = WhatsAppCloudAdapter(
        access_token="token",
        phone_number_id="PHONE_ID",
        api_url="https://graph.test/v21.0",
        transport=httpx.MockTransport(graph),
    )
    with patch.object(BaseWhatsAppCommand, "get_whatsapp_adapter", return_value=adapter):
        yield adapter


def test_outbound_text_sent_and_recorded(
    whatsapp_adapter, graph, client_with_db: TestClient, db
):
    resp = client_with_db.post(
        "/outbound",
        json={"to": "+52 1 555 000 1111", "text": "Hola Ana", "nombre": "Ana"},
    )
    assert resp.status_code == 200
    assert resp.json() == {
        "ok": True,
        "to": "5215550001111",
        "type": "text",
        "message_id": "wamid.out.1",
    }

    sent = json.loads(graph.requests[0].content)
    assert sent["to"] == "5215550001111"
    assert sent["text"]["body"] == "Hola Ana"

    conversation = db.get(Conversation, "5215550001111")
    assert conversation.display_name == "Ana"
    assert conversation.last_message == "Hola Ana"
    message = db.query(Message).filter_by(message_id="wamid.out.1").one()
    assert message.direction == "outbound"
    assert message.read_at is not None
    assert message.raw["senderType"] == "ia"


def test_outbound_image_preview_uses_caption(
    whatsapp_adapter, graph, client_with_db: TestClient, db
):
    resp = client_with_db.post(
        "/outbound",
        json={
            "wa_id": "5215550001111",
            "type": "image",
            "imageUrl": "https://cdn.test/menu.jpg",
            "caption": "Today's menu",
            "senderType": "humano",
        },
    )
    assert resp.status_code == 200
    sent = json.loads(graph.requests[0].content)
    assert sent["image"] == {"link": "https://cdn.test/menu.jpg", "caption": "Today's menu"}
    message = db.query(Message).filter_by(message_id="wamid.out.1").one()
    assert message.body == "Today's menu"
    assert message.raw["senderType"] == "humano"


def test_outbound_audio_preview(whatsapp_adapter, client_with_db: TestClient, db):
    resp = client_with_db.post(
        "/outbound",
        json={"wa_id": "5215550001111", "type": "audio", "media_id": "MEDIA_9"},
    )
    assert resp.status_code == 200
    assert db.get(Conversation, "5215550001111").last_message == "Audio"


def test_outbound_provider_without_id_gets_local_id(
    whatsapp_adapter, graph, client_with_db: TestClient, db
):
    graph.response = httpx.Response(200, json={})
    resp = client_with_db.post("/outbound", json={"wa_id": "5215550001111", "message": "hi"})
    assert resp.status_code == 200
    assert resp.json()["message_id"] is None
    stored = db.query(Message).one()
    assert stored.message_id.startswith("local-")


@pytest.mark.parametrize(
    "body",
    [
        {"message": "no recipient"},
        {"wa_id": "5215550001111"},
        {"wa_id": "5215550001111", "message": "   "},
        {"wa_id": "not-a-number", "message": "hi"},
        {"wa_id": "5215550001111", "type": "image"},
    ],
)
def test_outbound_invalid_request(
    body, whatsapp_adapter, graph, client_with_db: TestClient, db
):
    resp = client_with_db.post("/outbound", json=body)
    assert resp.status_code == 400
    assert graph.requests == []
    assert db.query(Message).count() == 0


def test_outbound_provider_rejects(
    whatsapp_adapter, graph, client_with_db: TestClient, db
):
    graph.response = httpx.Response(
        400, json={"error": {"message": "Recipient phone number not in allowed list"}}
    )
    resp = client_with_db.post("/outbound", json={"wa_id": "5215550001111", "text": "hi"})
    assert resp.status_code == 400
    assert "not in allowed list" in resp.json()["detail"]
    assert db.query(Message).count() == 0


def test_outbound_not_configured(client_with_db: TestClient):
    resp = client_with_db.post("/outbound", json={"wa_id": "5215550001111", "text": "hi"})
    assert resp.status_code == 500
    assert "META_ACCESS_TOKEN" in resp.json()["detail"]


def test_outbound_requires_token_when_configured(
    monkeypatch, whatsapp_adapter, client_with_db: TestClient
):
    monkeypatch.setenv("INBOUND_API_TOKEN", "shared")
    body = {"wa_id": "5215550001111", "text": "hi"}

    assert client_with_db.post("/outbound", json=body).status_code == 401
    assert (
        client_with_db.post(
            "/outbound", json=body, headers={"Authorization": "Bearer wrong"}
        ).status_code
        == 401
    )
    assert (
        client_with_db.post(
            "/outbound", json=body, headers={"Authorization": "Bearer shared"}
        ).status_code
        == 200
    )
    assert (
        client_with_db.post(
            "/outbound", json=body, headers={"X-N8N-Token": "shared"}
        ).status_code
        == 200
    )
