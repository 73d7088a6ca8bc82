"""Tests for NotificationService."""

from unittest.mock import patch

from kombu.exceptions import OperationalError

from app.services.notification_service import (
    EVENT_CONVERSATION_CLOSED,
    NotificationService,
)


@patch("app.services.notification_service.notify_event_task")
def test_dispatch_skipped_without_webhook(mock_task):
    assert NotificationService().dispatch(EVENT_CONVERSATION_CLOSED, participant_id="521") is False
    mock_task.delay.assert_not_called()


@patch("app.services.notification_service.notify_event_task")
def test_dispatch_enqueues_payload(mock_task, monkeypatch):
    monkeypatch.setenv("NOTIFICATION_WEBHOOK_URL", "https://hooks.test/inbox")
    assert NotificationService().dispatch(EVENT_CONVERSATION_CLOSED, participant_id="521") is True

    (payload,) = mock_task.delay.call_args.args
    assert payload["event"] == "conversation_closed"
    assert payload["participant_id"] == "521"
    assert payload["source"] == "meta-inbox"
    assert "timestamp" in payload


@patch("app.services.notification_service.notify_event_task")
def test_dispatch_broker_down(mock_task, monkeypatch):
    monkeypatch.setenv("N8N_WEBHOOK_URL", "https://hooks.test/inbox")
    mock_task.delay.side_effect = OperationalError("redis unreachable")
    assert NotificationService().dispatch(EVENT_CONVERSATION_CLOSED, participant_id="521") is False
