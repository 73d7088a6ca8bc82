"""
Dispatch of conversation state-change notifications.

Dispatch only enqueues; delivery happens in ``notify_event_task`` on a Celery
worker, decoupled from the request that changed the state.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from kombu.exceptions import OperationalError as BrokerError

from app.config import get_settings
from app.tasks.notify_task import notify_event_task

logger = logging.getLogger(__name__)

EVENT_CONVERSATION_CLOSED = "conversation_closed"
EVENT_BOT_STATUS_CHANGED = "bot_status_changed"
NOTIFICATION_SOURCE = "meta-inbox"


class NotificationService:
    def dispatch(self, event: str, **data: Any) -> bool:
        """
        Enqueue a notification. Returns False when skipped (no webhook
        configured) or when the broker refused it; never raises.
        """
        if not get_settings().notification_webhook_url:
            logger.debug("Notification webhook not configured, skipping %s", event)
            return False

        payload = {
            "event": event,
            **data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "source": NOTIFICATION_SOURCE,
        }
        try:
            notify_event_task.delay(payload)
        except BrokerError as e:
            logger.error("Could not enqueue notification %s: %s", event, e)
            return False
        logger.info("Notification %s enqueued", event)
        return True
