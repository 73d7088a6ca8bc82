"""Celery task delivering conversation state-change notifications."""

from __future__ import annotations

from typing import Any, Dict

import httpx

from app.config import get_settings
from app.infra.celery_app import celery_app
from app.infra.logging_config import get_logger

logger = get_logger("notify_task")


@celery_app.task(name="app.tasks.notify_task.notify_event_task")
def notify_event_task(payload: Dict[str, Any]) -> bool:
    """
    POST ``payload`` to the configured notification webhook.

    Single attempt with a bounded timeout. Failures are logged and reported
    as False; they never propagate to the request that triggered them.
    """
    settings = get_settings()
    url = settings.notification_webhook_url
    if not url:
        logger.info("Notification webhook not configured, dropping %s", payload.get("event"))
        return False

    try:
        with httpx.Client(timeout=settings.http_timeout_seconds) as client:
            response = client.post(url, json=payload)
        response.raise_for_status()
    except httpx.HTTPError:
        logger.exception("Notification %s failed", payload.get("event"))
        return False

    logger.info("Notification %s delivered", payload.get("event"))
    return True
