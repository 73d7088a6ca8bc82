"""Celery application used for fire-and-forget background work."""

from celery import Celery

from app.config import get_settings

settings = get_settings()

celery_app = Celery(
    "meta_inbox",
    broker=settings.celery_broker_url,
    include=["app.tasks.notify_task"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_ignore_result=True,
    timezone="UTC",
    enable_utc=True,
    broker_connection_retry_on_startup=True,
    task_always_eager=settings.is_test,
)
