import logging
import os
from uuid import UUID

from celery import Celery
from celery.schedules import crontab

from .database import session_scope
from . import models, notify

logger = logging.getLogger(__name__)

CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "memory://")
celery_app = Celery("tasks", broker=CELERY_BROKER_URL)
celery_app.conf.task_always_eager = (
    CELERY_BROKER_URL == "memory://" or os.getenv("TESTING") == "1"
)

celery_app.conf.beat_schedule = {
    "notification-digest": {
        "task": "reviewdesk.tasks.send_notification_digest",
        "schedule": crontab(hour=8, minute=0),
    },
}


@celery_app.task(name="reviewdesk.tasks.send_email")
def send_email(to_email: str, subject: str, html_body: str) -> bool:
    return notify.deliver_email(to_email, subject, html_body)


def enqueue_email(to_email: str, subject: str, html_body: str) -> bool:
    """Hand an email to the worker. Never raises; returns whether it was accepted."""

    try:
        if celery_app.conf.task_always_eager:
            return send_email(to_email, subject, html_body)
        send_email.delay(to_email, subject, html_body)
    except Exception:
        logger.exception("Could not enqueue email to %s", to_email)
        return False
    return True


@celery_app.task(name="reviewdesk.tasks.send_notification_digest")
def send_notification_digest() -> int:
    with session_scope() as db:
        sent = notify.send_daily_digest(db)
    logger.info("Sent %d notification digests", sent)
    return sent


@celery_app.task(name="reviewdesk.tasks.deliver_webhook")
def deliver_webhook(webhook_id: str, event: str, payload: dict) -> int:
    from .services import webhooks

    with session_scope() as db:
        hook = db.get(models.Webhook, UUID(webhook_id))
        if hook is None or not hook.active:
            return 0
        delivery = webhooks.deliver(db, hook, event, payload)
        return delivery.response_code


def enqueue_webhook(webhook_id: str, event: str, payload: dict) -> bool:
    """Hand a webhook delivery to the worker. Never raises; returns whether it was accepted."""

    try:
        if celery_app.conf.task_always_eager:
            deliver_webhook(webhook_id, event, payload)
        else:
            deliver_webhook.delay(webhook_id, event, payload)
    except Exception:
        logger.exception("Could not enqueue webhook %s for %s", webhook_id, event)
        return False
    return True
