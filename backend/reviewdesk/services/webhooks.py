"""Team webhooks: registration, signed delivery of domain events and the delivery log."""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import os
import secrets
from datetime import datetime, timezone
from typing import Any, Iterable
from urllib.parse import urlparse
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from .. import models, tasks
from ..audit import log_activity
from ..errors import NotFound, ValidationError

# purpose: outbound integration hooks per team; delivery is best-effort and every attempt is logged
# status: active

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT_SECONDS = float(os.getenv("WEBHOOK_TIMEOUT_SECONDS", "10"))
SIGNATURE_HEADER = "X-ReviewDesk-Signature"
EVENT_HEADER = "X-ReviewDesk-Event"


def generate_secret() -> str:
    return f"whsec_{secrets.token_urlsafe(30)}"


def sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _validate_url(url: str) -> str:
    parsed = urlparse(url or "")
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValidationError("Invalid URL")
    return url


def _validate_events(events: Iterable[str] | None) -> list[str]:
    from .notifications import EVENT_TYPES

    chosen = list(dict.fromkeys(events or []))
    unknown = [e for e in chosen if e not in EVENT_TYPES]
    if unknown:
        raise ValidationError(f"Unknown webhook events: {', '.join(unknown)}")
    return chosen


def create_webhook(
    db: Session,
    team_id: UUID,
    actor: models.User,
    url: str,
    events: Iterable[str] | None = None,
) -> models.Webhook:
    webhook = models.Webhook(
        team_id=team_id,
        url=_validate_url(url),
        events=_validate_events(events),
        secret=generate_secret(),
        created_by=actor.id,
    )
    db.add(webhook)
    db.commit()
    db.refresh(webhook)
    log_activity(
        db,
        actor.id,
        actor.full_name or actor.email,
        "webhook_created",
        team_id=team_id,
        details={"url": webhook.url, "events": webhook.events},
    )
    return webhook


def list_webhooks(db: Session, team_id: UUID) -> list[models.Webhook]:
    return (
        db.query(models.Webhook)
        .filter(models.Webhook.team_id == team_id)
        .order_by(models.Webhook.created_at.desc())
        .all()
    )


def get_webhook(db: Session, webhook_id: UUID) -> models.Webhook:
    webhook = db.get(models.Webhook, webhook_id)
    if webhook is None:
        raise NotFound("Webhook not found")
    return webhook


def update_webhook(
    db: Session,
    webhook: models.Webhook,
    url: str | None = None,
    events: Iterable[str] | None = None,
    active: bool | None = None,
) -> models.Webhook:
    if url is None and events is None and active is None:
        raise ValidationError("No fields to update")
    if url is not None:
        webhook.url = _validate_url(url)
    if events is not None:
        webhook.events = _validate_events(events)
    if active is not None:
        webhook.active = active
    db.commit()
    db.refresh(webhook)
    return webhook


def delete_webhook(db: Session, webhook: models.Webhook, actor: models.User) -> None:
    team_id, url = webhook.team_id, webhook.url
    db.delete(webhook)
    db.commit()
    log_activity(
        db,
        actor.id,
        actor.full_name or actor.email,
        "webhook_deleted",
        team_id=team_id,
        details={"url": url},
    )


def list_deliveries(db: Session, webhook_id: UUID, limit: int = 50) -> list[models.WebhookDelivery]:
    return (
        db.query(models.WebhookDelivery)
        .filter(models.WebhookDelivery.webhook_id == webhook_id)
        .order_by(models.WebhookDelivery.delivered_at.desc())
        .limit(limit)
        .all()
    )


def post_event(url: str, secret: str, event: str, payload: dict[str, Any]) -> int:
    """POST ``payload`` to ``url``. Returns the HTTP status, or 0 when the endpoint was unreachable."""

    body = json.dumps(payload, default=str).encode()
    headers = {
        "Content-Type": "application/json",
        SIGNATURE_HEADER: sign(secret, body),
        EVENT_HEADER: event,
    }
    try:
        resp = requests.post(url, data=body, headers=headers, timeout=WEBHOOK_TIMEOUT_SECONDS)
    except requests.RequestException as exc:
        logger.warning("Webhook delivery to %s failed: %s", url, exc)
        return 0
    return resp.status_code


def deliver(db: Session, webhook: models.Webhook, event: str, payload: dict[str, Any]) -> models.WebhookDelivery:
    code = post_event(webhook.url, webhook.secret, event, payload)
    delivery = models.WebhookDelivery(
        webhook_id=webhook.id,
        event=event,
        payload=json.loads(json.dumps(payload, default=str)),
        response_code=code,
        delivered_at=datetime.now(timezone.utc),
    )
    db.add(delivery)
    db.commit()
    db.refresh(delivery)
    return delivery


def send_test(db: Session, webhook: models.Webhook) -> models.WebhookDelivery:
    payload = {
        "event": "test",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "team_id": str(webhook.team_id),
        "data": {"message": "This is a test webhook from ReviewDesk"},
    }
    return deliver(db, webhook, "test", payload)


def subscribers(db: Session, team_id: UUID, event_type: str) -> list[models.Webhook]:
    hooks = (
        db.query(models.Webhook)
        .filter(models.Webhook.team_id == team_id, models.Webhook.active.is_(True))
        .all()
    )
    return [h for h in hooks if not h.events or event_type in h.events]


def fan_out(
    db: Session,
    event_type: str,
    project_id: UUID | None,
    data: dict[str, Any],
) -> int:
    """Queue ``event_type`` for every subscribed webhook of the project's team."""

    if project_id is None:
        return 0
    project = db.get(models.Project, project_id)
    if project is None or project.team_id is None:
        return 0
    hooks = subscribers(db, project.team_id, event_type)
    payload = {
        "event": event_type,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "team_id": str(project.team_id),
        "data": data,
    }
    queued = 0
    for hook in hooks:
        if tasks.enqueue_webhook(str(hook.id), event_type, payload):
            queued += 1
    return queued
