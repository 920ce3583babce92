"""Notification fan-out, read state and delivery preferences."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import case, update
from sqlalchemy.orm import Session

from .. import models, notify, pubsub, rbac, tasks
from ..errors import NotFound, ValidationError
from . import webhooks

# purpose: turn domain events into per-user notification rows, emails and push events without failing the caller
# status: active

logger = logging.getLogger(__name__)

EVENT_TYPES = (
    "comment_added",
    "version_uploaded",
    "approval_requested",
    "approval_decided",
    "share_link_viewed",
)
EMAIL_FREQUENCIES = ("immediate", "digest")
LIST_LIMIT = 50


@dataclass
class DomainEvent:
    type: str
    title: str
    body: str = ""
    actor_id: UUID | None = None
    actor_name: str | None = None
    project_id: UUID | None = None
    asset_id: UUID | None = None
    affected_user_ids: list[UUID] = field(default_factory=list)
    data: dict[str, Any] = field(default_factory=dict)
    # add the asset's owner and watchers to affected_user_ids at dispatch time
    include_asset_audience: bool = False


def asset_audience(
    db: Session,
    asset: models.Asset,
    exclude: UUID | None = None,
    include_watchers: bool = True,
) -> list[UUID]:
    """Project owner plus asset watchers, de-duplicated, without ``exclude``."""

    recipients: list[UUID] = []
    project = asset.project or db.get(models.Project, asset.project_id)
    if project is not None:
        recipients.append(project.owner_id)
    if include_watchers:
        watchers = (
            db.query(models.AssetWatcher.user_id)
            .filter(models.AssetWatcher.asset_id == asset.id)
            .all()
        )
        recipients.extend(row[0] for row in watchers)
    unique: list[UUID] = []
    for user_id in recipients:
        if user_id is not None and user_id != exclude and user_id not in unique:
            unique.append(user_id)
    return unique


def get_preference(db: Session, user_id: UUID, event_type: str) -> models.NotificationPreference | None:
    return (
        db.query(models.NotificationPreference)
        .filter(
            models.NotificationPreference.user_id == user_id,
            models.NotificationPreference.event_type == event_type,
        )
        .first()
    )


def _may_see(db: Session, user: models.User, asset_id: UUID | None) -> bool:
    if asset_id is None:
        return True
    asset = db.get(models.Asset, asset_id)
    if asset is None:
        return False
    return bool(rbac.authorize_asset(db, rbac.UserPrincipal(user), asset, "asset.view"))


def _action_url(event: DomainEvent) -> str | None:
    if event.project_id and event.asset_id:
        return notify.asset_url(event.project_id, event.asset_id)
    return event.data.get("action_url")


def _deliver_to(db: Session, user: models.User, event: DomainEvent) -> models.Notification | None:
    pref = get_preference(db, user.id, event.type)
    in_app = pref.in_app_enabled if pref else True
    email = pref.email_enabled if pref else True
    frequency = pref.email_frequency if pref else "immediate"
    url = _action_url(event)

    digest_only = not in_app and email and frequency == "digest"
    notification = None
    if in_app or digest_only:
        data = dict(event.data)
        data.update(
            {
                "project_id": str(event.project_id) if event.project_id else None,
                "asset_id": str(event.asset_id) if event.asset_id else None,
                "actor_name": event.actor_name,
                "action_url": url,
            }
        )
        notification = models.Notification(
            user_id=user.id,
            event_type=event.type,
            title=event.title,
            body=event.body,
            data=data,
            delivered_in_app=in_app,
        )
        db.add(notification)
        if in_app:
            db.execute(
                update(models.User)
                .where(models.User.id == user.id)
                .values(unread_notification_count=models.User.unread_notification_count + 1)
                .execution_options(synchronize_session=False)
            )
        db.commit()
        db.refresh(notification)

    if email and frequency == "immediate" and user.email:
        subject, html = notify.notification_email(event.title, event.body, url or notify.PUBLIC_BASE_URL)
        tasks.enqueue_email(user.email, subject, html)
    return notification if in_app else None


def _recipients(db: Session, event: DomainEvent) -> list[UUID]:
    recipients = list(event.affected_user_ids)
    if event.include_asset_audience and event.asset_id is not None:
        asset = db.get(models.Asset, event.asset_id)
        if asset is not None:
            recipients.extend(asset_audience(db, asset, exclude=event.actor_id))
    return recipients


def _webhook_data(event: DomainEvent) -> dict[str, Any]:
    data = {
        "title": event.title,
        "body": event.body,
        "actor_name": event.actor_name,
        "project_id": str(event.project_id) if event.project_id else None,
        "asset_id": str(event.asset_id) if event.asset_id else None,
    }
    data.update(event.data)
    return data


def dispatch(db: Session, event: DomainEvent) -> list[models.Notification]:
    """Fan ``event`` out to its affected users and the team's webhooks.

    Never raises: a failure for one recipient is logged and the rest still
    receive theirs. Returns the in-app rows that were stored so the caller can
    push them after the response-producing commit.
    """

    try:
        recipients = _recipients(db, event)
    except Exception:
        db.rollback()
        logger.exception("Could not resolve recipients for %s", event.type)
        recipients = list(event.affected_user_ids)

    delivered: list[models.Notification] = []
    for user_id in dict.fromkeys(recipients):
        if user_id is None or user_id == event.actor_id:
            continue
        try:
            user = db.get(models.User, user_id)
            if user is None or not user.is_active:
                continue
            if not _may_see(db, user, event.asset_id):
                continue
            notification = _deliver_to(db, user, event)
        except Exception:
            db.rollback()
            logger.exception("Notification %s for user %s failed", event.type, user_id)
            continue
        if notification is not None:
            delivered.append(notification)

    try:
        webhooks.fan_out(db, event.type, event.project_id, _webhook_data(event))
    except Exception:
        db.rollback()
        logger.exception("Webhook fan-out for %s failed", event.type)
    return delivered


async def push(notifications: Iterable[models.Notification]) -> None:
    """Publish stored notifications on each recipient's channel. Best effort."""

    for notification in notifications:
        await pubsub.publish_notification_event(
            notification.user_id,
            {
                "type": "notification",
                "id": notification.id,
                "event_type": notification.event_type,
                "title": notification.title,
                "body": notification.body,
                "created_at": notification.created_at,
            },
        )


def list_notifications(db: Session, user_id: UUID, unread_only: bool = False, limit: int = LIST_LIMIT):
    query = db.query(models.Notification).filter(
        models.Notification.user_id == user_id,
        models.Notification.delivered_in_app.is_(True),
    )
    if unread_only:
        query = query.filter(models.Notification.is_read.is_(False))
    return query.order_by(models.Notification.created_at.desc()).limit(limit).all()


def mark_read(db: Session, user_id: UUID, notification_id: UUID) -> models.Notification:
    """Flip one notification to read. The unread counter only drops when the flip happened here."""

    notification = db.get(models.Notification, notification_id)
    if notification is None or notification.user_id != user_id or not notification.delivered_in_app:
        raise NotFound("Notification not found")
    flipped = db.execute(
        update(models.Notification)
        .where(models.Notification.id == notification_id, models.Notification.is_read.is_(False))
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    ).rowcount
    if flipped:
        db.execute(
            update(models.User)
            .where(models.User.id == user_id, models.User.unread_notification_count > 0)
            .values(unread_notification_count=models.User.unread_notification_count - 1)
            .execution_options(synchronize_session=False)
        )
    db.commit()
    db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: UUID) -> int:
    """Flip every unread inbox row. The counter drops by the number flipped, never below zero."""

    flipped = db.execute(
        update(models.Notification)
        .where(
            models.Notification.user_id == user_id,
            models.Notification.delivered_in_app.is_(True),
            models.Notification.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    ).rowcount
    if flipped:
        counter = models.User.unread_notification_count
        db.execute(
            update(models.User)
            .where(models.User.id == user_id)
            .values(unread_notification_count=case((counter > flipped, counter - flipped), else_=0))
            .execution_options(synchronize_session=False)
        )
    db.commit()
    return flipped


def unread_count(db: Session, user_id: UUID) -> int:
    user = db.get(models.User, user_id)
    if user is None:
        raise NotFound("User not found")
    db.refresh(user, ["unread_notification_count"])
    return user.unread_notification_count or 0


def list_preferences(db: Session, user_id: UUID) -> list[dict]:
    """Effective preferences for every event type, defaults filled in where no row exists."""

    stored = {
        pref.event_type: pref
        for pref in db.query(models.NotificationPreference)
        .filter(models.NotificationPreference.user_id == user_id)
        .all()
    }
    result = []
    for event_type in EVENT_TYPES:
        pref = stored.get(event_type)
        result.append(
            {
                "event_type": event_type,
                "in_app_enabled": pref.in_app_enabled if pref else True,
                "email_enabled": pref.email_enabled if pref else True,
                "email_frequency": pref.email_frequency if pref else "immediate",
            }
        )
    return result


def set_preference(
    db: Session,
    user_id: UUID,
    event_type: str,
    in_app_enabled: bool | None = None,
    email_enabled: bool | None = None,
    email_frequency: str | None = None,
) -> models.NotificationPreference:
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"Unknown event type: {event_type}")
    if email_frequency is not None and email_frequency not in EMAIL_FREQUENCIES:
        raise ValidationError("email_frequency must be immediate or digest")
    pref = get_preference(db, user_id, event_type)
    if pref is None:
        pref = models.NotificationPreference(
            user_id=user_id,
            event_type=event_type,
            in_app_enabled=True,
            email_enabled=True,
            email_frequency="immediate",
        )
        db.add(pref)
    if in_app_enabled is not None:
        pref.in_app_enabled = in_app_enabled
    if email_enabled is not None:
        pref.email_enabled = email_enabled
    if email_frequency is not None:
        pref.email_frequency = email_frequency
    db.commit()
    db.refresh(pref)
    return pref
