import logging
import os
import smtplib
from email.message import EmailMessage
from html import escape

from .errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

EMAIL_OUTBOX: list[tuple[str, str, str]] = []
PUBLIC_BASE_URL = os.getenv("PUBLIC_BASE_URL", "http://localhost:3000")


def send_email(to_email: str, subject: str, html_body: str):
    """Send one HTML email. Raises ``UpstreamUnavailable`` when the relay fails."""

    if os.getenv("TESTING") == "1":
        EMAIL_OUTBOX.append((to_email, subject, html_body))
        return
    server = os.getenv("SMTP_SERVER")
    if not server:
        logger.warning("SMTP_SERVER not configured - email to %s not sent", to_email)
        return
    from_addr = os.getenv("EMAIL_FROM", "noreply@example.com")
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = from_addr
    msg["To"] = to_email
    msg.set_content(subject)
    msg.add_alternative(html_body, subtype="html")
    try:
        with smtplib.SMTP(server, timeout=10) as s:
            s.send_message(msg)
    except (smtplib.SMTPException, OSError) as exc:
        raise UpstreamUnavailable(f"Email delivery failed: {exc}") from exc


def deliver_email(to_email: str, subject: str, html_body: str) -> bool:
    """Best-effort wrapper: log and report failure instead of raising."""

    try:
        send_email(to_email, subject, html_body)
    except UpstreamUnavailable:
        logger.warning("Email to %s failed", to_email, exc_info=True)
        return False
    return True


def asset_url(project_id, asset_id) -> str:
    return f"{PUBLIC_BASE_URL}/projects/{project_id}/assets/{asset_id}"


def review_url(token: str) -> str:
    return f"{PUBLIC_BASE_URL}/review/{token}"


def approval_request_email(asset_title: str, project_name: str, url: str, role_label: str | None = None):
    role = f"<p><strong>Gate:</strong> {escape(role_label)}</p>" if role_label else ""
    return (
        f"Approval Needed: {asset_title}",
        "<h2>Approval Requested</h2>"
        "<p>A new asset requires your approval:</p>"
        f"<p><strong>Asset:</strong> {escape(asset_title)}</p>"
        f"<p><strong>Project:</strong> {escape(project_name)}</p>"
        f"{role}"
        f'<p><a href="{url}">Review Now</a></p>',
    )


def review_invitation_email(asset_title: str, inviter: str, url: str, permission: str):
    return (
        f"{inviter} shared {asset_title} for review",
        "<h2>You're invited to review</h2>"
        f"<p>{escape(inviter)} invited you to {escape(permission)} "
        f"<strong>{escape(asset_title)}</strong>.</p>"
        f'<p><a href="{url}">Open review</a></p>',
    )


def notification_email(title: str, body: str, url: str):
    return (
        title,
        f"<h2>{escape(title)}</h2>"
        f"<p>{escape(body)}</p>"
        f'<p><a href="{url}">View</a></p>',
    )


def send_daily_digest(db):
    """Email one digest of unread notifications to users who opted into digests."""

    from datetime import datetime, timezone
    from . import models

    now = datetime.now(timezone.utc)
    rows = (
        db.query(models.NotificationPreference)
        .filter(
            models.NotificationPreference.email_enabled.is_(True),
            models.NotificationPreference.email_frequency == "digest",
        )
        .all()
    )
    event_types_by_user: dict = {}
    for pref in rows:
        event_types_by_user.setdefault(pref.user_id, set()).add(pref.event_type)

    sent = 0
    for user_id, event_types in event_types_by_user.items():
        user = db.get(models.User, user_id)
        if user is None or not user.email:
            continue
        query = db.query(models.Notification).filter(
            models.Notification.user_id == user.id,
            models.Notification.is_read.is_(False),
            models.Notification.event_type.in_(list(event_types)),
        )
        if user.last_digest is not None:
            query = query.filter(models.Notification.created_at > user.last_digest)
        notifs = query.order_by(models.Notification.created_at.asc()).all()
        if not notifs:
            continue
        content = "".join(f"<li>{escape(n.title)}: {escape(n.body or '')}</li>" for n in notifs)
        if deliver_email(user.email, "Review Notification Digest", f"<ul>{content}</ul>"):
            user.last_digest = now
            sent += 1
    db.commit()
    return sent
