"""Share-token issuance, validation, revocation and view analytics."""

from __future__ import annotations

import hashlib
import logging
import os
import secrets
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import or_, update
from sqlalchemy.orm import Session

from .. import models, notify, tasks
from ..errors import Expired, NotFound, ValidationError
from ..permissions import GUEST_PERMISSIONS
from ..rbac import as_utc, invite_is_expired

# purpose: guest access lifecycle; tokens are the sole credential so entropy and lazy expiry live here
# status: active

logger = logging.getLogger(__name__)

SHARE_DEFAULT_EXPIRY_SECONDS = int(os.getenv("SHARE_DEFAULT_EXPIRY_SECONDS", str(7 * 24 * 3600)))
TOKEN_BYTES = 32
DEFAULT_WATERMARK_TEXT = "CONFIDENTIAL"
WATERMARK_OPACITY = 0.3


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def hash_viewer_ip(ip: str | None) -> str | None:
    if not ip:
        return None
    return hashlib.sha256(ip.encode()).hexdigest()


def issue_invite(
    db: Session,
    asset: models.Asset,
    permission: str = "comment",
    expires_in_seconds: int | None = None,
    created_by: models.User | None = None,
    reviewer_email: str | None = None,
    reviewer_name: str | None = None,
    watermark_enabled: bool = False,
    watermark_text: str | None = None,
    download_enabled: bool = False,
    max_views: int | None = None,
    send_invitation: bool = True,
) -> models.ReviewInvite:
    """Create a review link for one asset.

    ``expires_in_seconds`` of ``0`` yields a link that is already expired;
    ``None`` applies the default lifetime.
    """

    if permission not in GUEST_PERMISSIONS:
        raise ValidationError(f"permission must be one of {', '.join(GUEST_PERMISSIONS)}")
    if expires_in_seconds is None:
        expires_in_seconds = SHARE_DEFAULT_EXPIRY_SECONDS
    if expires_in_seconds < 0:
        raise ValidationError("expires_in_seconds must be zero or positive")
    if max_views is not None and max_views < 1:
        raise ValidationError("max_views must be at least 1")

    invite = models.ReviewInvite(
        asset_id=asset.id,
        token=generate_token(),
        permission=permission,
        reviewer_email=reviewer_email,
        reviewer_name=reviewer_name,
        watermark_enabled=watermark_enabled,
        watermark_text=watermark_text,
        download_enabled=download_enabled,
        max_views=max_views,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in_seconds),
        created_by=created_by.id if created_by else None,
    )
    db.add(invite)
    db.commit()
    db.refresh(invite)

    if send_invitation and reviewer_email:
        inviter = (created_by.full_name or created_by.email) if created_by else "A teammate"
        subject, html = notify.review_invitation_email(
            asset.title, inviter, notify.review_url(invite.token), permission
        )
        tasks.enqueue_email(reviewer_email, subject, html)
    return invite


def resolve(db: Session, token: str) -> models.ReviewInvite:
    """Return the live invite for ``token``; raise ``NotFound`` or ``Expired`` otherwise."""

    invite = db.query(models.ReviewInvite).filter(models.ReviewInvite.token == token).first()
    if invite is None:
        raise NotFound("Invalid or expired review link")
    if invite_is_expired(invite):
        raise Expired()
    return invite


def get_invite(db: Session, invite_id: UUID) -> models.ReviewInvite:
    invite = db.get(models.ReviewInvite, invite_id)
    if invite is None:
        raise NotFound("Share link not found")
    return invite


def record_view(
    db: Session,
    invite_id: UUID,
    duration_seconds: float = 0,
    actions: dict | None = None,
    viewer_ip_hash: str | None = None,
) -> models.ShareView:
    """Append an analytics row and bump the view counter in one statement.

    The counter only moves while the invite is under its ``max_views`` cap, so
    concurrent viewers racing for the last view get exactly one winner; the
    rest see ``Expired``.
    """

    if duration_seconds is not None and duration_seconds < 0:
        raise ValidationError("duration_seconds must be zero or positive")
    now = datetime.now(timezone.utc)
    bumped = db.execute(
        update(models.ReviewInvite)
        .where(
            models.ReviewInvite.id == invite_id,
            or_(
                models.ReviewInvite.max_views.is_(None),
                models.ReviewInvite.view_count < models.ReviewInvite.max_views,
            ),
        )
        .values(view_count=models.ReviewInvite.view_count + 1, last_viewed_at=now)
        .execution_options(synchronize_session=False)
    ).rowcount
    if not bumped:
        db.rollback()
        if db.get(models.ReviewInvite, invite_id) is None:
            raise NotFound("Share link not found")
        raise Expired()
    view = models.ShareView(
        invite_id=invite_id,
        viewer_ip_hash=viewer_ip_hash,
        duration_seconds=duration_seconds or 0,
        actions=actions or {},
        viewed_at=now,
    )
    db.add(view)
    db.commit()
    db.refresh(view)
    return view


def revoke(db: Session, invite_id: UUID) -> models.ReviewInvite:
    """Expire the invite immediately. The row and its analytics are kept."""

    invite = get_invite(db, invite_id)
    invite.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db.commit()
    db.refresh(invite)
    return invite


def list_invites(db: Session, asset_id: UUID) -> list[models.ReviewInvite]:
    return (
        db.query(models.ReviewInvite)
        .filter(models.ReviewInvite.asset_id == asset_id)
        .order_by(models.ReviewInvite.created_at.desc())
        .all()
    )


def invite_analytics(db: Session, invite_id: UUID) -> dict:
    invite = get_invite(db, invite_id)
    views = (
        db.query(models.ShareView)
        .filter(models.ShareView.invite_id == invite_id)
        .order_by(models.ShareView.viewed_at.desc())
        .all()
    )
    total_duration = sum(v.duration_seconds or 0 for v in views)
    unique_viewers = {v.viewer_ip_hash for v in views if v.viewer_ip_hash}
    return {
        "invite_id": invite.id,
        "view_count": invite.view_count,
        "unique_viewers": len(unique_viewers),
        "total_duration_seconds": total_duration,
        "last_viewed_at": invite.last_viewed_at,
        "is_expired": invite_is_expired(invite),
        "views": views,
    }


def watermark_for(invite: models.ReviewInvite, asset: models.Asset) -> dict:
    """Decide whether media served through ``invite`` must be watermarked."""

    if not invite.watermark_enabled:
        return {"url": asset.file_url, "watermarked": False}
    return {
        "url": asset.file_url,
        "watermarked": True,
        "watermark_text": invite.watermark_text or invite.reviewer_email or DEFAULT_WATERMARK_TEXT,
        "watermark_opacity": WATERMARK_OPACITY,
    }


def guest_review(db: Session, token: str) -> dict:
    """Payload for the public review page: asset, ordered comments and permission level."""

    invite = resolve(db, token)
    asset = invite.asset
    comments = (
        db.query(models.Comment)
        .filter(models.Comment.asset_id == asset.id)
        .order_by(models.Comment.created_at.asc())
        .all()
    )
    return {
        "asset": asset,
        "project_name": asset.project.name if asset.project else None,
        "comments": comments,
        "permission": invite.permission,
        "expires_at": as_utc(invite.expires_at),
        "download_enabled": invite.download_enabled,
        "watermark": watermark_for(invite, asset),
    }
