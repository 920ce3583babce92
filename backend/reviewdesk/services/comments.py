"""Comment threads, reactions and attachments on review assets."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .. import models, pubsub, storage
from ..audit import touch_project
from ..errors import NotFound, ValidationError
from ..rbac import GuestPrincipal, Principal
from . import notifications

logger = logging.getLogger(__name__)

COMMENT_STATUSES = ("open", "resolved")
GUEST_AUTHOR_NAME = "Guest reviewer"


def get_comment(db: Session, comment_id: UUID) -> models.Comment:
    comment = db.get(models.Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def _author_fields(principal: Principal, invite: models.ReviewInvite | None) -> dict:
    if isinstance(principal, GuestPrincipal):
        name = principal.name or (invite.reviewer_name if invite else None) or GUEST_AUTHOR_NAME
        email = principal.email or (invite.reviewer_email if invite else None)
        return {
            "author_id": None,
            "author_name": name,
            "author_email": email,
            "invite_id": invite.id if invite else None,
        }
    return {
        "author_id": principal.user.id,
        "author_name": principal.display_name,
        "author_email": principal.user.email,
        "invite_id": None,
    }


def add_comment(
    db: Session,
    asset: models.Asset,
    author: Principal,
    body: str,
    timecode_seconds: float | None = None,
    parent_id: UUID | None = None,
    invite: models.ReviewInvite | None = None,
) -> models.Comment:
    """Create an open comment on ``asset`` on behalf of a user or a guest."""

    if not body or not body.strip():
        raise ValidationError("Comment body is required")
    if timecode_seconds is not None and timecode_seconds < 0:
        raise ValidationError("timecode_seconds must be zero or positive")
    if parent_id is not None:
        parent = db.get(models.Comment, parent_id)
        if parent is None or parent.asset_id != asset.id:
            raise ValidationError("Parent comment must belong to the same asset")

    comment = models.Comment(
        asset_id=asset.id,
        parent_id=parent_id,
        body=body.strip(),
        timecode_seconds=timecode_seconds,
        status="open",
        **_author_fields(author, invite),
    )
    db.add(comment)
    touch_project(db, asset.project_id)
    db.commit()
    db.refresh(comment)
    return comment


def list_comments(db: Session, asset_id: UUID, status: str | None = None) -> list[models.Comment]:
    if status is not None and status not in COMMENT_STATUSES:
        raise ValidationError(f"Unknown comment status: {status}")
    query = db.query(models.Comment).filter(models.Comment.asset_id == asset_id)
    if status:
        query = query.filter(models.Comment.status == status)
    return query.order_by(models.Comment.created_at.asc()).all()


def resolve_comment(db: Session, comment_id: UUID, resolved_by: UUID | None = None) -> models.Comment:
    comment = get_comment(db, comment_id)
    comment.status = "resolved"
    comment.resolved_by = resolved_by
    comment.resolved_at = datetime.now(timezone.utc)
    db.commit()
    db.refresh(comment)
    return comment


def reopen_comment(db: Session, comment_id: UUID) -> models.Comment:
    comment = get_comment(db, comment_id)
    comment.status = "open"
    comment.resolved_by = None
    comment.resolved_at = None
    db.commit()
    db.refresh(comment)
    return comment


def delete_comment(db: Session, comment_id: UUID) -> None:
    """Hard delete, taking replies, reactions, attachments and linked annotations with it."""

    comment = get_comment(db, comment_id)
    db.delete(comment)
    db.commit()


def _find_reaction(db: Session, comment_id: UUID, user_id: UUID, emoji: str):
    return (
        db.query(models.CommentReaction)
        .filter(
            models.CommentReaction.comment_id == comment_id,
            models.CommentReaction.user_id == user_id,
            models.CommentReaction.emoji == emoji,
        )
        .first()
    )


def add_reaction(db: Session, comment_id: UUID, user_id: UUID, emoji: str) -> models.CommentReaction:
    """Upsert keyed by (comment, user, emoji). Reacting twice returns the stored row."""

    emoji = (emoji or "").strip()
    if not emoji:
        raise ValidationError("emoji is required")
    get_comment(db, comment_id)
    existing = _find_reaction(db, comment_id, user_id, emoji)
    if existing is not None:
        return existing
    reaction = models.CommentReaction(comment_id=comment_id, user_id=user_id, emoji=emoji)
    db.add(reaction)
    try:
        db.commit()
    except IntegrityError:
        # a concurrent request stored the same key first
        db.rollback()
        return _find_reaction(db, comment_id, user_id, emoji)
    db.refresh(reaction)
    return reaction


def remove_reaction(db: Session, comment_id: UUID, user_id: UUID, emoji: str) -> None:
    (
        db.query(models.CommentReaction)
        .filter(
            models.CommentReaction.comment_id == comment_id,
            models.CommentReaction.user_id == user_id,
            models.CommentReaction.emoji == emoji,
        )
        .delete(synchronize_session=False)
    )
    db.commit()


def list_reactions(db: Session, comment_id: UUID) -> list[models.CommentReaction]:
    return (
        db.query(models.CommentReaction)
        .filter(models.CommentReaction.comment_id == comment_id)
        .order_by(models.CommentReaction.created_at.asc())
        .all()
    )


def add_attachment(
    db: Session,
    comment_id: UUID,
    file_name: str,
    data: bytes,
    content_type: str | None = None,
    uploaded_by: UUID | None = None,
) -> models.CommentAttachment:
    """Store an attachment for a comment. Oversized payloads are refused before storage is touched."""

    storage.ensure_within_cap(len(data))
    comment = get_comment(db, comment_id)
    object_name = storage.build_object_name(f"comments/{comment.id}", file_name or "attachment")
    url = storage.put_object(object_name, data, content_type or "application/octet-stream")
    attachment = models.CommentAttachment(
        comment_id=comment.id,
        file_url=url,
        file_name=file_name or "attachment",
        file_type=content_type,
        file_size=len(data),
        uploaded_by=uploaded_by,
    )
    db.add(attachment)
    db.commit()
    db.refresh(attachment)
    return attachment


def list_attachments(db: Session, comment_id: UUID) -> list[models.CommentAttachment]:
    return (
        db.query(models.CommentAttachment)
        .filter(models.CommentAttachment.comment_id == comment_id)
        .order_by(models.CommentAttachment.created_at.asc())
        .all()
    )


def announce_comment(db: Session, asset: models.Asset, comment: models.Comment) -> list[models.Notification]:
    """Fan ``comment_added`` out to the project owner and asset watchers, skipping the author."""

    return notifications.dispatch(
        db,
        notifications.DomainEvent(
            type="comment_added",
            title=f"New comment on {asset.title}",
            body=f"{comment.author_name}: {comment.body[:200]}",
            actor_id=comment.author_id,
            actor_name=comment.author_name,
            project_id=asset.project_id,
            asset_id=asset.id,
            include_asset_audience=True,
            data={"comment_id": str(comment.id)},
        ),
    )


async def publish_comment(comment: models.Comment, event_type: str = "comment_created") -> bool:
    return await pubsub.publish_comment_event(
        comment.asset_id,
        {
            "type": event_type,
            "id": comment.id,
            "asset_id": comment.asset_id,
            "author_name": comment.author_name,
            "body": comment.body,
            "status": comment.status,
            "timecode_seconds": comment.timecode_seconds,
            "created_at": comment.created_at,
        },
    )
