from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.orm import Session
from typing import List, Optional
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas, storage
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import comments as comment_service
from ..services import notifications as notification_service

router = APIRouter(prefix="/api", tags=["comments"])


def _comment_asset(db: Session, user: models.User, comment_id: UUID, action: str) -> models.Comment:
    comment = comment_service.get_comment(db, comment_id)
    ensure_asset_access(db, UserPrincipal(user), comment.asset_id, action)
    return comment


@router.post("/assets/{asset_id}/comments", response_model=schemas.CommentOut)
async def create_comment(
    asset_id: UUID,
    payload: schemas.CommentCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    principal = UserPrincipal(user)
    asset = ensure_asset_access(db, principal, asset_id, "comment.create")
    comment = comment_service.add_comment(
        db,
        asset,
        principal,
        payload.body,
        timecode_seconds=payload.timecode_seconds,
        parent_id=payload.parent_id,
    )
    delivered = comment_service.announce_comment(db, asset, comment)
    await comment_service.publish_comment(comment)
    await notification_service.push(delivered)
    return comment


@router.get("/assets/{asset_id}/comments", response_model=List[schemas.CommentOut])
async def list_comments(
    asset_id: UUID,
    status: Optional[str] = None,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    return comment_service.list_comments(db, asset_id, status=status)


@router.post("/comments/{comment_id}/resolve", response_model=schemas.CommentOut)
async def resolve_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "comment.resolve")
    comment = comment_service.resolve_comment(db, comment_id, resolved_by=user.id)
    await comment_service.publish_comment(comment, "comment_resolved")
    return comment


@router.post("/comments/{comment_id}/reopen", response_model=schemas.CommentOut)
async def reopen_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "comment.resolve")
    comment = comment_service.reopen_comment(db, comment_id)
    await comment_service.publish_comment(comment, "comment_reopened")
    return comment


@router.delete("/comments/{comment_id}")
async def delete_comment(
    comment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    comment = _comment_asset(db, user, comment_id, "asset.view")
    if comment.author_id != user.id:
        _comment_asset(db, user, comment_id, "comment.delete")
    comment_service.delete_comment(db, comment_id)
    return {"detail": "deleted"}


@router.get("/comments/{comment_id}/reactions", response_model=List[schemas.ReactionOut])
async def list_reactions(
    comment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "asset.view")
    return comment_service.list_reactions(db, comment_id)


@router.post("/comments/{comment_id}/reactions", response_model=schemas.ReactionOut)
async def add_reaction(
    comment_id: UUID,
    payload: schemas.ReactionIn,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "comment.create")
    return comment_service.add_reaction(db, comment_id, user.id, payload.emoji)


@router.delete("/comments/{comment_id}/reactions/{emoji}")
async def remove_reaction(
    comment_id: UUID,
    emoji: str,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "asset.view")
    comment_service.remove_reaction(db, comment_id, user.id, emoji)
    return {"detail": "removed"}


@router.get("/comments/{comment_id}/attachments", response_model=List[schemas.AttachmentOut])
async def list_attachments(
    comment_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "asset.view")
    return comment_service.list_attachments(db, comment_id)


@router.post("/comments/{comment_id}/attachments", response_model=schemas.AttachmentOut)
async def upload_attachment(
    comment_id: UUID,
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _comment_asset(db, user, comment_id, "comment.create")
    # at most one byte past the cap
    data = await file.read(storage.MAX_UPLOAD_BYTES + 1)
    return comment_service.add_attachment(
        db,
        comment_id,
        file.filename or "attachment",
        data,
        content_type=file.content_type,
        uploaded_by=user.id,
    )
