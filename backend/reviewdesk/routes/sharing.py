from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, notify, schemas
from ..audit import log_activity
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import sharing as share_service

router = APIRouter(prefix="/api", tags=["sharing"])


def share_out(invite: models.ReviewInvite) -> schemas.ShareOut:
    data = schemas.ShareOut.model_validate(invite)
    data.review_url = notify.review_url(invite.token)
    return data


def _invite_asset(db: Session, user: models.User, invite_id: UUID, action: str) -> models.ReviewInvite:
    invite = share_service.get_invite(db, invite_id)
    ensure_asset_access(db, UserPrincipal(user), invite.asset_id, action)
    return invite


@router.post("/assets/{asset_id}/shares", response_model=schemas.ShareOut, status_code=201)
async def create_share(
    asset_id: UUID,
    payload: schemas.ShareCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "share.create")
    invite = share_service.issue_invite(
        db,
        asset,
        permission=payload.permission,
        expires_in_seconds=payload.expires_in_seconds,
        created_by=user,
        reviewer_email=payload.reviewer_email,
        reviewer_name=payload.reviewer_name,
        watermark_enabled=payload.watermark_enabled,
        watermark_text=payload.watermark_text,
        download_enabled=payload.download_enabled,
        max_views=payload.max_views,
    )
    log_activity(
        db,
        user.id,
        user.full_name or user.email,
        "share_link_created",
        project_id=asset.project_id,
        asset_id=asset.id,
        details={"permission": invite.permission, "reviewer_email": invite.reviewer_email},
    )
    return share_out(invite)


@router.get("/assets/{asset_id}/shares", response_model=List[schemas.ShareOut])
async def list_shares(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "share.create")
    return [share_out(i) for i in share_service.list_invites(db, asset_id)]


@router.post("/shares/{invite_id}/revoke", response_model=schemas.ShareOut)
async def revoke_share(
    invite_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    invite = _invite_asset(db, user, invite_id, "share.create")
    if invite.created_by != user.id:
        _invite_asset(db, user, invite_id, "share.revoke")
    invite = share_service.revoke(db, invite_id)
    asset = invite.asset
    log_activity(
        db,
        user.id,
        user.full_name or user.email,
        "share_link_revoked",
        project_id=asset.project_id,
        asset_id=asset.id,
        details={"invite_id": str(invite.id)},
    )
    return share_out(invite)


@router.get("/shares/{invite_id}/analytics", response_model=schemas.ShareAnalyticsOut)
async def share_analytics(
    invite_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _invite_asset(db, user, invite_id, "analytics.view")
    return share_service.invite_analytics(db, invite_id)
