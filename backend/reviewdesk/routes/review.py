"""Public review surface reached through a share token instead of a login."""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session
from uuid import UUID

from ..database import get_db
from .. import schemas
from ..rbac import GuestPrincipal, ensure_asset_access
from ..services import approvals as approval_service
from ..services import comments as comment_service
from ..services import notifications as notification_service
from ..services import sharing as share_service
from .auth import rate_limit

router = APIRouter(prefix="/api/review", tags=["review"])


@router.get("/{token}", response_model=schemas.GuestReviewOut)
async def open_review(token: str, db: Session = Depends(get_db)):
    return share_service.guest_review(db, token)


@router.get("/{token}/watermark", response_model=schemas.WatermarkOut)
async def review_watermark(token: str, db: Session = Depends(get_db)):
    invite = share_service.resolve(db, token)
    return share_service.watermark_for(invite, invite.asset)


@router.post("/{token}/views")
@rate_limit("30/minute")
async def record_review_view(
    request: Request,
    token: str,
    payload: schemas.ShareViewIn,
    db: Session = Depends(get_db),
):
    invite = share_service.resolve(db, token)
    client_ip = request.client.host if request.client else None
    share_service.record_view(
        db,
        invite.id,
        duration_seconds=payload.duration_seconds,
        actions=payload.actions,
        viewer_ip_hash=share_service.hash_viewer_ip(client_ip),
    )
    asset = invite.asset
    delivered = notification_service.dispatch(
        db,
        notification_service.DomainEvent(
            type="share_link_viewed",
            title=f"{invite.reviewer_name or invite.reviewer_email or 'A guest'} viewed {asset.title}",
            project_id=asset.project_id,
            asset_id=asset.id,
            affected_user_ids=[invite.created_by],
            data={"invite_id": str(invite.id)},
        ),
    )
    await notification_service.push(delivered)
    return {"ok": True}


@router.post("/{token}/comments", response_model=schemas.CommentOut)
@rate_limit("20/minute")
async def create_guest_comment(
    request: Request,
    token: str,
    payload: schemas.GuestCommentCreate,
    db: Session = Depends(get_db),
):
    invite = share_service.resolve(db, token)
    principal = GuestPrincipal(token, name=payload.author_name, email=payload.author_email)
    asset = ensure_asset_access(db, principal, invite.asset_id, "comment.create")
    comment = comment_service.add_comment(
        db,
        asset,
        principal,
        payload.body,
        timecode_seconds=payload.timecode_seconds,
        parent_id=payload.parent_id,
        invite=invite,
    )
    delivered = comment_service.announce_comment(db, asset, comment)
    await comment_service.publish_comment(comment)
    await notification_service.push(delivered)
    return comment


@router.get("/{token}/approvals", response_model=schemas.ApprovalChainOut)
async def list_guest_approvals(token: str, db: Session = Depends(get_db)):
    invite = share_service.resolve(db, token)
    steps = approval_service.list_steps(db, invite.asset_id)
    return schemas.ApprovalChainOut(
        asset_id=invite.asset_id,
        state=approval_service.approval_state(steps),
        steps=[schemas.ApprovalStepOut.model_validate(s) for s in steps],
    )


@router.post("/{token}/approvals/{step_id}/decision", response_model=schemas.ApprovalStepOut)
async def decide_as_guest(
    token: str,
    step_id: UUID,
    payload: schemas.ApprovalDecision,
    db: Session = Depends(get_db),
):
    invite = share_service.resolve(db, token)
    principal = GuestPrincipal(token, name=invite.reviewer_name, email=invite.reviewer_email)
    change = approval_service.decide(db, step_id, principal, payload.status, note=payload.decision_note)
    await notification_service.push(change.notifications)
    return change.step
