from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import approvals as approval_service
from ..services import notifications as notification_service

router = APIRouter(prefix="/api", tags=["approvals"])


def _step_asset(db: Session, user: models.User, step_id: UUID, action: str) -> models.ApprovalStep:
    step = approval_service.get_step(db, step_id)
    ensure_asset_access(db, UserPrincipal(user), step.asset_id, action)
    return step


@router.get("/assets/{asset_id}/approvals", response_model=schemas.ApprovalChainOut)
async def list_approvals(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    steps = approval_service.list_steps(db, asset_id)
    return schemas.ApprovalChainOut(
        asset_id=asset_id,
        state=approval_service.approval_state(steps),
        steps=[schemas.ApprovalStepOut.model_validate(s) for s in steps],
    )


@router.post("/assets/{asset_id}/approvals", response_model=schemas.ApprovalStepOut, status_code=201)
async def create_approval_step(
    asset_id: UUID,
    payload: schemas.ApprovalStepCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "approval.create")
    change = approval_service.create_step(
        db,
        asset,
        payload.role_label,
        user,
        sequence=payload.sequence,
        assignee_id=payload.assignee_id,
        assignee_email=payload.assignee_email,
    )
    await notification_service.push(change.notifications)
    return change.step


@router.post("/assets/{asset_id}/approvals/chain", response_model=List[schemas.ApprovalStepOut], status_code=201)
async def create_approval_chain(
    asset_id: UUID,
    payload: schemas.ApprovalChainCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "approval.create")
    changes = approval_service.create_chain(db, asset, [s.model_dump() for s in payload.steps], user)
    for change in changes:
        await notification_service.push(change.notifications)
    return [change.step for change in changes]


@router.patch("/approvals/{step_id}", response_model=schemas.ApprovalStepOut)
async def update_approval_step(
    step_id: UUID,
    payload: schemas.ApprovalStepUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _step_asset(db, user, step_id, "approval.edit")
    return approval_service.update_step(db, step_id, **payload.model_dump(exclude_unset=True))


@router.delete("/approvals/{step_id}")
async def delete_approval_step(
    step_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _step_asset(db, user, step_id, "approval.edit")
    approval_service.delete_step(db, step_id)
    return {"detail": "deleted"}


@router.post("/approvals/{step_id}/decision", response_model=schemas.ApprovalStepOut)
async def decide_approval_step(
    step_id: UUID,
    payload: schemas.ApprovalDecision,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    change = approval_service.decide(
        db, step_id, UserPrincipal(user), payload.status, note=payload.decision_note
    )
    await notification_service.push(change.notifications)
    return change.step


@router.post("/approvals/{step_id}/reset", response_model=schemas.ApprovalStepOut)
async def reset_approval_step(
    step_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _step_asset(db, user, step_id, "approval.edit")
    return approval_service.reset_step(db, step_id, user)


@router.post("/approvals/{step_id}/notify", response_model=schemas.ApprovalNotifyOut)
async def notify_approval_assignee(
    step_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _step_asset(db, user, step_id, "approval.notify")
    return approval_service.notify_assignee(db, step_id, user)
