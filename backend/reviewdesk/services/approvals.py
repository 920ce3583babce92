"""Approval chains and the per-step decision state machine."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, Mapping
from uuid import UUID

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from .. import models, notify, rbac, tasks
from ..audit import log_activity
from ..errors import Conflict, Forbidden, NotFound, ValidationError
from . import notifications

# purpose: ordered sign-off gates per asset; each step is decided independently and the first decision wins
# status: active

logger = logging.getLogger(__name__)

PENDING = "pending"
TERMINAL_STATUSES = ("approved", "rejected", "changes_requested")
BLOCKING_STATUSES = ("rejected", "changes_requested")

_DECISION_ACTIONS = {
    "approved": "approved_asset",
    "rejected": "rejected_asset",
    "changes_requested": "requested_changes",
}


@dataclass(slots=True)
class StepChange:
    """A step mutation plus the notifications it produced, for pushing after the response commit."""

    step: models.ApprovalStep
    notifications: list[models.Notification] = field(default_factory=list)


def approval_state(steps: Iterable[models.ApprovalStep]) -> str:
    """Derived overall state of an approval chain.

    ``blocked`` wins over everything, ``approved`` needs every step approved,
    and a chain with no steps is still ``in_progress``.
    """

    statuses = [step.status for step in steps]
    if any(status in BLOCKING_STATUSES for status in statuses):
        return "blocked"
    if statuses and all(status == "approved" for status in statuses):
        return "approved"
    return "in_progress"


def get_step(db: Session, step_id: UUID) -> models.ApprovalStep:
    step = db.get(models.ApprovalStep, step_id)
    if step is None:
        raise NotFound("Approval step not found")
    return step


def list_steps(db: Session, asset_id: UUID) -> list[models.ApprovalStep]:
    return (
        db.query(models.ApprovalStep)
        .filter(models.ApprovalStep.asset_id == asset_id)
        .order_by(models.ApprovalStep.sequence.asc(), models.ApprovalStep.created_at.asc())
        .all()
    )


def _next_sequence(db: Session, asset_id: UUID) -> int:
    highest = (
        db.query(func.max(models.ApprovalStep.sequence))
        .filter(models.ApprovalStep.asset_id == asset_id)
        .scalar()
    )
    return (highest or 0) + 1


def _assignee_email(db: Session, step: models.ApprovalStep) -> str | None:
    if step.assignee_email:
        return step.assignee_email
    if step.assignee_id:
        assignee = db.get(models.User, step.assignee_id)
        return assignee.email if assignee else None
    return None


def _request_email(db: Session, asset: models.Asset, step: models.ApprovalStep, to_email: str) -> bool:
    project = asset.project or db.get(models.Project, asset.project_id)
    subject, html = notify.approval_request_email(
        asset.title,
        project.name if project else "Project",
        notify.asset_url(asset.project_id, asset.id),
        step.role_label,
    )
    return tasks.enqueue_email(to_email, subject, html)


def create_step(
    db: Session,
    asset: models.Asset,
    role_label: str,
    created_by: models.User,
    sequence: int | None = None,
    assignee_id: UUID | None = None,
    assignee_email: str | None = None,
) -> StepChange:
    if not role_label or not role_label.strip():
        raise ValidationError("role_label is required")
    if sequence is not None and sequence < 1:
        raise ValidationError("sequence starts at 1")
    if assignee_id is not None and db.get(models.User, assignee_id) is None:
        raise ValidationError("Assignee not found")

    step = models.ApprovalStep(
        asset_id=asset.id,
        sequence=sequence or _next_sequence(db, asset.id),
        role_label=role_label.strip(),
        assignee_id=assignee_id,
        assignee_email=assignee_email,
        status=PENDING,
        created_by=created_by.id,
    )
    db.add(step)
    db.commit()
    db.refresh(step)
    log_activity(
        db,
        created_by.id,
        created_by.full_name or created_by.email,
        "approval_step_created",
        project_id=asset.project_id,
        asset_id=asset.id,
        details={"role": step.role_label, "sequence": step.sequence},
    )

    if assignee_email:
        _request_email(db, asset, step, assignee_email)
    delivered: list[models.Notification] = []
    if assignee_id:
        delivered = notifications.dispatch(
            db,
            notifications.DomainEvent(
                type="approval_requested",
                title=f"Approval requested: {asset.title}",
                body=f"You are the {step.role_label} approver.",
                actor_id=created_by.id,
                actor_name=created_by.full_name or created_by.email,
                project_id=asset.project_id,
                asset_id=asset.id,
                affected_user_ids=[assignee_id],
                data={"approval_id": str(step.id)},
            ),
        )
    return StepChange(step, delivered)


def create_chain(
    db: Session,
    asset: models.Asset,
    steps: Iterable[Mapping],
    created_by: models.User,
) -> list[StepChange]:
    """Append several steps in the given order after any existing ones."""

    entries = list(steps)
    if not entries:
        raise ValidationError("At least one approval step is required")
    start = _next_sequence(db, asset.id)
    results = []
    for offset, entry in enumerate(entries):
        results.append(
            create_step(
                db,
                asset,
                entry.get("role_label", ""),
                created_by,
                sequence=entry.get("sequence") or start + offset,
                assignee_id=entry.get("assignee_id"),
                assignee_email=entry.get("assignee_email"),
            )
        )
    return results


def is_assignee(step: models.ApprovalStep, user: models.User) -> bool:
    if step.assignee_id is not None and step.assignee_id == user.id:
        return True
    return bool(step.assignee_email) and step.assignee_email.lower() == (user.email or "").lower()


def _ensure_may_decide(db: Session, step: models.ApprovalStep, principal: rbac.Principal) -> None:
    asset = step.asset
    if isinstance(principal, rbac.GuestPrincipal):
        rbac.raise_for_decision(rbac.authorize_asset(db, principal, asset, "approval.decide"))
        return
    if is_assignee(step, principal.user):
        return
    if not rbac.authorize_asset(db, principal, asset, "approval.decide"):
        raise Forbidden("Only the assignee or an approver may decide this step")


def _guest_step(db: Session, step_id: UUID, principal: rbac.GuestPrincipal) -> tuple[models.ApprovalStep, UUID]:
    # token first; a step outside the invite looks the same whether or not it exists
    invite, decision = rbac.resolve_guest_invite(db, principal)
    rbac.raise_for_decision(decision)
    step = db.get(models.ApprovalStep, step_id)
    if step is None or step.asset_id != invite.asset_id:
        rbac.raise_for_decision(rbac.Decision.deny(rbac.DenialReason.OUT_OF_SCOPE))
    return step, invite.id


def decide(
    db: Session,
    step_id: UUID,
    principal: rbac.Principal,
    status: str,
    note: str | None = None,
) -> StepChange:
    """Move a pending step to a terminal status.

    The update is conditional on the step still being pending, so two racing
    decisions cannot both land; the loser gets ``Conflict``. Steps are not
    gated on earlier sequence positions.
    """

    if status not in TERMINAL_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(TERMINAL_STATUSES)}")
    invite_id = None
    if isinstance(principal, rbac.GuestPrincipal):
        step, invite_id = _guest_step(db, step_id, principal)
    else:
        step = get_step(db, step_id)
    _ensure_may_decide(db, step, principal)

    changed = db.execute(
        update(models.ApprovalStep)
        .where(models.ApprovalStep.id == step.id, models.ApprovalStep.status == PENDING)
        .values(
            status=status,
            decision_note=note,
            decided_by=principal.user_id,
            decided_by_invite=invite_id,
            decided_at=datetime.now(timezone.utc),
        )
        .execution_options(synchronize_session=False)
    ).rowcount
    if not changed:
        db.rollback()
        raise Conflict("Approval step has already been decided")
    db.commit()
    db.refresh(step)

    asset = step.asset
    actor_name = principal.display_name if isinstance(principal, rbac.UserPrincipal) else (
        principal.name or principal.email or "Guest reviewer"
    )
    log_activity(
        db,
        principal.user_id,
        actor_name,
        _DECISION_ACTIONS[status],
        project_id=asset.project_id,
        asset_id=asset.id,
        details={"asset_title": asset.title, "role": step.role_label, "note": note},
    )
    delivered = notifications.dispatch(
        db,
        notifications.DomainEvent(
            type="approval_decided",
            title=f"{step.role_label}: {status.replace('_', ' ')}",
            body=note or f"{actor_name} decided on {asset.title}.",
            actor_id=principal.user_id,
            actor_name=actor_name,
            project_id=asset.project_id,
            asset_id=asset.id,
            include_asset_audience=True,
            data={"approval_id": str(step.id), "status": status},
        ),
    )
    return StepChange(step, delivered)


def reset_step(db: Session, step_id: UUID, actor: models.User) -> models.ApprovalStep:
    """Return a decided step to pending. Callers must hold ``approval.edit``."""

    step = get_step(db, step_id)
    previous = step.status
    step.status = PENDING
    step.decision_note = None
    step.decided_by = None
    step.decided_by_invite = None
    step.decided_at = None
    db.commit()
    db.refresh(step)
    log_activity(
        db,
        actor.id,
        actor.full_name or actor.email,
        "approval_reset",
        project_id=step.asset.project_id,
        asset_id=step.asset_id,
        details={"role": step.role_label, "previous_status": previous},
    )
    return step


def update_step(
    db: Session,
    step_id: UUID,
    role_label: str | None = None,
    sequence: int | None = None,
    assignee_id: UUID | None = None,
    assignee_email: str | None = None,
) -> models.ApprovalStep:
    step = get_step(db, step_id)
    if role_label is not None:
        if not role_label.strip():
            raise ValidationError("role_label is required")
        step.role_label = role_label.strip()
    if sequence is not None:
        if sequence < 1:
            raise ValidationError("sequence starts at 1")
        step.sequence = sequence
    if assignee_id is not None:
        if db.get(models.User, assignee_id) is None:
            raise ValidationError("Assignee not found")
        step.assignee_id = assignee_id
    if assignee_email is not None:
        step.assignee_email = assignee_email or None
    db.commit()
    db.refresh(step)
    return step


def delete_step(db: Session, step_id: UUID) -> None:
    step = get_step(db, step_id)
    db.delete(step)
    db.commit()


def notify_assignee(db: Session, step_id: UUID, actor: models.User) -> dict:
    """Send the approval-request email again. Every call sends and logs once."""

    step = get_step(db, step_id)
    to_email = _assignee_email(db, step)
    if not to_email:
        raise ValidationError("No assignee email")
    asset = step.asset
    queued = _request_email(db, asset, step, to_email)
    log_activity(
        db,
        actor.id,
        actor.full_name or actor.email or "System",
        "approval_notification_sent",
        project_id=asset.project_id,
        asset_id=asset.id,
        details={"assignee_email": to_email, "role_label": step.role_label},
    )
    return {"ok": queued, "sent_to": to_email}
