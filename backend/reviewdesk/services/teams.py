"""Team creation and membership management."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy.orm import Session

from .. import models
from ..audit import log_activity
from ..errors import Forbidden, NotFound, ValidationError
from ..permissions import TEAM_ROLES, is_at_least


def _actor_name(user: models.User) -> str:
    return user.full_name or user.email


def create_team(db: Session, name: str, owner: models.User) -> models.Team:
    if not name or not name.strip():
        raise ValidationError("Team name is required")
    team = models.Team(name=name.strip(), owner_id=owner.id)
    db.add(team)
    db.flush()
    db.add(models.TeamMember(team_id=team.id, user_id=owner.id, role="owner", invited_by=owner.id))
    db.commit()
    db.refresh(team)
    log_activity(db, owner.id, _actor_name(owner), "team_created", team_id=team.id, details={"name": team.name})
    return team


def list_teams(db: Session, user_id: UUID) -> list[models.Team]:
    return (
        db.query(models.Team)
        .join(models.TeamMember, models.TeamMember.team_id == models.Team.id)
        .filter(models.TeamMember.user_id == user_id)
        .order_by(models.Team.created_at.asc())
        .all()
    )


def list_members(db: Session, team_id: UUID) -> list[models.TeamMember]:
    return (
        db.query(models.TeamMember)
        .filter(models.TeamMember.team_id == team_id)
        .order_by(models.TeamMember.joined_at.asc())
        .all()
    )


def get_membership(db: Session, team_id: UUID, user_id: UUID) -> models.TeamMember:
    membership = db.get(models.TeamMember, (team_id, user_id))
    if membership is None:
        raise NotFound("Member not found")
    return membership


def _check_grant(actor_role: str, role: str) -> None:
    if role not in TEAM_ROLES:
        raise ValidationError(f"role must be one of {', '.join(TEAM_ROLES)}")
    if role == "owner":
        raise Forbidden("Ownership cannot be granted")
    if role == "admin" and actor_role != "owner":
        raise Forbidden("Only the owner may grant admin")


def invite_member(
    db: Session,
    team_id: UUID,
    actor: models.User,
    actor_role: str,
    role: str = "member",
    user_id: UUID | None = None,
    email: str | None = None,
) -> models.TeamMember:
    """Add or re-invite a user. A repeated invite overwrites the previous role."""

    _check_grant(actor_role, role)
    if user_id:
        invitee = db.get(models.User, user_id)
    elif email:
        invitee = db.query(models.User).filter(models.User.email == email).first()
    else:
        raise ValidationError("user_id or email required")
    if invitee is None:
        raise NotFound("User not found")

    membership = db.get(models.TeamMember, (team_id, invitee.id))
    if membership is not None and membership.role == "owner":
        raise Forbidden("The owner's membership cannot be changed")
    if membership is None:
        membership = models.TeamMember(team_id=team_id, user_id=invitee.id)
        db.add(membership)
    membership.role = role
    membership.invited_by = actor.id
    db.commit()
    db.refresh(membership)
    log_activity(
        db,
        actor.id,
        _actor_name(actor),
        "team_member_invited",
        team_id=team_id,
        details={"user_id": str(invitee.id), "email": invitee.email, "role": role},
    )
    return membership


def change_role(db: Session, team_id: UUID, user_id: UUID, role: str, actor: models.User, actor_role: str):
    _check_grant(actor_role, role)
    membership = get_membership(db, team_id, user_id)
    if membership.role == "owner":
        raise Forbidden("The owner's role cannot be changed")
    if not is_at_least(actor_role, membership.role):
        raise Forbidden("Cannot change the role of a more senior member")
    previous = membership.role
    membership.role = role
    db.commit()
    db.refresh(membership)
    log_activity(
        db,
        actor.id,
        _actor_name(actor),
        "team_role_changed",
        team_id=team_id,
        details={"user_id": str(user_id), "from": previous, "to": role},
    )
    return membership


def remove_member(db: Session, team_id: UUID, user_id: UUID, actor: models.User, actor_role: str) -> None:
    membership = get_membership(db, team_id, user_id)
    if membership.role == "owner":
        raise Forbidden("The owner cannot be removed")
    if not is_at_least(actor_role, membership.role):
        raise Forbidden("Cannot remove a more senior member")
    db.delete(membership)
    db.commit()
    log_activity(
        db,
        actor.id,
        _actor_name(actor),
        "team_member_removed",
        team_id=team_id,
        details={"user_id": str(user_id)},
    )
