"""Authorization decisions for team members and share-token guests.

Two capability universes are resolved here and never merged: team roles
(looked up per request from ``team_members``) and guest share permissions
(looked up per request from ``review_invites``). Nothing is cached between
calls because roles and tokens are mutable.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy.orm import Session

from . import models, permissions
from .errors import Expired, Forbidden, NotFound, Unauthorized

# purpose: centralize the allow/deny matrix previously scattered through route handlers
# status: active


class DenialReason(str, enum.Enum):
    NOT_MEMBER = "not_member"
    NOT_PERMITTED = "not_permitted"
    INVALID_TOKEN = "invalid_token"
    EXPIRED = "expired"
    OUT_OF_SCOPE = "out_of_scope"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: DenialReason | None = None
    role: str | None = None

    @classmethod
    def allow(cls, role: str | None = None) -> "Decision":
        return cls(True, None, role)

    @classmethod
    def deny(cls, reason: DenialReason) -> "Decision":
        return cls(False, reason)

    def __bool__(self) -> bool:
        return self.allowed


@dataclass(frozen=True)
class UserPrincipal:
    user: models.User

    @property
    def display_name(self) -> str:
        return self.user.full_name or self.user.email

    @property
    def user_id(self) -> UUID:
        return self.user.id


@dataclass(frozen=True)
class GuestPrincipal:
    """A bearer of a share token. It has no identity beyond the token."""

    token: str
    name: str | None = None
    email: str | None = None

    @property
    def user_id(self) -> None:
        return None


Principal = UserPrincipal | GuestPrincipal


def as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def invite_is_expired(invite: models.ReviewInvite, now: datetime | None = None) -> bool:
    now = now or datetime.now(timezone.utc)
    expires_at = as_utc(invite.expires_at)
    if expires_at is not None and expires_at <= now:
        return True
    if invite.max_views is not None and (invite.view_count or 0) >= invite.max_views:
        return True
    return False


def get_team_role(db: Session, team_id: UUID, user_id: UUID) -> str | None:
    membership = (
        db.query(models.TeamMember)
        .filter(models.TeamMember.team_id == team_id, models.TeamMember.user_id == user_id)
        .first()
    )
    return membership.role if membership else None


def project_role(db: Session, project: models.Project, user: models.User) -> str | None:
    """Return the effective role of ``user`` on ``project``.

    The project owner always acts as ``owner``; everyone else inherits their
    role in the project's team, if the project belongs to one.
    """

    if project.owner_id == user.id:
        return "owner"
    if project.team_id is None:
        return None
    return get_team_role(db, project.team_id, user.id)


def authorize_team(db: Session, principal: Principal, team_id: UUID, action: str) -> Decision:
    if isinstance(principal, GuestPrincipal):
        return Decision.deny(DenialReason.OUT_OF_SCOPE)
    role = get_team_role(db, team_id, principal.user.id)
    if role is None:
        return Decision.deny(DenialReason.NOT_MEMBER)
    if not permissions.allows(role, action):
        return Decision.deny(DenialReason.NOT_PERMITTED)
    return Decision.allow(role)


def authorize_project(db: Session, principal: Principal, project: models.Project, action: str) -> Decision:
    if isinstance(principal, GuestPrincipal):
        return Decision.deny(DenialReason.OUT_OF_SCOPE)
    role = project_role(db, project, principal.user)
    if role is None:
        return Decision.deny(DenialReason.NOT_MEMBER)
    if not permissions.allows(role, action):
        return Decision.deny(DenialReason.NOT_PERMITTED)
    return Decision.allow(role)


def resolve_guest_invite(db: Session, principal: GuestPrincipal) -> tuple[models.ReviewInvite | None, Decision]:
    invite = db.query(models.ReviewInvite).filter(models.ReviewInvite.token == principal.token).first()
    if invite is None:
        return None, Decision.deny(DenialReason.INVALID_TOKEN)
    if invite_is_expired(invite):
        return invite, Decision.deny(DenialReason.EXPIRED)
    return invite, Decision.allow()


def authorize_asset(db: Session, principal: Principal, asset: models.Asset, action: str) -> Decision:
    """Resolve ``action`` on ``asset`` through its project, or through the guest's invite."""

    if isinstance(principal, GuestPrincipal):
        invite, decision = resolve_guest_invite(db, principal)
        if not decision:
            return decision
        if invite.asset_id != asset.id:
            return Decision.deny(DenialReason.OUT_OF_SCOPE)
        if not permissions.allows_as_guest(invite.permission, action):
            return Decision.deny(DenialReason.NOT_PERMITTED)
        return Decision.allow()
    project = asset.project or db.get(models.Project, asset.project_id)
    if project is None:
        return Decision.deny(DenialReason.NOT_FOUND)
    return authorize_project(db, principal, project, action)


def raise_for_decision(decision: Decision) -> None:
    if decision.allowed:
        return
    if decision.reason == DenialReason.INVALID_TOKEN:
        raise Unauthorized("Invalid review token")
    if decision.reason == DenialReason.EXPIRED:
        raise Expired()
    if decision.reason == DenialReason.NOT_FOUND:
        raise NotFound()
    raise Forbidden()


def ensure_team_permission(db: Session, principal: Principal, team_id: UUID, action: str) -> str:
    team = db.get(models.Team, team_id)
    if team is None:
        raise NotFound("Team not found")
    decision = authorize_team(db, principal, team_id, action)
    raise_for_decision(decision)
    return decision.role


def ensure_project_access(db: Session, principal: Principal, project_id: UUID, action: str) -> models.Project:
    """Return the project if ``principal`` may perform ``action`` on it, otherwise raise."""

    project = db.get(models.Project, project_id)
    if project is None:
        raise NotFound("Project not found")
    raise_for_decision(authorize_project(db, principal, project, action))
    return project


def ensure_asset_access(db: Session, principal: Principal, asset_id: UUID, action: str) -> models.Asset:
    asset = db.get(models.Asset, asset_id)
    if asset is None:
        raise NotFound("Asset not found")
    raise_for_decision(authorize_asset(db, principal, asset, action))
    return asset
