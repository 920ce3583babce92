from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..audit import list_team_activity
from ..errors import Forbidden
from ..permissions import allows, is_at_least
from ..rbac import UserPrincipal, ensure_team_permission
from ..services import teams as team_service

router = APIRouter(prefix="/api/teams", tags=["teams"])


@router.post("/", response_model=schemas.TeamOut)
async def create_team(
    team: schemas.TeamCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return team_service.create_team(db, team.name, user)


@router.get("/", response_model=List[schemas.TeamOut])
async def list_teams(
    db: Session = Depends(get_db), user: models.User = Depends(get_current_user)
):
    return team_service.list_teams(db, user.id)


@router.get("/{team_id}/members", response_model=List[schemas.TeamMemberOut])
async def list_members(
    team_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_team_permission(db, UserPrincipal(user), team_id, "project.view")
    return team_service.list_members(db, team_id)


@router.post("/{team_id}/members", response_model=schemas.TeamMemberOut)
async def add_member(
    team_id: UUID,
    member: schemas.TeamMemberAdd,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    role = ensure_team_permission(db, UserPrincipal(user), team_id, "team.invite")
    return team_service.invite_member(
        db, team_id, user, role, role=member.role, user_id=member.user_id, email=member.email
    )


@router.patch("/{team_id}/members/{member_id}", response_model=schemas.TeamMemberOut)
async def change_member_role(
    team_id: UUID,
    member_id: UUID,
    update: schemas.TeamMemberRoleUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    role = ensure_team_permission(db, UserPrincipal(user), team_id, "team.invite")
    return team_service.change_role(db, team_id, member_id, update.role, user, role)


@router.delete("/{team_id}/members/{member_id}")
async def remove_member(
    team_id: UUID,
    member_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    role = ensure_team_permission(db, UserPrincipal(user), team_id, "team.invite")
    team_service.remove_member(db, team_id, member_id, user, role)
    return {"detail": "removed"}


@router.get("/{team_id}/activity", response_model=List[schemas.ActivityOut])
async def team_activity(
    team_id: UUID,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    role = ensure_team_permission(db, UserPrincipal(user), team_id, "project.view")
    if not (allows(role, "team.manage") or is_at_least(role, "admin")):
        raise Forbidden("Team audit is limited to admins")
    return list_team_activity(db, team_id, limit=min(limit, 500))
