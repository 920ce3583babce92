from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..audit import list_project_activity
from ..rbac import UserPrincipal, ensure_project_access, ensure_team_permission
from ..services import analytics as analytics_service
from ..services import approvals as approval_service
from ..services import projects as project_service

router = APIRouter(prefix="/api/projects", tags=["projects"])


def asset_out(asset: models.Asset) -> schemas.AssetOut:
    data = schemas.AssetOut.model_validate(asset)
    data.approval_state = approval_service.approval_state(asset.approval_steps)
    return data


@router.post("/", response_model=schemas.ProjectOut)
async def create_project(
    project: schemas.ProjectCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    if project.team_id is not None:
        ensure_team_permission(db, UserPrincipal(user), project.team_id, "project.create")
    return project_service.create_project(
        db, user, project.name, description=project.description, team_id=project.team_id
    )


@router.get("/", response_model=List[schemas.ProjectOut])
async def list_projects(
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return project_service.list_projects(db, user.id)


@router.get("/{project_id}", response_model=schemas.ProjectOut)
async def get_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return ensure_project_access(db, UserPrincipal(user), project_id, "project.view")


@router.patch("/{project_id}", response_model=schemas.ProjectOut)
async def update_project(
    project_id: UUID,
    update: schemas.ProjectUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = ensure_project_access(db, UserPrincipal(user), project_id, "project.edit")
    return project_service.update_project(db, project, update.model_dump(exclude_unset=True))


@router.delete("/{project_id}")
async def delete_project(
    project_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = ensure_project_access(db, UserPrincipal(user), project_id, "project.delete")
    project_service.delete_project(db, project)
    return {"detail": "deleted"}


@router.get("/{project_id}/activity", response_model=List[schemas.ActivityOut])
async def project_activity(
    project_id: UUID,
    limit: int = 100,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_project_access(db, UserPrincipal(user), project_id, "project.view")
    return list_project_activity(db, project_id, limit=min(limit, 500))


@router.get("/{project_id}/analytics", response_model=schemas.ProjectAnalyticsOut)
async def project_analytics(
    project_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_project_access(db, UserPrincipal(user), project_id, "analytics.view")
    return analytics_service.project_summary(db, project_id)


@router.get("/{project_id}/analytics/reviewers", response_model=List[schemas.ReviewerStatOut])
async def project_reviewer_stats(
    project_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_project_access(db, UserPrincipal(user), project_id, "analytics.view")
    return analytics_service.reviewer_stats(db, project_id)


@router.post("/{project_id}/assets", response_model=schemas.AssetOut)
async def create_asset(
    project_id: UUID,
    asset: schemas.AssetCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    project = ensure_project_access(db, UserPrincipal(user), project_id, "asset.upload")
    created = project_service.create_asset(
        db,
        project,
        user,
        asset.title,
        media_type=asset.media_type,
        file_url=asset.file_url,
        file_size=asset.file_size,
        notes=asset.notes,
    )
    return asset_out(created)


@router.get("/{project_id}/assets", response_model=List[schemas.AssetOut])
async def list_assets(
    project_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_project_access(db, UserPrincipal(user), project_id, "asset.view")
    return [asset_out(a) for a in project_service.list_assets(db, project_id)]
