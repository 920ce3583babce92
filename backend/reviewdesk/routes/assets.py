from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import projects as project_service
from ..services import summaries
from .projects import asset_out

router = APIRouter(prefix="/api/assets", tags=["assets"])


@router.get("/{asset_id}", response_model=schemas.AssetOut)
async def get_asset(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    return asset_out(ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view"))


@router.patch("/{asset_id}", response_model=schemas.AssetOut)
async def update_asset(
    asset_id: UUID,
    update: schemas.AssetUpdate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.edit")
    return asset_out(project_service.update_asset(db, asset, title=update.title, media_type=update.media_type))


@router.delete("/{asset_id}")
async def delete_asset(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.delete")
    project_service.delete_asset(db, asset)
    return {"detail": "deleted"}


@router.post("/{asset_id}/watch")
async def watch_asset(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    project_service.watch_asset(db, asset_id, user.id)
    return {"watching": True}


@router.delete("/{asset_id}/watch")
async def unwatch_asset(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    project_service.unwatch_asset(db, asset_id, user.id)
    return {"watching": False}


@router.post("/{asset_id}/summary", response_model=schemas.SummaryOut)
async def summarize_asset(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    return schemas.SummaryOut(asset_id=asset_id, summary=summaries.summarize_asset(db, asset_id))
