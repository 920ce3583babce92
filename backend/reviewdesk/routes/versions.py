from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import notifications as notification_service
from ..services import versions as version_service

router = APIRouter(prefix="/api", tags=["versions"])


@router.get("/assets/{asset_id}/versions", response_model=List[schemas.VersionOut])
async def list_versions(
    asset_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    ensure_asset_access(db, UserPrincipal(user), asset_id, "asset.view")
    return version_service.list_versions(db, asset_id)


@router.post("/assets/{asset_id}/versions", response_model=schemas.VersionOut)
async def upload_version(
    asset_id: UUID,
    payload: schemas.VersionCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    asset = ensure_asset_access(db, UserPrincipal(user), asset_id, "version.upload")
    version = version_service.create_version(
        db,
        asset.id,
        payload.file_url,
        uploaded_by=user.id,
        file_size=payload.file_size,
        notes=payload.notes,
    )
    delivered = notification_service.dispatch(
        db,
        notification_service.DomainEvent(
            type="version_uploaded",
            title=f"New version of {asset.title}",
            body=f"Version {version.version_number} was uploaded.",
            actor_id=user.id,
            actor_name=user.full_name or user.email,
            project_id=asset.project_id,
            asset_id=asset.id,
            include_asset_audience=True,
            data={"version_id": str(version.id), "version_number": version.version_number},
        ),
    )
    await notification_service.push(delivered)
    return version


@router.get("/versions/compare", response_model=schemas.VersionCompareOut)
async def compare_versions(
    a: UUID,
    b: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    result = version_service.compare_versions(db, a, b, principal=UserPrincipal(user))
    return schemas.VersionCompareOut(
        version_a=schemas.VersionWithAnnotations.model_validate(result["version_a"]),
        version_b=schemas.VersionWithAnnotations.model_validate(result["version_b"]),
    )


@router.get("/versions/{version_id}", response_model=schemas.VersionWithAnnotations)
async def get_version(
    version_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    version = version_service.get_version(db, version_id)
    ensure_asset_access(db, UserPrincipal(user), version.asset_id, "asset.view")
    return version


@router.delete("/versions/{version_id}", response_model=schemas.AssetOut)
async def delete_version(
    version_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    version = version_service.get_version(db, version_id)
    ensure_asset_access(db, UserPrincipal(user), version.asset_id, "version.delete")
    return version_service.delete_version(db, version_id)
