from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List
from uuid import UUID

from ..database import get_db
from ..auth import get_current_user
from .. import models, schemas
from ..rbac import UserPrincipal, ensure_asset_access
from ..services import annotations as annotation_service
from ..services import versions as version_service

router = APIRouter(prefix="/api", tags=["annotations"])


def _version_asset(db: Session, user: models.User, version_id: UUID, action: str) -> models.Version:
    version = version_service.get_version(db, version_id)
    ensure_asset_access(db, UserPrincipal(user), version.asset_id, action)
    return version


def _annotation_asset(db: Session, user: models.User, annotation_id: UUID, action: str):
    annotation = annotation_service.get_annotation(db, annotation_id)
    ensure_asset_access(db, UserPrincipal(user), annotation.version.asset_id, action)
    return annotation


@router.get("/versions/{version_id}/annotations", response_model=List[schemas.AnnotationOut])
async def list_annotations(
    version_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _version_asset(db, user, version_id, "asset.view")
    return annotation_service.list_annotations(db, version_id)


@router.post("/versions/{version_id}/annotations", response_model=schemas.AnnotationOut)
async def create_annotation(
    version_id: UUID,
    payload: schemas.AnnotationCreate,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    _version_asset(db, user, version_id, "comment.create")
    return annotation_service.create_annotation(
        db,
        version_id,
        payload.shape,
        payload.points,
        radius=payload.radius,
        stroke_width=payload.stroke_width,
        color=payload.color,
        opacity=payload.opacity,
        timecode_seconds=payload.timecode_seconds,
        page_number=payload.page_number,
        comment_id=payload.comment_id,
        created_by=user.id,
    )


@router.patch("/annotations/{annotation_id}", response_model=schemas.AnnotationOut)
async def move_annotation(
    annotation_id: UUID,
    payload: schemas.AnnotationMove,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    annotation = _annotation_asset(db, user, annotation_id, "comment.create")
    if annotation.created_by != user.id:
        _annotation_asset(db, user, annotation_id, "comment.edit")
    return annotation_service.move_annotation(db, annotation_id, payload.points)


@router.delete("/annotations/{annotation_id}")
async def delete_annotation(
    annotation_id: UUID,
    db: Session = Depends(get_db),
    user: models.User = Depends(get_current_user),
):
    annotation = _annotation_asset(db, user, annotation_id, "comment.create")
    if annotation.created_by != user.id:
        _annotation_asset(db, user, annotation_id, "comment.delete")
    annotation_service.delete_annotation(db, annotation_id)
    return {"detail": "deleted"}
